"""
FastAPI dependencies: the application context and the owner auth gate.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shopsync.bootstrap import AppContext
from shopsync.core.models import AuthContext
from shopsync.utils.exceptions import AuthError

# auto_error=False so a missing header becomes AuthError with the structured body
security = HTTPBearer(auto_error=False)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


async def require_owner(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    context: AppContext = Depends(get_context),
) -> AuthContext:
    """
    Dependency for routes that need an authenticated owner.

    Usage:
        @router.get("/summary")
        async def summary(auth: AuthContext = Depends(require_owner)):
            ...
    """
    if credentials is None:
        raise AuthError("Missing bearer token")
    return context.auth_gate.authenticate(credentials.credentials)

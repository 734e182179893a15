"""
JWT token management for owner authentication.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import uuid

from jose import JWTError, jwt

from shopsync.core.models import AuthContext
from shopsync.utils.exceptions import AuthError, ConfigurationError
from shopsync.utils.logger import get_logger

logger = get_logger(__name__)

BEARER_PREFIX = "bearer "


class JWTManager:
    """
    Creates and verifies HS256 owner tokens.

    Access tokens carry ``sub`` (owner id) and ``tenant_id``.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 60,
    ):
        """
        Initialize JWT manager.

        Args:
            secret_key: Secret key for signing tokens
            algorithm: Signing algorithm
            access_token_expire_minutes: Access token TTL in minutes
        """
        if not secret_key:
            raise ConfigurationError("JWT_SECRET is required for owner authentication")

        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_expire = timedelta(minutes=access_token_expire_minutes)

        logger.info(f"Initialized JWT manager (algorithm={algorithm}, access_ttl={access_token_expire_minutes}m)")

    def create_access_token(
        self,
        tenant_id: str,
        owner_id: str,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """
        Create access token for an authenticated owner.

        Args:
            tenant_id: Tenant UUID
            owner_id: Owner UUID
            expires_delta: Override the configured TTL

        Returns:
            JWT access token string
        """
        now = datetime.now(timezone.utc)
        expires = now + (expires_delta if expires_delta is not None else self.access_token_expire)

        payload = {
            "sub": str(owner_id),
            "tenant_id": str(tenant_id),
            "type": "access",
            "iat": now,
            "exp": expires,
            "jti": str(uuid.uuid4()),
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.debug(f"Created access token for owner {owner_id}")
        return token

    def verify_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Verify and decode JWT token.

        Raises:
            JWTError: If token is invalid, expired or of the wrong type
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])

            if payload.get("type") != token_type:
                raise JWTError(f"Invalid token type: expected {token_type}, got {payload.get('type')}")

            return payload

        except JWTError as e:
            logger.warning(f"Token verification failed: {e}")
            raise


class AuthGate:
    """Turns a bearer credential into an ``AuthContext``."""

    def __init__(self, jwt_manager: JWTManager):
        self.jwt_manager = jwt_manager

    def authenticate(self, bearer: Optional[str]) -> AuthContext:
        """
        Verify a bearer token.

        Args:
            bearer: Raw token or an ``Authorization`` header value

        Raises:
            AuthError: If the token is missing, invalid, expired or lacks
                the ``tenant_id``/``sub`` claims
        """
        if not bearer or not bearer.strip():
            raise AuthError("Missing bearer token")

        token = bearer.strip()
        if token.lower().startswith(BEARER_PREFIX):
            token = token[len(BEARER_PREFIX):].strip()

        try:
            payload = self.jwt_manager.verify_token(token)
        except JWTError as e:
            raise AuthError(f"Invalid token: {e}") from e

        tenant_id = payload.get("tenant_id")
        owner_id = payload.get("sub")
        if not tenant_id or not owner_id:
            raise AuthError("Token is missing tenant_id or sub claim")

        return AuthContext(tenant_id=str(tenant_id), owner_id=str(owner_id))

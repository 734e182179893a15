"""
Global error handling middleware.

Maps ``ShopSyncError`` subclasses to structured JSON
``{error, error_kind, message}`` responses and logs every request.
"""

import time

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shopsync.utils.exceptions import ShopSyncError
from shopsync.utils.logger import get_logger

logger = get_logger(__name__)

STATUS_BY_KIND = {
    "auth": status.HTTP_401_UNAUTHORIZED,
    "signature": status.HTTP_401_UNAUTHORIZED,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "malformed_session": status.HTTP_400_BAD_REQUEST,
    "validation": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "provider_api": status.HTTP_502_BAD_GATEWAY,
    "rate_limited": status.HTTP_502_BAD_GATEWAY,
    "repository": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "configuration": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_response(exc: ShopSyncError) -> JSONResponse:
    """Build the JSON response for a known error."""
    status_code = STATUS_BY_KIND.get(exc.error_kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    headers = {"WWW-Authenticate": "Bearer"} if exc.error_kind == "auth" else None
    return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware for consistent error handling and logging.
    """

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        try:
            response = await call_next(request)

        except ShopSyncError as e:
            if e.error_kind in ("auth", "signature", "forbidden", "malformed_session", "validation", "not_found"):
                logger.warning(f"{request.method} {request.url.path} rejected: {e}")
            else:
                logger.error(f"{request.method} {request.url.path} failed: {e}")
            response = error_response(e)

        except Exception as e:
            logger.error(f"Unhandled exception: {e}", exc_info=True)
            response = JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "InternalServerError",
                    "error_kind": "internal",
                    "message": "An unexpected error occurred",
                },
            )

        duration = time.time() - start_time
        logger.info(f"{request.method} {request.url.path} - {response.status_code} - {duration:.3f}s")
        return response

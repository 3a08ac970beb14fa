"""Security middleware for FastAPI - bearer token verification and tenant context."""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.exceptions import InvalidTokenError, TokenExpiredError
from auth.types import TokenVerifier
from api.base import error_response, ErrorCodes
from utils.tenant_context import set_current_hotel_id, clear_current_hotel_id

logger = logging.getLogger(__name__)


class TenantAuthMiddleware(BaseHTTPMiddleware):
    """Middleware that verifies the bearer token and sets tenant context.

    For protected routes:
    1. Extracts the token from 'Authorization: Bearer <token>'
    2. Verifies it via the injected TokenVerifier
    3. Sets the principal in request.state and hotel_id in tenant context (for RLS)
    4. Clears context after request completes

    Public paths bypass authentication entirely.
    """

    PUBLIC_PATHS = [
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, verifier: TokenVerifier):
        super().__init__(app)
        self._verifier = verifier

    def _is_public_path(self, path: str) -> bool:
        """Check if path is in public paths list."""
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path + "/"):
                return True
        return False

    @staticmethod
    def _unauthorized(code: str, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content=error_response(code, message).model_dump(mode="json"),
            headers={"WWW-Authenticate": "Bearer"},
        )

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        if self._is_public_path(request.url.path):
            return await call_next(request)

        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return self._unauthorized(ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        try:
            principal = self._verifier.verify(token.strip())
        except TokenExpiredError:
            return self._unauthorized(ErrorCodes.TOKEN_EXPIRED, "Token has expired")
        except InvalidTokenError as e:
            logger.info(f"Rejected bearer token on {request.url.path}: {e}")
            return self._unauthorized(ErrorCodes.INVALID_TOKEN, "Invalid token")

        # Set tenant context for RLS
        set_current_hotel_id(principal.hotel_id)
        request.state.principal = principal

        try:
            response = await call_next(request)
            return response
        finally:
            # Always clear context
            clear_current_hotel_id()

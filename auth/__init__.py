"""Authentication modules."""

from auth.exceptions import (
    AuthError,
    InvalidTokenError,
    TokenExpiredError,
)
from auth.types import Principal, TokenVerifier
from auth.security_middleware import TenantAuthMiddleware

"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication errors."""


class InvalidTokenError(AuthError):
    """Bearer token is malformed, forged, or names no tenant."""


class TokenExpiredError(AuthError):
    """Bearer token was valid but has expired. Client must re-authenticate."""

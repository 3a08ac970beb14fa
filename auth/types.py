"""Auth domain types.

Token issuance and verification belong to an external identity service.
This package only consumes its result: a principal carrying a stable
tenant (hotel) identifier.
"""

from typing import Protocol
from uuid import UUID

from pydantic import BaseModel, Field


class Principal(BaseModel):
    """The authenticated caller."""

    hotel_id: UUID = Field(..., description="Tenant every request is scoped to")
    subject: str = Field(..., description="Stable caller identifier within the tenant")


class TokenVerifier(Protocol):
    """Anything that can turn a bearer token into a Principal."""

    def verify(self, token: str) -> Principal:
        """
        Verify a bearer token.

        Raises:
            InvalidTokenError: Token is not acceptable
            TokenExpiredError: Token has expired
        """
        ...

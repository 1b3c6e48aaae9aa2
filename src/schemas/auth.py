"""Authentication schemas."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ActorRole(str, Enum):
    """Roles accepted in access tokens."""
    ADMIN = "admin"
    SUPPLIER = "supplier"
    SERVICE = "service"  # checkout / payment backend


class TokenPayload(BaseModel):
    """JWT token payload identifying the calling actor."""

    user_id: int
    role: ActorRole
    supplier_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

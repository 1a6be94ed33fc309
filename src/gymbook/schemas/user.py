from typing import Optional
from uuid import UUID

from .base import BaseSchema
from .enums import AppRole, ELEVATED_ROLES


class User(BaseSchema):
    """User schema."""
    id: UUID
    email: Optional[str] = None
    display_name: Optional[str] = None


class CurrentUser(User):
    """Authenticated user together with their application roles."""
    roles: list[AppRole] = []

    @property
    def is_elevated(self) -> bool:
        return any(role in ELEVATED_ROLES for role in self.roles)

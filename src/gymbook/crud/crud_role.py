from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.crud.base import CRUDBase
from gymbook.models.user_role import UserRole
from gymbook.schemas.enums import AppRole, ELEVATED_ROLES


class CRUDUserRole(CRUDBase[UserRole, Any, Any]):
    """Role lookups for authorization and booking bypass."""

    async def get_roles(self, db: AsyncSession, *, user_id: UUID) -> list[AppRole]:
        """Get the application roles of a user."""
        stmt = select(UserRole.role).where(UserRole.user_id == user_id)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def has_elevated_role(self, db: AsyncSession, *, user_id: UUID) -> bool:
        """True if the user is an admin or trainer."""
        stmt = select(UserRole.id).where(
            UserRole.user_id == user_id,
            UserRole.role.in_(list(ELEVATED_ROLES)),
        )
        result = await db.execute(stmt)
        return result.first() is not None


user_role = CRUDUserRole(UserRole)

from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.crud.base import CRUDBase
from gymbook.models.core import User as UserModel
from gymbook.models.user_role import UserRole
from gymbook.schemas.enums import AppRole


class CRUDUser(CRUDBase[UserModel, Any, Any]):
    """CRUD operations for the local user mirror."""

    async def get_by_email(self, db: AsyncSession, *, email: str) -> UserModel | None:
        """Get a user by email."""
        stmt = select(UserModel).where(UserModel.email == email)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        db: AsyncSession,
        *,
        id: UUID,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> UserModel:
        """Get the local row for a Supabase user, creating it as a member on first sight."""
        existing = await self.get(db, id=id)
        if existing:
            return existing

        user = UserModel(id=id, email=email, display_name=display_name)
        db.add(user)
        db.add(UserRole(user_id=id, role=AppRole.MEMBER))
        await db.commit()
        await db.refresh(user)
        return user


user = CRUDUser(UserModel)

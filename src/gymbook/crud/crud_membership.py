from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.crud.base import CRUDBase
from gymbook.models.membership import MembershipPlan, UserMembership
from gymbook.schemas.booking_rule import dump_booking_rule, parse_booking_rule
from gymbook.schemas.enums import MembershipStatus
from gymbook.schemas.membership import MembershipPlanCreate, MembershipPlanUpdate


class CRUDMembershipPlan(CRUDBase[MembershipPlan, MembershipPlanCreate, MembershipPlanUpdate]):
    """CRUD operations for membership plan configuration."""

    def _to_columns(self, data: dict[str, Any]) -> dict[str, Any]:
        if data.get("booking_rules") is not None:
            data["booking_rules"] = dump_booking_rule(parse_booking_rule(data["booking_rules"]))
        return data

    async def get_active(self, db: AsyncSession) -> list[MembershipPlan]:
        """Get plans that can currently be sold."""
        stmt = (
            select(MembershipPlan)
            .where(MembershipPlan.is_active == True)  # noqa: E712
            .order_by(MembershipPlan.name)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())


class CRUDUserMembership(CRUDBase[UserMembership, Any, Any]):
    """Reads and credit updates on user memberships."""

    async def get_active_for_user(self, db: AsyncSession, *, user_id: UUID) -> list[UserMembership]:
        """Get all active memberships of a user, joined with their plan.

        Normally a single row; several rows can exist briefly while a plan change
        is in flight, so callers must not assume uniqueness.
        """
        stmt = (
            select(UserMembership)
            .where(
                UserMembership.user_id == user_id,
                UserMembership.status == MembershipStatus.ACTIVE,
            )
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return list(result.unique().scalars().all())

    async def get_all_active(self, db: AsyncSession) -> list[UserMembership]:
        """Get every active membership, joined with its plan."""
        stmt = (
            select(UserMembership)
            .where(UserMembership.status == MembershipStatus.ACTIVE)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return list(result.unique().scalars().all())

    async def replace_membership_data(
        self,
        db: AsyncSession,
        *,
        membership_id: UUID,
        expected_version: int,
        membership_data: dict,
    ) -> bool:
        """Write new membership data if nobody changed the row since it was read.

        The update is conditional on ``version``; a concurrent writer makes it
        match zero rows. Commits on success.

        Returns:
            bool: True if the row was updated
        """
        stmt = (
            update(UserMembership)
            .where(
                UserMembership.id == membership_id,
                UserMembership.version == expected_version,
            )
            .values(
                membership_data=membership_data,
                version=expected_version + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount != 1:
            return False
        await db.commit()
        return True


membership_plan = CRUDMembershipPlan(MembershipPlan)
user_membership = CRUDUserMembership(UserMembership)

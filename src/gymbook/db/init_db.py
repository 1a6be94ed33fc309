import asyncio
import logging
import sys

from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.crud.crud_membership import membership_plan as crud_membership_plan
from gymbook.db.session import AsyncSessionLocal, engine
from gymbook.models import Base
from gymbook.schemas.membership import MembershipPlanCreate

logger = logging.getLogger(__name__)

# Plans offered by a freshly set up gym, one per booking rule type
DEFAULT_PLANS: list[dict] = [
    {
        "name": "Open Gym",
        "description": "Free training during opening hours, no courses",
        "booking_rules": {"type": "open_gym_only"},
        "includes_open_gym": True,
        "upgrade_priority": 10,
        "price_monthly": "29.00",
    },
    {
        "name": "Basic",
        "description": "Two courses per week",
        "booking_rules": {"type": "limited", "limit": {"count": 2, "period": "week"}},
        "includes_open_gym": True,
        "upgrade_priority": 20,
        "price_monthly": "59.00",
    },
    {
        "name": "10 Course Card",
        "description": "Ten course credits, refilled every month",
        "booking_rules": {"type": "credits", "credits": {"initial_amount": 10, "refill_schedule": "monthly"}},
        "includes_open_gym": False,
        "upgrade_priority": 30,
        "price_monthly": "79.00",
    },
    {
        "name": "Premium",
        "description": "Unlimited courses and Open Gym",
        "booking_rules": {"type": "unlimited"},
        "includes_open_gym": True,
        "upgrade_priority": 40,
        "price_monthly": "99.00",
    },
]


async def _create_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def _create_membership_plans(db: AsyncSession) -> None:
    """Create the default membership plans if they don't exist.

    Args:
        db: Database session

    Raises:
        SQLAlchemyError: If database operation fails
        ValidationError: If a plan definition is malformed
    """
    existing = {plan.name for plan in await crud_membership_plan.get_multi(db, limit=1000)}
    for plan_data in DEFAULT_PLANS:
        if plan_data["name"] in existing:
            logger.info(f"Membership plan already exists: {plan_data['name']} - skipping")
            continue
        plan = await crud_membership_plan.create(db, obj_in=MembershipPlanCreate(**plan_data))
        logger.info(f"Created membership plan: {plan.name} ({plan.booking_rules['type']})")


async def init_db() -> None:
    """Initialize the database with tables and seed data."""
    await _create_tables()
    async with AsyncSessionLocal() as db:
        await _create_membership_plans(db)
    logger.info("Database initialization completed successfully")


def main() -> None:
    """Main function to run database initialization."""
    try:
        asyncio.run(init_db())
        print("✅ Database initialization completed successfully!")
    except Exception as e:
        print(f"❌ Database initialization failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

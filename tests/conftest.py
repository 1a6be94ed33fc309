import os

# Settings are validated at import time
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-service-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("GYMBOOK_ENV_FILE", "/nonexistent/.env")

from datetime import date, datetime, time
from typing import Optional
from unittest.mock import Mock
from uuid import UUID

import pytest
import pytest_asyncio
import pytz
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from gymbook.models import Base, Course, MembershipPlan, User, UserMembership, UserRole
from gymbook.schemas.enums import AppRole, MembershipStatus
from gymbook.services.booking_engine import BookingEngine
from gymbook.services.credit_ledger import CreditLedger
from gymbook.services.eligibility import EligibilityService
from gymbook.services.registration_events import RegistrationEventBus

# Course fixtures default to Friday 2030-03-15 18:00 gym time (17:00 UTC)
COURSE_DATE = date(2030, 3, 15)
COURSE_START = time(18, 0)
COURSE_END = time(19, 0)
NOW = datetime(2030, 3, 10, 12, 0, tzinfo=pytz.utc)


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def async_db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    """Stand-in for the Supabase RPC gateway."""
    return Mock()


@pytest.fixture
def event_bus():
    return RegistrationEventBus()


@pytest.fixture
def engine(gateway, event_bus):
    """Booking engine with a fixed clock five days before the default course."""
    return BookingEngine(
        eligibility=EligibilityService(),
        ledger=CreditLedger(max_retries=3),
        gateway=gateway,
        events=event_bus,
        clock=lambda: NOW,
    )


async def create_user(
    db: AsyncSession, *, roles: tuple[AppRole, ...] = (AppRole.MEMBER,), display_name: Optional[str] = None
) -> User:
    user = User(display_name=display_name)
    db.add(user)
    await db.flush()
    for role in roles:
        db.add(UserRole(user_id=user.id, role=role))
    await db.commit()
    return user


async def create_plan(
    db: AsyncSession, *, booking_rules: dict, name: str = "Plan", upgrade_priority: Optional[int] = None
) -> MembershipPlan:
    plan = MembershipPlan(name=name, booking_rules=booking_rules, upgrade_priority=upgrade_priority)
    db.add(plan)
    await db.commit()
    return plan


async def create_membership(
    db: AsyncSession,
    *,
    user_id: UUID,
    plan: MembershipPlan,
    start_date: date = date(2030, 1, 11),
    membership_data: Optional[dict] = None,
    status: MembershipStatus = MembershipStatus.ACTIVE,
    created_at: Optional[datetime] = None,
) -> UserMembership:
    membership = UserMembership(
        user_id=user_id,
        membership_plan_id=plan.id,
        status=status,
        start_date=start_date,
        membership_data=membership_data or {},
    )
    if created_at is not None:
        membership.created_at = created_at
    db.add(membership)
    await db.commit()
    return membership


async def create_course(
    db: AsyncSession,
    *,
    course_date: date = COURSE_DATE,
    start_time: time = COURSE_START,
    end_time: time = COURSE_END,
    max_participants: int = 10,
    registration_deadline_minutes: Optional[int] = 0,
    cancellation_deadline_minutes: Optional[int] = 0,
    is_cancelled: bool = False,
    title: str = "Functional Fitness",
) -> Course:
    course = Course(
        title=title,
        course_date=course_date,
        start_time=start_time,
        end_time=end_time,
        max_participants=max_participants,
        registration_deadline_minutes=registration_deadline_minutes,
        cancellation_deadline_minutes=cancellation_deadline_minutes,
        is_cancelled=is_cancelled,
    )
    db.add(course)
    await db.commit()
    return course


CREDITS_RULE = {"type": "credits", "credits": {"initial_amount": 10, "refill_schedule": "monthly"}}
UNLIMITED_RULE = {"type": "unlimited"}
OPEN_GYM_RULE = {"type": "open_gym_only"}


def limited_rule(count: int, period: str = "month") -> dict:
    return {"type": "limited", "limit": {"count": count, "period": period}}

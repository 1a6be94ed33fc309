from sqlalchemy import Boolean, Column, Date, Enum as SQLEnum, ForeignKey, Integer, JSON, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from gymbook.models.base import Base
from gymbook.schemas.enums import MembershipStatus


class MembershipPlan(Base):
    """Admin-configured membership plan carrying the booking rule."""
    __tablename__ = "membership_plans_v2"

    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    booking_rules = Column(JSON, nullable=False, default=lambda: {"type": "unlimited"})
    includes_open_gym = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    upgrade_priority = Column(Integer, nullable=True)  # higher wins when several memberships are active
    price_monthly = Column(Numeric(10, 2), nullable=True)
    duration_months = Column(Integer, default=1, nullable=False)

    # Relationships
    memberships = relationship("UserMembership", back_populates="plan")


class UserMembership(Base):
    """A user's subscription to a membership plan."""
    __tablename__ = "user_memberships_v2"

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    membership_plan_id = Column(Uuid, ForeignKey("membership_plans_v2.id"), nullable=False)
    status = Column(
        SQLEnum(MembershipStatus, name="membership_status", values_callable=lambda e: [m.value for m in e]),
        default=MembershipStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    auto_renewal = Column(Boolean, default=False, nullable=False)
    membership_data = Column(JSON, nullable=False, default=dict)  # remaining_credits lives here
    version = Column(Integer, default=1, nullable=False)  # bumped on every credit update

    # Relationships
    user = relationship("User", back_populates="memberships")
    plan = relationship("MembershipPlan", back_populates="memberships", lazy="joined")

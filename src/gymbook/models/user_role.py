from sqlalchemy import Column, Enum as SQLEnum, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from gymbook.models.base import Base
from gymbook.schemas.enums import AppRole


class UserRole(Base):
    """Application role of a user (admin, trainer, member, ...)."""
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(SQLEnum(AppRole, name="app_role", values_callable=lambda e: [m.value for m in e]), nullable=False)

    # Relationships
    user = relationship("User", back_populates="roles")

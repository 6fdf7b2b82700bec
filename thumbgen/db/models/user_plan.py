"""User plan SQLAlchemy model for quota tracking."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, CreatedAtMixin, generate_uuid


class UserPlan(Base, CreatedAtMixin):
    """Subscription plan, limits and usage counters for one user."""

    __tablename__ = "user_plans"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    plan_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Plan type: 'starter', 'creator' or 'pro'",
    )
    face_training_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    face_training_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    image_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    images_generated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    subscription_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    subscription_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="NULL for plans without a renewal period (starter)",
    )
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (Index("ix_user_plans_user_id", "user_id", unique=True),)

    def __repr__(self) -> str:
        return (
            f"UserPlan(user_id={self.user_id!r}, plan_type={self.plan_type!r}, "
            f"faces={self.face_training_used}/{self.face_training_limit}, "
            f"images={self.images_generated}/{self.image_limit}, is_admin={self.is_admin!r})"
        )

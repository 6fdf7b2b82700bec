"""Record store adapter backing the quota gate and the artifact fetcher."""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import func, select, update

from ..errors import RecordNotFoundError
from ..logging.config import get_logger
from .connection import DatabaseConnection
from .models import GeneratedImage, TrainingRequest, UserPlan

logger = get_logger(__name__)

USAGE_COUNTERS = ("face_training_used", "images_generated")

# Columns replaced wholesale when a user (re)subscribes
PLAN_FIELDS = (
    "plan_type",
    "face_training_limit",
    "face_training_used",
    "image_limit",
    "images_generated",
    "subscription_start",
    "subscription_end",
)


class RecordStore(Protocol):
    """Operations the core issues against the relational record store."""

    async def get_user_plan(self, user_id: str) -> UserPlan | None: ...

    async def upsert_user_plan(self, plan: UserPlan) -> UserPlan: ...

    async def increment_usage(self, user_id: str, counter: str) -> UserPlan: ...

    async def set_admin(self, user_id: str, is_admin: bool) -> None: ...

    async def list_user_plans(self) -> list[UserPlan]: ...

    async def list_training_requests(
        self, user_id: str, status: str | None = None
    ) -> list[TrainingRequest]: ...

    async def list_results_for_request(self, request_id: str) -> list[GeneratedImage]: ...

    async def list_results_for_user(self, user_id: str) -> list[GeneratedImage]: ...


class SqlRecordStore:
    """RecordStore implemented with SQLAlchemy async sessions."""

    def __init__(self, db: DatabaseConnection) -> None:
        self._db = db

    async def get_user_plan(self, user_id: str) -> UserPlan | None:
        async with self._db.session() as session:
            result = await session.execute(select(UserPlan).where(UserPlan.user_id == user_id))
            return result.scalar_one_or_none()

    async def upsert_user_plan(self, plan: UserPlan) -> UserPlan:
        """Insert the plan, or replace the existing row for the same user_id."""
        async with self._db.session() as session:
            result = await session.execute(
                select(UserPlan).where(UserPlan.user_id == plan.user_id)
            )
            existing = result.scalar_one_or_none()

            if existing is None:
                session.add(plan)
                await session.flush()
                logger.info("Created user plan", user_id=plan.user_id, plan_type=plan.plan_type)
                return plan

            for field in PLAN_FIELDS:
                setattr(existing, field, getattr(plan, field))
            await session.flush()
            logger.info("Replaced user plan", user_id=plan.user_id, plan_type=plan.plan_type)
            return existing

    async def increment_usage(self, user_id: str, counter: str) -> UserPlan:
        """Add one to a usage counter and return the updated plan."""
        if counter not in USAGE_COUNTERS:
            raise ValueError(f"Unknown usage counter: {counter}")

        column = getattr(UserPlan, counter)
        async with self._db.session() as session:
            result = await session.execute(
                update(UserPlan).where(UserPlan.user_id == user_id).values({column: column + 1})
            )
            if result.rowcount == 0:
                raise RecordNotFoundError(f"No plan found for user {user_id}")

            refreshed = await session.execute(
                select(UserPlan)
                .where(UserPlan.user_id == user_id)
                .execution_options(populate_existing=True)
            )
            return refreshed.scalar_one()

    async def set_admin(self, user_id: str, is_admin: bool) -> None:
        async with self._db.session() as session:
            result = await session.execute(
                update(UserPlan).where(UserPlan.user_id == user_id).values(is_admin=is_admin)
            )
            if result.rowcount == 0:
                raise RecordNotFoundError(f"No plan found for user {user_id}")

    async def list_user_plans(self) -> list[UserPlan]:
        async with self._db.session() as session:
            result = await session.execute(select(UserPlan).order_by(UserPlan.created_at.desc()))
            return list(result.scalars().all())

    async def list_training_requests(
        self, user_id: str, status: str | None = None
    ) -> list[TrainingRequest]:
        """Training requests for a user, newest first, optionally filtered by status."""
        query = select(TrainingRequest).where(TrainingRequest.user_id == user_id)
        if status is not None:
            query = query.where(func.lower(TrainingRequest.status) == status.lower())
        query = query.order_by(TrainingRequest.created_at.desc())

        async with self._db.session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def list_results_for_request(self, request_id: str) -> list[GeneratedImage]:
        async with self._db.session() as session:
            result = await session.execute(
                select(GeneratedImage)
                .where(GeneratedImage.request_id == request_id)
                .order_by(GeneratedImage.created_at.desc())
            )
            return list(result.scalars().all())

    async def list_results_for_user(self, user_id: str) -> list[GeneratedImage]:
        async with self._db.session() as session:
            result = await session.execute(
                select(GeneratedImage)
                .where(GeneratedImage.user_id == user_id)
                .order_by(GeneratedImage.created_at.desc())
            )
            return list(result.scalars().all())

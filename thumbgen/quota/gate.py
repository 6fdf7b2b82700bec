"""Plan limits and quota enforcement for job submissions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from ..db.models import UserPlan
from ..db.store import RecordStore
from ..errors import QuotaExceededError, ValidationError
from ..logging.config import get_logger

logger = get_logger(__name__)


class PlanType(str, Enum):
    STARTER = "starter"
    CREATOR = "creator"
    PRO = "pro"


# Limits applied on (re)subscription. Usage counters are reset to zero.
PLAN_LIMITS: dict[PlanType, dict[str, int]] = {
    PlanType.STARTER: {"face": 1, "image": 10},
    PlanType.CREATOR: {"face": 1, "image": 25},
    PlanType.PRO: {"face": 3, "image": 100},
}

# Starter is a one-off purchase; paid plans renew monthly.
SUBSCRIPTION_PERIOD = timedelta(days=30)


def can_submit_training(plan: UserPlan) -> bool:
    """Admins always pass; everyone else needs face trainings left."""
    if plan.is_admin:
        return True
    return plan.face_training_used < plan.face_training_limit


def can_submit_generation(plan: UserPlan) -> bool:
    """Admins always pass; everyone else needs images left."""
    if plan.is_admin:
        return True
    return plan.images_generated < plan.image_limit


@dataclass(frozen=True)
class UsageSummary:
    """Usage figures shown next to the submission forms."""

    plan_type: str
    face_training_used: int
    face_training_limit: int
    images_generated: int
    image_limit: int
    is_admin: bool

    @property
    def trainings_remaining(self) -> int | None:
        if self.is_admin:
            return None
        return max(0, self.face_training_limit - self.face_training_used)

    @property
    def images_remaining(self) -> int | None:
        if self.is_admin:
            return None
        return max(0, self.image_limit - self.images_generated)

    @classmethod
    def from_plan(cls, plan: UserPlan) -> "UsageSummary":
        return cls(
            plan_type=plan.plan_type,
            face_training_used=plan.face_training_used,
            face_training_limit=plan.face_training_limit,
            images_generated=plan.images_generated,
            image_limit=plan.image_limit,
            is_admin=bool(plan.is_admin),
        )


class QuotaGate:
    """Checks and debits a user's plan around job submissions.

    Checks never retry: a store failure propagates to the caller immediately.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def get_plan(self, user_id: str) -> UserPlan | None:
        return await self._store.get_user_plan(user_id)

    async def subscribe(
        self,
        user_id: str,
        plan_type: PlanType | str,
        now: datetime | None = None,
    ) -> UserPlan:
        """Create or replace the user's plan, resetting usage to zero."""
        try:
            plan_type = PlanType(plan_type)
        except ValueError:
            raise ValidationError(f"Unknown plan type: {plan_type}") from None

        now = now or datetime.now(timezone.utc)
        limits = PLAN_LIMITS[plan_type]
        plan = UserPlan(
            user_id=user_id,
            plan_type=plan_type.value,
            face_training_limit=limits["face"],
            face_training_used=0,
            image_limit=limits["image"],
            images_generated=0,
            subscription_start=now,
            subscription_end=None if plan_type is PlanType.STARTER else now + SUBSCRIPTION_PERIOD,
            is_admin=False,
        )
        stored = await self._store.upsert_user_plan(plan)
        logger.info("Subscribed user to plan", user_id=user_id, plan_type=plan_type.value)
        return stored

    async def ensure_can_submit_training(self, user_id: str) -> UserPlan:
        plan = await self._store.get_user_plan(user_id)
        if plan is None:
            logger.info("Training refused, no plan", user_id=user_id)
            raise QuotaExceededError("training")
        if not can_submit_training(plan):
            logger.info(
                "Training quota exceeded",
                user_id=user_id,
                used=plan.face_training_used,
                limit=plan.face_training_limit,
            )
            raise QuotaExceededError("training", plan.face_training_used, plan.face_training_limit)
        return plan

    async def ensure_can_submit_generation(self, user_id: str) -> UserPlan:
        plan = await self._store.get_user_plan(user_id)
        if plan is None:
            logger.info("Generation refused, no plan", user_id=user_id)
            raise QuotaExceededError("generation")
        if not can_submit_generation(plan):
            logger.info(
                "Generation quota exceeded",
                user_id=user_id,
                used=plan.images_generated,
                limit=plan.image_limit,
            )
            raise QuotaExceededError("generation", plan.images_generated, plan.image_limit)
        return plan

    async def record_training(self, user_id: str) -> UserPlan:
        """Debit one face training after the service accepted the upload."""
        return await self._store.increment_usage(user_id, "face_training_used")

    async def record_generation(self, user_id: str) -> UserPlan:
        """Debit one image generation after the service accepted the request."""
        return await self._store.increment_usage(user_id, "images_generated")

    async def usage(self, user_id: str) -> UsageSummary | None:
        plan = await self._store.get_user_plan(user_id)
        return UsageSummary.from_plan(plan) if plan is not None else None

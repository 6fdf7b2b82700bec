"""SQLAlchemy database models for the record store."""

from .base import Base, CreatedAtMixin, generate_uuid
from .result import GeneratedImage
from .training_request import TrainingRequest
from .user_plan import UserPlan

__all__ = [
    "Base",
    "CreatedAtMixin",
    "GeneratedImage",
    "TrainingRequest",
    "UserPlan",
    "generate_uuid",
]

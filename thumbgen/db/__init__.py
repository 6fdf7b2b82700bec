"""Record store: connection, models and adapter."""

from .connection import (
    DatabaseConnection,
    create_engine,
    create_session_factory,
    get_database_url,
)
from .models import (
    Base,
    CreatedAtMixin,
    GeneratedImage,
    TrainingRequest,
    UserPlan,
    generate_uuid,
)
from .store import PLAN_FIELDS, USAGE_COUNTERS, RecordStore, SqlRecordStore

__all__ = [
    "Base",
    "CreatedAtMixin",
    "DatabaseConnection",
    "GeneratedImage",
    "PLAN_FIELDS",
    "RecordStore",
    "SqlRecordStore",
    "TrainingRequest",
    "USAGE_COUNTERS",
    "UserPlan",
    "create_engine",
    "create_session_factory",
    "generate_uuid",
    "get_database_url",
]

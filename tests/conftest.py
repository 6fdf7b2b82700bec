"""Pytest configuration and shared fakes."""

import asyncio
import io
import zipfile
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from thumbgen.config import PollingSettings
from thumbgen.db.models import GeneratedImage, TrainingRequest, UserPlan
from thumbgen.db.store import PLAN_FIELDS, USAGE_COUNTERS
from thumbgen.errors import RecordNotFoundError, RemoteError
from thumbgen.jobs.models import JobStatus, JobStatusResult
from thumbgen.session import SessionContext

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# Builders
# ============================================================================


def _make_zip(names: tuple[str, ...] = ("face1.jpg", "face2.jpg")) -> bytes:
    """Build an in-memory zip archive."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name in names:
            archive.writestr(name, b"\xff\xd8\xff fake jpeg")
    return buffer.getvalue()


def _make_plan(
    user_id: str = "user-1",
    plan_type: str = "starter",
    face_training_limit: int = 1,
    face_training_used: int = 0,
    image_limit: int = 10,
    images_generated: int = 0,
    is_admin: bool = False,
    created_at: datetime = BASE_TIME,
) -> UserPlan:
    return UserPlan(
        user_id=user_id,
        plan_type=plan_type,
        face_training_limit=face_training_limit,
        face_training_used=face_training_used,
        image_limit=image_limit,
        images_generated=images_generated,
        subscription_start=created_at,
        subscription_end=None,
        is_admin=is_admin,
        created_at=created_at,
    )


def _make_image(
    request_id: str,
    user_id: str = "user-1",
    minutes: int = 0,
    image_url: str | None = None,
) -> GeneratedImage:
    return GeneratedImage(
        request_id=request_id,
        user_id=user_id,
        image_url=image_url or f"https://cdn.test/{request_id}/{minutes}.png",
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def _make_status(value: str | None, percentage: int = 0, message: str | None = None) -> JobStatusResult:
    return JobStatusResult(
        status=JobStatus.parse(value),
        completion_percentage=100 if JobStatus.parse(value) is JobStatus.COMPLETED else percentage,
        message=message,
        raw_status=value,
    )


# ============================================================================
# Fakes
# ============================================================================


class FakeRecordStore:
    """In-memory RecordStore with the same ordering and upsert rules as SqlRecordStore."""

    def __init__(self) -> None:
        self.plans: dict[str, UserPlan] = {}
        self.training_requests: list[TrainingRequest] = []
        self.results: list[GeneratedImage] = []
        self.raise_not_found = False

    async def get_user_plan(self, user_id):
        return self.plans.get(user_id)

    async def upsert_user_plan(self, plan):
        existing = self.plans.get(plan.user_id)
        if existing is None:
            if plan.created_at is None:
                plan.created_at = BASE_TIME
            self.plans[plan.user_id] = plan
            return plan
        for field in PLAN_FIELDS:
            setattr(existing, field, getattr(plan, field))
        return existing

    async def increment_usage(self, user_id, counter):
        assert counter in USAGE_COUNTERS
        plan = self.plans.get(user_id)
        if plan is None:
            raise RecordNotFoundError(f"No plan found for user {user_id}")
        setattr(plan, counter, getattr(plan, counter) + 1)
        return plan

    async def set_admin(self, user_id, is_admin):
        if user_id not in self.plans:
            raise RecordNotFoundError(f"No plan found for user {user_id}")
        self.plans[user_id].is_admin = is_admin

    async def list_user_plans(self):
        return sorted(self.plans.values(), key=lambda p: p.created_at, reverse=True)

    async def list_training_requests(self, user_id, status=None):
        rows = [r for r in self.training_requests if r.user_id == user_id]
        if status is not None:
            rows = [r for r in rows if r.status.lower() == status.lower()]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    async def list_results_for_request(self, request_id):
        if self.raise_not_found:
            raise RecordNotFoundError(request_id)
        rows = [r for r in self.results if r.request_id == request_id]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    async def list_results_for_user(self, user_id):
        if self.raise_not_found:
            raise RecordNotFoundError(user_id)
        rows = [r for r in self.results if r.user_id == user_id]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)


class FakeJobClient:
    """Scripted job service.

    ``statuses`` is consumed one entry per get_status call; an entry is a
    JobStatusResult or an exception to raise. The last entry repeats.
    """

    def __init__(self, statuses=None, on_ingest=None, request_id: str = "req-1") -> None:
        self.statuses = list(statuses or [_make_status("pending")])
        self.on_ingest = on_ingest
        self.request_id = request_id
        self.status_calls: list[str] = []
        self.ingest_calls: list[str] = []
        self.training_submissions: list[dict] = []
        self.generation_submissions: list[dict] = []
        self.ingest_error: Exception | None = None
        # When set, ingestion blocks until the event is set
        self.ingest_gate: asyncio.Event | None = None

    async def get_status(self, request_id):
        self.status_calls.append(request_id)
        index = min(len(self.status_calls) - 1, len(self.statuses) - 1)
        outcome = self.statuses[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def ingest_completed_results(self, request_id):
        self.ingest_calls.append(request_id)
        if self.ingest_gate is not None:
            await self.ingest_gate.wait()
        if self.ingest_error is not None:
            raise self.ingest_error
        if self.on_ingest is not None:
            self.on_ingest(request_id)

    async def submit_training(self, archive, trigger_phrase, user_email, filename="faces.zip"):
        self.training_submissions.append(
            {"trigger_phrase": trigger_phrase, "email": user_email, "filename": filename}
        )
        return self.request_id

    async def submit_generation(self, request_id, prompt, gender, user_email):
        self.generation_submissions.append(
            {"request_id": request_id, "prompt": prompt, "gender": gender, "email": user_email}
        )
        return self.request_id


class FakeSleep:
    """Records requested delays and yields control without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def polling_settings():
    return PollingSettings(
        interval_seconds=5.0,
        retry_delay_seconds=2.0,
        max_attempts=3,
        ingest_settle_seconds=0,
    )


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def store():
    return FakeRecordStore()


@pytest.fixture
def session_context():
    return SessionContext(user_id="user-1", email="creator@example.com", display_name="Creator")


@pytest.fixture
def transport_error():
    return RemoteError("Could not reach the job service: connection refused")


@pytest.fixture
def mock_db():
    """DatabaseConnection double whose session() yields an AsyncMock session."""
    session = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()

    db = MagicMock()
    db.session.return_value.__aenter__ = AsyncMock(return_value=session)
    db.session.return_value.__aexit__ = AsyncMock(return_value=None)
    return db, session


@pytest.fixture
def base_time():
    return BASE_TIME


@pytest.fixture
def make_zip():
    """Factory for in-memory zip archives."""
    return _make_zip


@pytest.fixture
def make_plan():
    """Factory for UserPlan rows (starter limits by default)."""
    return _make_plan


@pytest.fixture
def make_image():
    """Factory for GeneratedImage rows, ``minutes`` after base_time."""
    return _make_image


@pytest.fixture
def make_status():
    """Factory for normalized JobStatusResult values."""
    return _make_status


@pytest.fixture
def make_job_client():
    """Factory for scripted job service clients."""
    return FakeJobClient

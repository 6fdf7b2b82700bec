"""Status polling for one remote job.

A JobPoller is bound to a single request id at a time. It polls the job
service on a fixed interval (or once, on demand), retries failed status
checks with a fixed backoff, and when the job completes it ingests the
results exactly once before loading them. Every state change is published
as an immutable PollSnapshot to the registered observers.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Protocol

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from ..artifacts.fetcher import ArtifactFetcher
from ..config import PollingSettings, get_settings
from ..db.models import GeneratedImage
from ..errors import RemoteError
from ..logging.config import get_logger, job_context
from .models import JobStatus, JobStatusResult

logger = get_logger(__name__)


class PollState(str, Enum):
    """Poller lifecycle.

    ERROR means the current chain of status checks gave up; the remote job
    itself may still be running and a manual refresh can resume it.
    """

    IDLE = "idle"
    SUBMITTING = "submitting"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    ERROR = "error"


@dataclass(frozen=True)
class PollSnapshot:
    state: PollState
    request_id: str | None = None
    status: JobStatus | None = None
    completion_percentage: int = 0
    message: str | None = None
    error: str | None = None
    retry_count: int = 0
    images: tuple[GeneratedImage, ...] = ()


Observer = Callable[[PollSnapshot], Awaitable[None] | None]


class StatusSource(Protocol):
    async def get_status(self, request_id: str) -> JobStatusResult: ...

    async def ingest_completed_results(self, request_id: str) -> None: ...


def _user_message(exc: BaseException) -> str:
    return getattr(exc, "user_message", None) or str(exc) or type(exc).__name__


class JobPoller:
    """Tracks one job from submission to a terminal state."""

    def __init__(
        self,
        client: StatusSource,
        fetcher: ArtifactFetcher,
        settings: PollingSettings | None = None,
        *,
        job_kind: str = "job",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        ingested: set[str] | None = None,
    ) -> None:
        self._client = client
        self._fetcher = fetcher
        self._settings = settings or get_settings().polling
        self._sleep = sleep
        self.job_kind = job_kind

        self._observers: list[Observer] = []
        self._snapshot = PollSnapshot(state=PollState.IDLE)
        self._task: asyncio.Task[None] | None = None
        self._ingestion: asyncio.Task[bool] | None = None
        self._interval_mode = False
        # Request ids whose results are ingested; may be shared between pollers
        self._ingested = ingested if ingested is not None else set()
        self.retry_count = 0

    @property
    def snapshot(self) -> PollSnapshot:
        return self._snapshot

    @property
    def state(self) -> PollState:
        return self._snapshot.state

    @property
    def request_id(self) -> str | None:
        return self._snapshot.request_id

    @property
    def is_running(self) -> bool:
        """True while the interval task is alive."""
        return self._task is not None and not self._task.done()

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; returns a function that unregisters it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    async def _emit(self, **changes: Any) -> PollSnapshot:
        self._snapshot = replace(self._snapshot, **changes)
        snapshot = self._snapshot
        for observer in list(self._observers):
            try:
                result = observer(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Poll observer raised", request_id=snapshot.request_id)
        return snapshot

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def submit(self, submitter: Callable[[], Awaitable[str]]) -> str:
        """Run a submission and start polling the job it creates.

        Args:
            submitter: Coroutine factory returning the new request id.

        Returns:
            The request id of the submitted job.
        """
        if self.state is PollState.SUBMITTING:
            raise RuntimeError("A submission is already in progress")

        await self.stop()
        await self._emit(
            state=PollState.SUBMITTING,
            request_id=None,
            status=None,
            completion_percentage=0,
            message=None,
            error=None,
            retry_count=0,
            images=(),
        )
        try:
            request_id = await submitter()
        except Exception as exc:
            logger.warning("Submission failed", job_kind=self.job_kind, error=_user_message(exc))
            await self._emit(state=PollState.ERROR, error=_user_message(exc))
            raise

        await self.start(request_id)
        return request_id

    async def start(self, request_id: str) -> None:
        """Begin interval polling of ``request_id``, replacing any job tracked before."""
        await self.stop()
        if request_id != self._snapshot.request_id:
            self._ingestion = None

        self.retry_count = 0
        self._interval_mode = True
        await self._emit(
            state=PollState.POLLING,
            request_id=request_id,
            status=JobStatus.PENDING,
            completion_percentage=0,
            message=None,
            error=None,
            retry_count=0,
            images=(),
        )
        self._task = asyncio.create_task(self._run(request_id), name=f"poll-{request_id}")

    async def stop(self) -> None:
        """Cancel interval polling. Safe to call at any time.

        Later manual refreshes stay one-shot until start() or submit() is called again.
        """
        self._interval_mode = False
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        if task is asyncio.current_task():
            return
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def wait(self) -> PollSnapshot:
        """Wait for interval polling to reach a terminal state or give up."""
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        return self._snapshot

    async def refresh(self, request_id: str | None = None) -> PollSnapshot:
        """Check the status once, on demand, with a fresh retry budget.

        Passing a different ``request_id`` switches the poller to that job
        in manual mode. Re-triggers ingestion when an earlier attempt failed,
        and restarts interval polling if it had given up while the job is
        still running.
        """
        if request_id is not None and request_id != self._snapshot.request_id:
            await self.stop()
            self._ingestion = None
            self._interval_mode = False
            await self._emit(
                state=PollState.POLLING,
                request_id=request_id,
                status=None,
                completion_percentage=0,
                message=None,
                error=None,
                retry_count=0,
                images=(),
            )
        request_id = self._snapshot.request_id
        if request_id is None:
            raise RuntimeError("No job is being tracked")

        with job_context(request_id=request_id, job_kind=self.job_kind):
            logger.info("Manual status refresh")
            snapshot = await self._poll(request_id)

        if snapshot.state is PollState.POLLING and self._interval_mode and not self.is_running:
            self._task = asyncio.create_task(
                self._run(request_id, wait_first=True), name=f"poll-{request_id}"
            )
        return snapshot

    async def __aenter__(self) -> "JobPoller":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def _run(self, request_id: str, wait_first: bool = False) -> None:
        with job_context(request_id=request_id, job_kind=self.job_kind):
            logger.info("Polling started", interval_seconds=self._settings.interval_seconds)
            if wait_first:
                await self._sleep(self._settings.interval_seconds)
            while True:
                snapshot = await self._poll(request_id)
                if snapshot.state is not PollState.POLLING:
                    logger.info("Polling stopped", state=snapshot.state.value)
                    return
                await self._sleep(self._settings.interval_seconds)

    def _before_retry(self, retry_state: RetryCallState) -> None:
        self.retry_count = retry_state.attempt_number
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Status check failed, retrying",
            attempt=retry_state.attempt_number,
            max_attempts=self._settings.max_attempts,
            delay_seconds=self._settings.retry_delay_seconds,
            error=_user_message(exc) if exc else None,
        )

    async def _check_status(self, request_id: str) -> JobStatusResult:
        self.retry_count = 0
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.max_attempts),
            wait=wait_fixed(self._settings.retry_delay_seconds),
            retry=retry_if_exception_type(RemoteError),
            before_sleep=self._before_retry,
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                result = await self._client.get_status(request_id)
        self.retry_count = 0
        return result

    async def _poll(self, request_id: str) -> PollSnapshot:
        try:
            result = await self._check_status(request_id)
        except RemoteError as exc:
            self.retry_count = self._settings.max_attempts
            logger.error(
                "Status check gave up",
                attempts=self.retry_count,
                error=exc.user_message,
            )
            return await self._emit(
                state=PollState.ERROR,
                error=exc.user_message,
                retry_count=self.retry_count,
            )
        except Exception:
            logger.exception("Unexpected error while checking status")
            return await self._emit(
                state=PollState.ERROR,
                error="Failed to check status. Please try again.",
            )

        if result.status is JobStatus.COMPLETED:
            return await self._on_completed(request_id, result)

        if result.status is JobStatus.FAILED:
            logger.warning("Job failed", message=result.message)
            return await self._emit(
                state=PollState.FAILED,
                status=JobStatus.FAILED,
                completion_percentage=result.completion_percentage,
                message=result.message,
                error=f"{self.job_kind.capitalize()} failed. Please try again.",
                retry_count=0,
            )

        logger.debug(
            "Job still running",
            status=result.raw_status,
            completion_percentage=result.completion_percentage,
        )
        return await self._emit(
            state=PollState.POLLING,
            status=result.status,
            completion_percentage=result.completion_percentage,
            message=result.message,
            error=None,
            retry_count=0,
        )

    async def _on_completed(self, request_id: str, result: JobStatusResult) -> PollSnapshot:
        await self._ensure_ingested(request_id)
        if self._settings.ingest_settle_seconds:
            await self._sleep(self._settings.ingest_settle_seconds)

        try:
            images = await self._fetcher.load_for_job(request_id)
        except Exception:
            logger.exception("Loading generated images failed")
            return await self._emit(
                state=PollState.COMPLETED,
                status=JobStatus.COMPLETED,
                completion_percentage=100,
                message=result.message,
                error="Failed to fetch generated images. Please try again.",
                retry_count=0,
            )

        logger.info("Job completed", images=len(images))
        return await self._emit(
            state=PollState.COMPLETED,
            status=JobStatus.COMPLETED,
            completion_percentage=100,
            message=result.message,
            error=None,
            retry_count=0,
            images=tuple(images),
        )

    async def _ensure_ingested(self, request_id: str) -> None:
        if request_id in self._ingested:
            return

        # Overlapping observers of "completed" await the same ingestion task.
        # A task that finished unsuccessfully while nobody awaited it (the poll
        # that started it was cancelled) is replaced, not reused.
        ingestion = self._ingestion
        if ingestion is None or (
            ingestion.done() and (ingestion.cancelled() or not ingestion.result())
        ):
            ingestion = self._ingestion = asyncio.create_task(self._ingest(request_id))

        succeeded = await asyncio.shield(ingestion)
        if succeeded:
            self._ingested.add(request_id)
        elif self._ingestion is ingestion:
            self._ingestion = None

    async def _ingest(self, request_id: str) -> bool:
        try:
            await self._client.ingest_completed_results(request_id)
        except Exception as exc:
            logger.warning(
                "Result ingestion failed, a manual refresh will retry it",
                request_id=request_id,
                error=_user_message(exc),
            )
            return False
        return True

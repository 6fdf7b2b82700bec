"""Application facade: the actions a signed-in user can take.

Wires the quota gate, the job service client, the pollers and the
artifact fetcher together for one SessionContext.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable
from typing import Any

from .artifacts.fetcher import ArtifactFetcher
from .config import Settings, get_settings
from .db.models import GeneratedImage, TrainingRequest, UserPlan
from .db.store import RecordStore
from .errors import NotAuthenticatedError, NotAuthorizedError, RecordNotFoundError
from .jobs.client import JobApiClient
from .jobs.models import (
    Gender,
    JobStatus,
    load_archive,
    validate_generation_input,
    validate_training_input,
)
from .jobs.poller import JobPoller, PollSnapshot, PollState
from .logging.config import get_logger
from .quota.gate import PlanType, QuotaGate, UsageSummary
from .session import IdentityProvider, SessionContext

logger = get_logger(__name__)

TRAINING = "training"
GENERATION = "generation"

_FINISHED = (PollState.COMPLETED, PollState.FAILED)


class ThumbnailStudio:
    """Everything the single-page app does on behalf of one user.

    Starting a new job of a kind (training or generation) cancels the
    poller of the previous job of that kind. Pollers are only tracked while
    their job is unfinished. ``close()`` cancels them all.
    """

    def __init__(
        self,
        session: SessionContext,
        client: JobApiClient,
        store: RecordStore,
        settings: Settings | None = None,
        *,
        identity: IdentityProvider | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.session = session
        self._client = client
        self._store = store
        self._settings = settings or get_settings()
        self._identity = identity
        self._sleep = sleep

        self.quota = QuotaGate(store)
        self.artifacts = ArtifactFetcher(store)
        self._active: dict[str, JobPoller] = {}
        self._pollers: dict[str, JobPoller] = {}
        self._ingested: set[str] = set()

    @classmethod
    async def from_provider(
        cls,
        identity: IdentityProvider,
        client: JobApiClient,
        store: RecordStore,
        settings: Settings | None = None,
        **kwargs: Any,
    ) -> "ThumbnailStudio":
        """Build a studio for the provider's current session."""
        session = await identity.get_current_session()
        if session is None:
            raise NotAuthenticatedError()
        return cls(session, client, store, settings, identity=identity, **kwargs)

    async def __aenter__(self) -> "ThumbnailStudio":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    async def subscribe(self, plan_type: PlanType | str) -> UserPlan:
        return await self.quota.subscribe(self.session.user_id, plan_type)

    async def current_plan(self) -> UserPlan | None:
        return await self.quota.get_plan(self.session.user_id)

    async def usage(self) -> UsageSummary | None:
        return await self.quota.usage(self.session.user_id)

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def _new_poller(self, job_kind: str) -> JobPoller:
        poller = JobPoller(
            self._client,
            self.artifacts,
            self._settings.polling,
            job_kind=job_kind,
            sleep=self._sleep,
            ingested=self._ingested,
        )
        poller.subscribe(lambda snapshot: self._release(poller, snapshot))
        return poller

    def _track(self, request_id: str, poller: JobPoller) -> None:
        if poller.state not in _FINISHED:
            self._pollers[request_id] = poller

    def _untrack(self, poller: JobPoller) -> None:
        request_id = poller.request_id
        if request_id is not None and self._pollers.get(request_id) is poller:
            del self._pollers[request_id]

    def _release(self, poller: JobPoller, snapshot: PollSnapshot) -> None:
        # Finished jobs are dropped; a later refresh builds a fresh one-shot poller
        if snapshot.state in _FINISHED:
            self._untrack(poller)

    async def _replace_active(self, job_kind: str) -> JobPoller:
        previous = self._active.pop(job_kind, None)
        if previous is not None:
            await previous.stop()
            self._untrack(previous)
        poller = self._new_poller(job_kind)
        self._active[job_kind] = poller
        return poller

    async def _debit(self, debit: Callable[[str], Awaitable[UserPlan]], request_id: str) -> None:
        try:
            await debit(self.session.user_id)
        except Exception:
            # The job is already accepted remotely; failing here would invite a resubmission
            logger.exception("Recording usage failed", request_id=request_id)

    async def submit_training(
        self,
        archive: bytes | str | os.PathLike[str],
        trigger_phrase: str,
        filename: str = "faces.zip",
    ) -> JobPoller:
        """Validate, check the training quota, upload and start polling.

        Raises:
            ValidationError: Missing or non-zip archive, or empty trigger phrase.
            QuotaExceededError: No face trainings left on the plan.
            RemoteError: The job service rejected the upload.
        """
        data, filename = load_archive(archive, filename)
        phrase = validate_training_input(data, trigger_phrase)
        await self.quota.ensure_can_submit_training(self.session.user_id)

        poller = await self._replace_active(TRAINING)
        request_id = await poller.submit(
            lambda: self._client.submit_training(data, phrase, self.session.email, filename)
        )
        self._track(request_id, poller)
        await self._debit(self.quota.record_training, request_id)
        return poller

    async def submit_generation(
        self,
        training_request_id: str,
        prompt: str,
        gender: Gender | str,
    ) -> JobPoller:
        """Validate, check the image quota, request a thumbnail and start polling.

        Raises:
            ValidationError: Missing title or gender.
            QuotaExceededError: No images left on the plan.
            RemoteError: The job service rejected the request.
        """
        prompt, parsed_gender = validate_generation_input(training_request_id, prompt, gender)
        await self.quota.ensure_can_submit_generation(self.session.user_id)

        poller = await self._replace_active(GENERATION)
        request_id = await poller.submit(
            lambda: self._client.submit_generation(
                training_request_id, prompt, parsed_gender, self.session.email
            )
        )
        self._track(request_id, poller)
        await self._debit(self.quota.record_generation, request_id)
        return poller

    def poller_for(self, request_id: str) -> JobPoller | None:
        return self._pollers.get(request_id)

    async def refresh(self, request_id: str, job_kind: str = TRAINING) -> PollSnapshot:
        """Manually check a job's status, tracked or not."""
        poller = self._pollers.get(request_id)
        if poller is None:
            poller = self._new_poller(job_kind)
            self._pollers[request_id] = poller
        return await poller.refresh(request_id)

    async def training_requests(self, completed_only: bool = False) -> list[TrainingRequest]:
        status = JobStatus.COMPLETED.value if completed_only else None
        return await self._store.list_training_requests(self.session.user_id, status=status)

    async def generated_images(self, request_id: str | None = None) -> list[GeneratedImage]:
        if request_id is not None:
            return await self.artifacts.load_for_job(request_id)
        return await self.artifacts.load_for_user(self.session.user_id)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    async def _require_admin(self) -> None:
        plan = await self.current_plan()
        if plan is None or not plan.is_admin:
            raise NotAuthorizedError()

    async def list_user_plans(self) -> list[UserPlan]:
        await self._require_admin()
        return await self._store.list_user_plans()

    async def toggle_admin(self, user_id: str) -> bool:
        """Flip another user's admin flag and return the new value."""
        await self._require_admin()
        plan = await self._store.get_user_plan(user_id)
        if plan is None:
            raise RecordNotFoundError(f"No plan found for user {user_id}")
        is_admin = not plan.is_admin
        await self._store.set_admin(user_id, is_admin)
        logger.info("Changed admin status", user_id=user_id, is_admin=is_admin)
        return is_admin

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Cancel every poller so no timer outlives the session."""
        pollers = {id(p): p for p in [*self._active.values(), *self._pollers.values()]}
        for poller in pollers.values():
            await poller.stop()
        self._active.clear()
        self._pollers.clear()

    async def sign_out(self) -> None:
        await self.close()
        if self._identity is not None:
            await self._identity.sign_out()

"""Loads generated images from the record store."""

from __future__ import annotations

from ..db.models import GeneratedImage
from ..db.store import RecordStore
from ..errors import RecordNotFoundError
from ..logging.config import get_logger

logger = get_logger(__name__)


class ArtifactFetcher:
    """Reads the images a completed job produced.

    Each call re-queries the store. A missing row set is an empty list,
    since a job without ingested results yet is a normal state.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def load_for_job(self, request_id: str) -> list[GeneratedImage]:
        try:
            images = await self._store.list_results_for_request(request_id)
        except RecordNotFoundError:
            images = []
        logger.debug("Loaded images for job", request_id=request_id, count=len(images))
        return list(images)

    async def load_for_user(self, user_id: str) -> list[GeneratedImage]:
        """All images owned by a user, newest first."""
        try:
            images = await self._store.list_results_for_user(user_id)
        except RecordNotFoundError:
            images = []
        logger.debug("Loaded images for user", user_id=user_id, count=len(images))
        return list(images)

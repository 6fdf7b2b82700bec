"""Typed values exchanged with the remote job service."""

from __future__ import annotations

import io
import os
import zipfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from ..errors import RemoteError, ValidationError


class JobStatus(str, Enum):
    """Remote job status. Only COMPLETED and FAILED are terminal."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def parse(cls, raw: str | None) -> "JobStatus":
        """Case-insensitive parse; missing means pending, anything unknown is still running."""
        if raw is None or not str(raw).strip():
            return cls.PENDING
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.PROCESSING

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


@dataclass(frozen=True)
class JobStatusResult:
    """Uniform status reply, whatever shape the service answered with."""

    status: JobStatus
    completion_percentage: int
    message: str | None = None
    raw_status: str | None = None


def _coerce_percentage(value: Any) -> int:
    try:
        percentage = int(float(value))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, percentage))


def normalize_status_payload(payload: dict[str, Any] | str | None) -> JobStatusResult:
    """Turn a status response body into a JobStatusResult.

    A bare string body carries no status and is kept as the message.
    """
    if payload is None:
        payload = {}
    elif isinstance(payload, str):
        payload = {"message": payload}
    elif not isinstance(payload, dict):
        raise RemoteError("Invalid response format from server")

    raw_status = payload.get("status")
    if raw_status is not None and not isinstance(raw_status, str):
        raw_status = str(raw_status)
    status = JobStatus.parse(raw_status)

    if status is JobStatus.COMPLETED:
        percentage = 100
    else:
        percentage = _coerce_percentage(payload.get("completion_percentage"))

    message = payload.get("message")
    return JobStatusResult(
        status=status,
        completion_percentage=percentage,
        message=str(message) if message is not None else None,
        raw_status=raw_status,
    )


def load_archive(
    archive: bytes | str | os.PathLike[str], filename: str = "faces.zip"
) -> tuple[bytes, str]:
    """Return the archive bytes and upload file name for bytes or a filesystem path."""
    if isinstance(archive, (str, os.PathLike)):
        path = Path(archive)
        try:
            return path.read_bytes(), path.name
        except OSError as exc:
            raise ValidationError(f"Could not read {path.name}: {exc.strerror}") from exc
    return archive, filename


def is_zip_archive(data: bytes) -> bool:
    return bool(data) and zipfile.is_zipfile(io.BytesIO(data))


def validate_training_input(archive: bytes | None, trigger_phrase: str | None) -> str:
    """Check a training submission and return the stripped trigger phrase."""
    if not archive:
        raise ValidationError("Please provide both a ZIP file and a trigger phrase")
    if not trigger_phrase or not trigger_phrase.strip():
        raise ValidationError("Please provide both a ZIP file and a trigger phrase")
    if not is_zip_archive(archive):
        raise ValidationError("Please upload a ZIP file only")
    return trigger_phrase.strip()


def validate_generation_input(
    request_id: str | None, prompt: str | None, gender: Gender | str | None
) -> tuple[str, Gender]:
    """Check a generation submission and return the stripped prompt and parsed gender."""
    if not request_id:
        raise ValidationError("A trained face is required before generating images")
    if not prompt or not prompt.strip() or not gender:
        raise ValidationError("Please fill in all fields")
    try:
        parsed = gender if isinstance(gender, Gender) else Gender(str(gender).strip().capitalize())
    except ValueError:
        raise ValidationError("Gender must be Male or Female") from None
    return prompt.strip(), parsed

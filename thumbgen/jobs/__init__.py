"""Remote job service client and status polling."""

from .client import JobApiClient, parse_response_body
from .models import (
    Gender,
    JobStatus,
    JobStatusResult,
    is_zip_archive,
    load_archive,
    normalize_status_payload,
    validate_generation_input,
    validate_training_input,
)
from .poller import JobPoller, Observer, PollSnapshot, PollState, StatusSource

__all__ = [
    "Gender",
    "JobApiClient",
    "JobPoller",
    "JobStatus",
    "JobStatusResult",
    "Observer",
    "PollSnapshot",
    "PollState",
    "StatusSource",
    "is_zip_archive",
    "load_archive",
    "normalize_status_payload",
    "parse_response_body",
    "validate_generation_input",
    "validate_training_input",
]

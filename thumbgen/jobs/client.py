"""HTTP client for the remote face-training / thumbnail-generation service."""

from __future__ import annotations

import json
import os
from typing import Any
from urllib.parse import quote

import httpx

from ..config import JobApiSettings, get_settings
from ..errors import RemoteError, ValidationError
from ..logging.config import get_logger
from .models import (
    Gender,
    JobStatusResult,
    load_archive,
    normalize_status_payload,
    validate_generation_input,
    validate_training_input,
)

logger = get_logger(__name__)

ResponseBody = dict[str, Any] | str | None


def parse_response_body(text: str) -> ResponseBody:
    """Decode a 2xx body: JSON object or string, or plain text wrapped as a message."""
    text = text.strip()
    if not text:
        return None
    try:
        data = json.loads(text)
    except ValueError:
        return {"message": text}
    if data is None or isinstance(data, (dict, str)):
        return data
    raise RemoteError("Invalid response format from server")


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        message = data.get("message") or data.get("detail")
        if message:
            return message if isinstance(message, str) else json.dumps(message)
    return f"HTTP error! status: {response.status_code}"


class JobApiClient:
    """Stateless wrapper around the job service endpoints.

    Usage::

        async with JobApiClient() as client:
            request_id = await client.submit_training(archive, "mystyle", "me@example.com")
            status = await client.get_status(request_id)
    """

    def __init__(
        self,
        settings: JobApiSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings().job_api
        self._base_url = self._settings.base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            timeout=self._settings.timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "JobApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    def _headers(self, json_body: bool = True) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Origin": self._settings.origin,
        }
        # Multipart requests let httpx set the boundary content type
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: bool = True,
        **kwargs: Any,
    ) -> ResponseBody:
        url = f"{self._base_url}{path}"
        try:
            response = await self._http.request(
                method, url, headers=self._headers(json_body), **kwargs
            )
        except httpx.HTTPError as exc:
            logger.warning("Job service unreachable", method=method, path=path, error=str(exc))
            raise RemoteError(f"Could not reach the job service: {exc}") from exc

        if not response.is_success:
            message = _error_message(response)
            logger.warning(
                "Job service returned an error",
                method=method,
                path=path,
                status_code=response.status_code,
                error=message,
            )
            raise RemoteError(message, http_status=response.status_code)

        return parse_response_body(response.text)

    async def submit_training(
        self,
        archive: bytes | str | os.PathLike[str],
        trigger_phrase: str,
        user_email: str,
        filename: str = "faces.zip",
    ) -> str:
        """Upload a zip of face images and start a training job.

        Returns:
            The request id assigned by the service.
        """
        data, filename = load_archive(archive, filename)
        phrase = validate_training_input(data, trigger_phrase)
        if not user_email:
            raise ValidationError("An email address is required to submit a job")

        body = await self._request(
            "POST",
            "/train",
            json_body=False,
            files={"file": (filename, data, "application/zip")},
            data={"trigger_phrase": phrase, "email": user_email},
        )

        request_id = body.get("request_id") if isinstance(body, dict) else None
        if not request_id:
            raise RemoteError("No request ID received from server")

        logger.info("Submitted training job", request_id=request_id, trigger_phrase=phrase)
        return str(request_id)

    async def submit_generation(
        self,
        request_id: str,
        prompt: str,
        gender: Gender | str,
        user_email: str,
    ) -> str:
        """Start thumbnail generation from a trained face.

        Args:
            request_id: Request id of the completed training job.
            prompt: Video title the thumbnail is generated for.
            gender: Male or Female.
            user_email: Email of the submitting user.

        Returns:
            The request id of the generation job.
        """
        prompt, parsed_gender = validate_generation_input(request_id, prompt, gender)
        if not user_email:
            raise ValidationError("An email address is required to submit a job")

        body = await self._request(
            "POST",
            "/generate_image",
            json={
                "request_id": request_id,
                "prompt": prompt,
                "gender": parsed_gender.value,
                "email": user_email,
            },
        )

        if isinstance(body, str):
            new_request_id = body
        elif isinstance(body, dict):
            new_request_id = body.get("request_id")
        else:
            new_request_id = None
        if not new_request_id:
            raise RemoteError("No request ID received from server")

        logger.info(
            "Submitted generation job",
            request_id=new_request_id,
            source_request_id=request_id,
        )
        return str(new_request_id)

    async def get_status(self, request_id: str) -> JobStatusResult:
        body = await self._request("GET", f"/status/{quote(request_id, safe='')}")
        return normalize_status_payload(body)

    async def ingest_completed_results(self, request_id: str) -> None:
        """Ask the service to copy a completed job's images into the record store.

        Safe to repeat; the response body is ignored.
        """
        await self._request("GET", f"/insert_generated_images/{quote(request_id, safe='')}")
        logger.info("Ingested generated images", request_id=request_id)

"""HTTP client the console uses to talk to the proxy service."""

import json
from typing import Any, Optional

import httpx
import structlog
from pydantic import ValidationError

from konsole.config import Settings, get_settings
from konsole.errors import PreconditionError, TransportError, UpstreamError
from konsole.models.job import EvaluationCreateRequest, EvaluationJob

logger = structlog.get_logger(__name__)

API_KEY_HEADER = "X-API-KEY"
SELECT_API_KEY_MESSAGE = "Please select an API key first"


def extract_jobs(data: Any) -> list[dict]:
    """Accept either a bare job array or an object with a ``data`` array."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get("data") or []
    return []


class KonsoleClient:
    """Async client for the proxy endpoints.

    Every call needs an API key; a missing key is rejected before any request
    is sent. Non-2xx answers raise UpstreamError, network and decoding
    failures raise TransportError.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.settings.console_url,
                timeout=httpx.Timeout(self.settings.backend_timeout_seconds),
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "KonsoleClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        api_key: Optional[str],
        error_template: str,
        **kwargs: Any,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Args:
            method: HTTP method
            path: Proxy path, e.g. ``/api/evaluations``
            api_key: Selected backend API key
            error_template: Message for non-2xx answers without an upstream
                message; ``{status}`` is replaced by the status code
        """
        if not api_key:
            raise PreconditionError(SELECT_API_KEY_MESSAGE)

        client = await self._get_client()
        try:
            response = await client.request(
                method, path, headers={API_KEY_HEADER: api_key}, **kwargs
            )
        except httpx.HTTPError as e:
            logger.error(
                "console_request_failed",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TransportError(f"Could not reach {self.settings.console_url}") from e

        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = None
            logger.warning(
                "console_upstream_error", method=method, path=path, status_code=response.status_code
            )
            raise UpstreamError.from_response(response.status_code, body, error_template)

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error("console_malformed_body", method=method, path=path)
            raise TransportError("Received a malformed response") from e

    async def upload_dataset(
        self,
        api_key: Optional[str],
        file_name: str,
        content: bytes,
        dataset_name: str,
        description: Optional[str] = None,
        duplication_factor: Optional[int] = None,
    ) -> str:
        """Upload a CSV dataset and return the backend's ``dataset_id``.

        Raises:
            UpstreamError: Non-2xx answer, or a 2xx answer without dataset_id
        """
        form = {"dataset_name": dataset_name.strip()}
        if description and description.strip():
            form["description"] = description.strip()
        if duplication_factor:
            form["duplication_factor"] = str(duplication_factor)

        data = await self._request(
            "POST",
            "/api/evaluations/datasets",
            api_key,
            "Upload failed with status {status}",
            data=form,
            files={"file": (file_name, content, "text/csv")},
        )

        dataset_id = data.get("dataset_id") if isinstance(data, dict) else None
        if not dataset_id:
            raise UpstreamError("No dataset_id returned from upload", 200, data)

        logger.info("dataset_uploaded", dataset_id=dataset_id, dataset_name=dataset_name)
        return str(dataset_id)

    async def create_evaluation(
        self, api_key: Optional[str], request: EvaluationCreateRequest
    ) -> dict:
        """Start an evaluation run; returns the created job payload (with ``id``)."""
        data = await self._request(
            "POST",
            "/api/evaluations",
            api_key,
            "Evaluation failed with status {status}",
            json=request.model_dump(exclude_none=True),
        )
        logger.info(
            "evaluation_created",
            job_id=data.get("id") if isinstance(data, dict) else None,
            experiment_name=request.experiment_name,
        )
        return data

    async def list_evaluations(self, api_key: Optional[str]) -> list[EvaluationJob]:
        """Fetch all evaluation jobs visible to the key."""
        data = await self._request(
            "GET",
            "/api/evaluations",
            api_key,
            "Failed to fetch evaluations: {status}",
        )
        try:
            return [EvaluationJob.model_validate(job) for job in extract_jobs(data)]
        except ValidationError as e:
            logger.error("console_job_list_invalid", error_count=e.error_count())
            raise TransportError("Received malformed evaluation jobs") from e

    async def get_evaluation(self, api_key: Optional[str], evaluation_id: int | str) -> EvaluationJob:
        """Fetch one evaluation job with its full score payload."""
        data = await self._request(
            "GET",
            f"/api/evaluations/{evaluation_id}",
            api_key,
            "Failed to fetch evaluation: {status}",
        )
        try:
            return EvaluationJob.model_validate(data)
        except ValidationError as e:
            logger.error("console_job_invalid", evaluation_id=evaluation_id)
            raise TransportError("Received a malformed evaluation job") from e

    async def get_assistant(self, api_key: Optional[str], assistant_id: str) -> dict:
        """Fetch an assistant's configuration."""
        return await self._request(
            "GET",
            f"/api/assistant/{assistant_id}",
            api_key,
            "Failed to fetch assistant: {status}",
        )

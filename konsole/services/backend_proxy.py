"""Outbound forwarding to the evaluation backend."""

import json
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import structlog

from konsole.config import Settings, get_settings
from konsole.errors import BackendUnavailableError

logger = structlog.get_logger(__name__)

API_KEY_HEADER = "X-API-KEY"


@dataclass
class UpstreamResponse:
    """Status code and decoded JSON body returned by the backend."""

    status_code: int
    body: Any


class BackendProxy:
    """Forwards requests to the backend with the caller's API key attached.

    The upstream status code and body are passed through untouched. Requests
    are not retried.
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
                timeout=httpx.Timeout(self.settings.backend_timeout_seconds)
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def forward(
        self,
        method: str,
        path: str,
        api_key: str,
        *,
        json_body: Any = None,
        data: Optional[dict[str, str]] = None,
        files: Optional[dict[str, tuple[str, bytes, str]]] = None,
    ) -> UpstreamResponse:
        """Forward one request to ``{backend}/api/v1/{path}``.

        Args:
            method: HTTP method
            path: Path below the versioned API root
            api_key: Caller-supplied key, sent as X-API-KEY
            json_body: JSON payload
            data: Form fields for multipart uploads
            files: Multipart file parts

        Returns:
            UpstreamResponse mirroring the backend status and body

        Raises:
            BackendUnavailableError: Network failure or non-JSON upstream body
        """
        url = f"{self.settings.backend_api_url}/{path.lstrip('/')}"
        client = await self._get_client()
        start_time = time.perf_counter()

        try:
            response = await client.request(
                method,
                url,
                headers={API_KEY_HEADER: api_key},
                json=json_body,
                data=data,
                files=files,
            )
        except httpx.HTTPError as e:
            logger.error(
                "proxy_transport_error",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise BackendUnavailableError(details=str(e) or type(e).__name__) from e

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(
                "proxy_malformed_body",
                method=method,
                path=path,
                status_code=response.status_code,
                latency_ms=latency_ms,
            )
            raise BackendUnavailableError(details=f"Malformed upstream body: {e}") from e

        logger.info(
            "proxy_forward",
            method=method,
            path=path,
            status_code=response.status_code,
            latency_ms=latency_ms,
        )
        return UpstreamResponse(status_code=response.status_code, body=body)


_backend_proxy: Optional[BackendProxy] = None


def get_backend_proxy() -> BackendProxy:
    """Get the shared proxy (created on first use)."""
    global _backend_proxy
    if _backend_proxy is None:
        _backend_proxy = BackendProxy()
    return _backend_proxy


async def close_backend_proxy() -> None:
    """Close the shared proxy's HTTP client."""
    global _backend_proxy
    if _backend_proxy is not None:
        await _backend_proxy.close()
        _backend_proxy = None
        logger.info("backend_proxy_closed")

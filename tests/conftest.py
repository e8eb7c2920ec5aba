"""Pytest configuration and fixtures."""

import json
import os
from pathlib import Path
from typing import Any, Callable, Generator

import httpx
import pytest
from fastapi.testclient import TestClient

# Keep tests independent of a developer's .env / environment
os.environ.setdefault("KONSOLE_BACKEND_URL", "http://backend.test")
os.environ.setdefault("KONSOLE_CONSOLE_URL", "http://konsole.test")

from konsole.config import PACKAGE_MOCK_DATA_DIR, Settings
from konsole.services.store import APIKeyStore, DatasetStore, MemoryBackend

FIXTURES_DIR = PACKAGE_MOCK_DATA_DIR


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it was asked to send."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


def json_response(status_code: int, body: Any) -> httpx.Response:
    return httpx.Response(status_code, json=body)


def load_fixture(name: str) -> dict:
    return json.loads((FIXTURES_DIR / name).read_text(encoding="utf-8"))


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at test hosts with a temporary data dir."""
    return Settings(
        backend_url="http://backend.test",
        console_url="http://konsole.test",
        data_dir=tmp_path / "konsole-data",
        use_mock_data=False,
        poll_interval_seconds=0.01,
        _env_file=None,
    )


@pytest.fixture
def mock_settings(settings: Settings) -> Settings:
    """Settings with mock fixture mode switched on."""
    return settings.model_copy(update={"use_mock_data": True})


@pytest.fixture
def memory_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def api_key_store(memory_backend: MemoryBackend) -> APIKeyStore:
    return APIKeyStore(memory_backend)


@pytest.fixture
def dataset_store(memory_backend: MemoryBackend) -> DatasetStore:
    return DatasetStore(memory_backend)


@pytest.fixture
def sample_current_payload() -> dict:
    """Job payload carrying a current (multi-metric) score object."""
    return load_fixture("evaluation-sample-1.json")


@pytest.fixture
def sample_legacy_payload() -> dict:
    """Job payload carrying a legacy cosine-similarity score object."""
    return load_fixture("evaluation-sample-2.json")


@pytest.fixture
def make_transport() -> Callable[..., RecordingTransport]:
    """Build a recording transport from a request handler."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> RecordingTransport:
        return RecordingTransport(handler)

    return factory


@pytest.fixture
def app_client() -> Generator[Callable[..., TestClient], None, None]:
    """TestClient factory wiring a recorded backend and settings into the app.

    Usage: ``client, transport = app_client(handler, settings)``
    """
    from konsole.config import get_settings
    from konsole.main import app
    from konsole.services.backend_proxy import BackendProxy, get_backend_proxy

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
        app_settings: Settings,
    ) -> tuple[TestClient, RecordingTransport]:
        transport = RecordingTransport(handler)
        proxy = BackendProxy(
            settings=app_settings,
            client=httpx.AsyncClient(transport=transport),
        )
        app.dependency_overrides[get_backend_proxy] = lambda: proxy
        app.dependency_overrides[get_settings] = lambda: app_settings
        return TestClient(app), transport

    yield factory
    app.dependency_overrides.clear()

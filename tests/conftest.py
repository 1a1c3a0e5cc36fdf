from __future__ import annotations

import io
import json
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from urllib import error, parse, request

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from aidraw_client.adapter import ServiceAdapter, build_service_adapter
from aidraw_client.config import Settings
from aidraw_client.mock_backend import MockBackendStore, create_app
from aidraw_client.storage import InMemoryKeyValueStore

MOCK_BASE_URL = "http://mock.aidraw.test"


class FakeHTTPResponse:
    def __init__(self, body: bytes | str | dict[str, object], status: int = 200) -> None:
        if isinstance(body, dict):
            body = json.dumps(body)
        self._raw_body = body.encode("utf-8") if isinstance(body, str) else body
        self.status = status

    def read(self) -> bytes:
        return self._raw_body

    def __enter__(self) -> FakeHTTPResponse:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        _ = (exc_type, exc, tb)
        return False


def http_error(url: str, status: int, body: bytes | str) -> error.HTTPError:
    raw = body.encode("utf-8") if isinstance(body, str) else body
    return error.HTTPError(url, status, "error", {}, io.BytesIO(raw))


class TestClientTransport:
    """Stands in for ``urllib.request.urlopen`` and routes requests into a FastAPI app."""

    __test__ = False

    def __init__(self, client: TestClient) -> None:
        self.client = client
        self.calls: list[tuple[str, str]] = []
        self.timeouts: list[float] = []

    def __call__(self, req: request.Request, timeout: float) -> FakeHTTPResponse:
        parts = parse.urlsplit(req.full_url)
        target = f"{parts.path}?{parts.query}" if parts.query else parts.path
        method = req.get_method()
        self.calls.append((method, parts.path))
        self.timeouts.append(timeout)
        response = self.client.request(
            method,
            target,
            content=req.data,
            headers={"Content-Type": "application/json"},
        )
        if response.status_code >= 400:
            raise http_error(req.full_url, response.status_code, response.content)
        return FakeHTTPResponse(response.content, status=response.status_code)

    def count(self, method: str, path_prefix: str) -> int:
        return sum(1 for m, path in self.calls if m == method and path.startswith(path_prefix))


@dataclass
class MockBackend:
    app: FastAPI
    transport: TestClientTransport

    @property
    def store(self) -> MockBackendStore:
        return self.app.state.store


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def local_settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        use_backend=False,
        storage_path=str(tmp_path / "state.sqlite3"),
        poll_interval_s=0.0,
        poll_max_attempts=5,
        local_initial_credits=3,
    )


@pytest.fixture
def remote_settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        use_backend=True,
        api_base_url=f"{MOCK_BASE_URL}/",
        api_timeout_s=4.5,
        storage_path=str(tmp_path / "state.sqlite3"),
        poll_interval_s=0.0,
        poll_max_attempts=5,
    )


@pytest.fixture
def mock_backend(monkeypatch: pytest.MonkeyPatch) -> Iterator[Callable[..., MockBackend]]:
    """Factory: start a fresh mock backend and route urllib traffic into it."""

    def _start(**options: int | str) -> MockBackend:
        app = create_app(**options)
        transport = TestClientTransport(TestClient(app))
        monkeypatch.setattr(request, "urlopen", transport)
        return MockBackend(app=app, transport=transport)

    yield _start


@pytest.fixture
def local_adapter(local_settings: Settings, store: InMemoryKeyValueStore) -> ServiceAdapter:
    return build_service_adapter(local_settings, store=store)

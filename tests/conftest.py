"""Shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from core.event_bus import EventBus
from core.scheduler import ManualClock, TaskScheduler
from persistence.remote_client import DesktopApiClient
from server.api import TokenAuthenticator, create_app
from server.record_store import ServerRecordStore
from server.sql_store import SQLStore
from world_model.window_registry import WindowRegistry

BASE_HOST = "http://desktop.test"


class FlaskResponse:
    """``requests.Response`` look-alike over a Werkzeug test response."""

    def __init__(self, response: Any) -> None:
        self.status_code = response.status_code
        self._body = response.get_json(silent=True)

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class FlaskSession:
    """Routes ``requests``-style calls into a Flask test client."""

    def __init__(self, client: Any, host: str = BASE_HOST) -> None:
        self.client = client
        self.host = host
        self.calls: list[tuple[str, str]] = []

    def request(
        self, method: str, url: str, json: Any = None, headers: Any = None, timeout: Any = None
    ) -> FlaskResponse:
        path = url[len(self.host):] if url.startswith(self.host) else url
        self.calls.append((method, path))
        return FlaskResponse(self.client.open(path, method=method, json=json, headers=headers))


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scheduler(clock: ManualClock) -> TaskScheduler:
    return TaskScheduler(clock=clock)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def windows(bus: EventBus) -> WindowRegistry:
    return WindowRegistry(event_bus=bus)


@pytest.fixture
def record_store(tmp_path: Path) -> ServerRecordStore:
    return ServerRecordStore(SQLStore(tmp_path / "server.db"))


@pytest.fixture
def api_client(record_store: ServerRecordStore) -> Any:
    app = create_app(record_store, TokenAuthenticator({"token-alice": "alice", "token-bob": "bob"}))
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def remote_for(api_client: Any) -> Callable[[str | None], DesktopApiClient]:
    """Build sync clients that talk to the in-process API."""

    def build(token: str | None = "token-alice") -> DesktopApiClient:
        return DesktopApiClient(f"{BASE_HOST}/api/v1", lambda: token, session=FlaskSession(api_client))

    return build

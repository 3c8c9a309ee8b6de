from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from whelp_client.client import WhelpClient
from whelp_client.config import Settings
from whelp_client.observability import MetricsRecorder
from whelp_client.storage import FileCredentialStore

Handler = Callable[[httpx.Request], httpx.Response]


class FakeServer:
    """Route MockTransport requests to canned responses and record them."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Handler]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, *responses: Any, status: int = 200) -> None:
        handlers: list[Handler] = []
        for response in responses or (None,):
            if callable(response):
                handlers.append(response)
            elif isinstance(response, httpx.Response):
                handlers.append(lambda request, response=response: response)
            elif response is None and status == 204:
                handlers.append(lambda request: httpx.Response(204))
            else:
                handlers.append(
                    lambda request, body=response, code=status: httpx.Response(code, json=body)
                )
        self.routes[(method, path)] = handlers

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handlers = self.routes.get((request.method, request.url.path))
        if not handlers:
            return httpx.Response(404, json={"detail": "Not found."})
        handler = handlers.pop(0) if len(handlers) > 1 else handlers[0]
        return handler(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


LOGIN_TOKENS_LAYOUT = {
    "status": "success",
    "tokens": {"access": "a1", "refresh": "r1"},
    "user": {"id": "u1", "email": "x@y.com", "role": "account_holder", "is_verified": True},
}

LOGIN_DATA_LAYOUT = {
    "data": {
        "access": "a2",
        "refresh": "r2",
        "user": {"id": "u2", "email": "z@y.com", "role": "team_member"},
    }
}


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(api_base_url="https://api.test", state_dir=str(tmp_path / "state"))


@pytest.fixture()
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture()
def whelp(settings: Settings, server: FakeServer) -> WhelpClient:
    store = FileCredentialStore(settings.credential_file)
    return WhelpClient(
        settings,
        store=store,
        transport=server.transport(),
        metrics=MetricsRecorder(enabled=False),
    )


@pytest.fixture()
def logged_in(whelp: WhelpClient) -> WhelpClient:
    whelp.session.establish(LOGIN_TOKENS_LAYOUT)
    return whelp

"""Shared fixtures for the direwolf test-suite."""

from __future__ import annotations

import json
from typing import Callable, Iterator, List

import httpx
import pytest

from direwolf import Session, reset_default_session, reset_settings

DIREWOLF_ENV_VARS = (
    "DIREWOLF_USER_AGENT",
    "DIREWOLF_TIMEOUT",
    "DIREWOLF_TRANSPORT__HTTP2",
    "DIREWOLF_TRANSPORT__CONNECT_TIMEOUT",
    "DIREWOLF_LOGGING__LEVEL",
    "DIREWOLF_LOGGING__JSON",
)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch) -> Iterator[None]:
    """Start every test from default settings and no shared session."""
    for name in DIREWOLF_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    reset_default_session()
    yield
    reset_default_session()
    reset_settings()


def echo_handler(request: httpx.Request) -> httpx.Response:
    """MockTransport handler answering with a JSON description of the request."""
    payload = {
        "method": request.method,
        "url": str(request.url),
        "query": request.url.query.decode("ascii"),
        "headers": [[key, value] for key, value in request.headers.multi_items()],
        "body": request.read().decode("utf-8", errors="replace"),
        "timeout": request.extensions.get("timeout"),
    }
    return httpx.Response(200, json=payload, request=request)


class Recorder:
    """Wraps a handler and records every request the transport receives."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response] = echo_handler) -> None:
        self.handler = handler
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def make_session() -> Iterator[Callable[..., Session]]:
    """Build sessions over a MockTransport; all are closed at teardown."""
    sessions: List[Session] = []

    def factory(handler=echo_handler, **kwargs) -> Session:
        session = Session(transport=httpx.MockTransport(handler), **kwargs)
        sessions.append(session)
        return session

    yield factory
    for session in sessions:
        session.close()


def echoed(response) -> dict:
    return json.loads(response.content)

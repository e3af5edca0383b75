"""
Pytest configuration and shared fixtures for relaycache tests.

Provides:
- Event factories with valid wire-shaped ids, pubkeys and signatures
- FakeRelayNetwork: scripted stand-in for the WebSocket transport
- Isolation of the ingest environment variables
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import pytest

from relaycache.models import Event
from relaycache.services.ingester.configs import (
    ENV_ARTICLE_A_LIST,
    ENV_ARTICLE_E_LIST,
    ENV_DAYS_ARTICLES,
    ENV_DAYS_THREADS,
    ENV_UPSTREAMS,
)
from relaycache.utils.transport import Frame, FrameType


# Placeholder replaced by the subscription id of the REQ a fake connection received
SUB = "$sub"
# Script item that blocks recv() until the caller's deadline fires
HANG = object()

PUBKEY = "ab" * 32
SIG = "cd" * 64


# ============================================================================
# Logging / Environment
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


@pytest.fixture(autouse=True)
def clean_ingest_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the host environment from leaking into config tests."""
    for name in (
        ENV_UPSTREAMS,
        ENV_DAYS_ARTICLES,
        ENV_DAYS_THREADS,
        ENV_ARTICLE_E_LIST,
        ENV_ARTICLE_A_LIST,
        "NOSTR_DEFAULT_RELAY",
    ):
        monkeypatch.delenv(name, raising=False)


# ============================================================================
# Sample Data
# ============================================================================


def event_id(n: int) -> str:
    """Deterministic 64-char hex event id."""
    return f"{n:064x}"


def make_event(
    n: int = 1,
    *,
    kind: int = 1,
    created_at: int = 1_700_000_000,
    tags: list[list[str]] | None = None,
    content: str = "hello",
    pubkey: str = PUBKEY,
) -> Event:
    """Build a valid Event whose id is derived from *n*."""
    return Event(
        id=event_id(n),
        pubkey=pubkey,
        created_at=created_at,
        kind=kind,
        tags=tuple(tuple(tag) for tag in tags or []),
        content=content,
        sig=SIG,
    )


def event_frame(event: Event, subscription_id: str = SUB) -> list[Any]:
    """Build an inbound ``EVENT`` frame for *event*."""
    return ["EVENT", subscription_id, event.to_dict()]


@pytest.fixture
def sample_event() -> Event:
    return make_event(1, kind=30023, tags=[["d", "my-article"], ["title", "Hello"]])


@pytest.fixture
def sample_event_dict(sample_event: Event) -> dict[str, Any]:
    return sample_event.to_dict()


# ============================================================================
# Fake Transport
# ============================================================================


class FakeConnection:
    """In-memory stand-in for [RelayConnection][relaycache.utils.transport.RelayConnection].

    Replays a script of inbound items and records every outbound frame.
    Script items may be a decoded frame (list), a raw string, a
    [Frame][relaycache.utils.transport.Frame], an exception to raise, or
    ``HANG``. An exhausted script behaves like a closed socket.
    """

    def __init__(
        self,
        url: str,
        script: list[Any],
        *,
        connect_timeout: float = 10.0,
        connect_error: BaseException | None = None,
    ) -> None:
        self.url = url
        self.connect_timeout = connect_timeout
        self._script = list(script)
        self._connect_error = connect_error
        self._connected = False
        self.sent: list[list[Any]] = []
        self.pongs: list[bytes] = []
        self.close_calls = 0
        self.subscription_id: str | None = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        if self._connect_error is not None:
            raise self._connect_error
        self._connected = True

    async def send(self, payload: list[Any]) -> None:
        if not self._connected:
            raise OSError(f"Not connected: {self.url}")
        json.dumps(payload)
        self.sent.append(payload)
        if payload[0] == "REQ":
            self.subscription_id = payload[1]

    async def pong(self, data: bytes = b"") -> None:
        self.pongs.append(data)

    async def recv(self, timeout: float | None = None) -> Frame | None:  # noqa: ASYNC109
        if not self._connected:
            return None
        if not self._script:
            self._connected = False
            return None

        item = self._script.pop(0)
        if item is HANG:
            await asyncio.sleep(3600)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, Frame):
            return item
        if isinstance(item, str):
            return Frame(FrameType.TEXT, item)
        return Frame(FrameType.TEXT, json.dumps(self._render(item)))

    async def close(self) -> None:
        self.close_calls += 1
        self._connected = False

    def _render(self, frame: list[Any]) -> list[Any]:
        return [self.subscription_id if part == SUB else part for part in frame]

    def sent_labels(self) -> list[str]:
        return [frame[0] for frame in self.sent]


class FakeRelayNetwork:
    """Connection factory keyed by relay URL.

    Every connection to a URL replays a fresh copy of that URL's script, so
    the same network can serve repeated runs.
    """

    def __init__(self) -> None:
        self._scripts: dict[str, list[Any]] = {}
        self._failures: dict[str, BaseException] = {}
        self.connections: list[FakeConnection] = []

    def script(self, url: str, *items: Any) -> None:
        self._scripts[url] = list(items)

    def fail(self, url: str, error: BaseException) -> None:
        self._failures[url] = error

    def __call__(self, url: str, *, connect_timeout: float = 10.0) -> FakeConnection:
        connection = FakeConnection(
            url,
            self._scripts.get(url, []),
            connect_timeout=connect_timeout,
            connect_error=self._failures.get(url),
        )
        self.connections.append(connection)
        return connection

    def connections_to(self, url: str) -> list[FakeConnection]:
        return [c for c in self.connections if c.url == url]

    @property
    def contacted(self) -> list[str]:
        return [c.url for c in self.connections]


@pytest.fixture
def network() -> FakeRelayNetwork:
    return FakeRelayNetwork()

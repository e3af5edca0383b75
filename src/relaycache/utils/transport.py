"""WebSocket transport for talking to a single Nostr relay.

Wraps an aiohttp ``ClientSession`` + ``ClientWebSocketResponse`` pair behind
a small connection object with explicit frame types. Automatic pong replies
are disabled (``autoping=False``) so heartbeats surface as
[Frame][relaycache.utils.transport.Frame] values and the query client can
answer them itself.

Errors from aiohttp are normalized to the builtin ``OSError`` and
``TimeoutError`` so callers never need to import aiohttp to handle them.

Examples:
    ```python
    async with RelayConnection("wss://relay.damus.io") as conn:
        await conn.send(["REQ", "sub", {"kinds": [0], "limit": 1}])
        frame = await conn.recv()
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Final, Self

import aiohttp

from relaycache.nips.nip01 import encode_frame


if TYPE_CHECKING:
    from types import TracebackType


DEFAULT_TIMEOUT: Final[float] = 10.0
_WS_CLOSE_TIMEOUT: Final[float] = 5.0


logger = logging.getLogger(__name__)


class FrameType(StrEnum):
    """Kind of WebSocket frame delivered by [RelayConnection.recv()][relaycache.utils.transport.RelayConnection.recv]."""

    TEXT = "text"
    BINARY = "binary"
    PING = "ping"
    PONG = "pong"


@dataclass(frozen=True, slots=True)
class Frame:
    """One received WebSocket frame."""

    type: FrameType
    data: str | bytes


class RelayConnection:
    """A single WebSocket connection to a relay.

    Not reusable: once closed, create a new instance.

    Attributes:
        url: The relay URL this connection targets.

    See Also:
        [RelayRequest][relaycache.utils.request.RelayRequest]: Opens one of
            these per relay, sequentially.
    """

    def __init__(
        self,
        url: str,
        *,
        connect_timeout: float = DEFAULT_TIMEOUT,
        close_timeout: float = _WS_CLOSE_TIMEOUT,
    ) -> None:
        self.url = url
        self._connect_timeout = connect_timeout
        self._close_timeout = close_timeout
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        """Open the WebSocket.

        Raises:
            TimeoutError: If the handshake does not finish within
                ``connect_timeout``.
            OSError: On any other connection failure (DNS, refused, TLS,
                bad handshake status).
        """
        if self.is_connected:
            return

        session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self._connect_timeout),
        )
        try:
            ws = await session.ws_connect(self.url, autoping=False)
        except TimeoutError:
            await session.close()
            logger.debug("ws_connect_timeout url=%s", self.url)
            raise TimeoutError(f"Connection timeout: {self.url}") from None
        except asyncio.CancelledError:
            await session.close()
            raise
        except (aiohttp.ClientError, OSError) as e:
            await session.close()
            logger.debug("ws_connect_failed url=%s error=%s", self.url, str(e))
            raise OSError(f"Connection failed: {e}") from e

        self._session = session
        self._ws = ws

    async def send(self, payload: list[Any]) -> None:
        """Send *payload* as one compact JSON text frame.

        Raises:
            OSError: If the connection is closed or the write fails.
        """
        ws = self._require_ws()
        try:
            await ws.send_str(encode_frame(payload))
        except (aiohttp.ClientError, RuntimeError) as e:
            raise OSError(f"Send failed: {e}") from e

    async def pong(self, data: bytes = b"") -> None:
        """Answer a heartbeat ping with a pong carrying the same payload."""
        ws = self._require_ws()
        try:
            await ws.pong(data)
        except (aiohttp.ClientError, RuntimeError) as e:
            raise OSError(f"Pong failed: {e}") from e

    async def recv(self, timeout: float | None = None) -> Frame | None:  # noqa: ASYNC109
        """Receive the next frame.

        Args:
            timeout: Seconds to wait, or ``None`` to wait indefinitely.

        Returns:
            The next [Frame][relaycache.utils.transport.Frame], or ``None``
            when the connection closed, errored, or timed out.
        """
        if not self.is_connected:
            return None
        assert self._ws is not None  # noqa: S101  # Checked by is_connected

        try:
            msg = await self._ws.receive(timeout=timeout)
        except TimeoutError:
            return None

        if msg.type == aiohttp.WSMsgType.TEXT:
            return Frame(FrameType.TEXT, msg.data)
        if msg.type == aiohttp.WSMsgType.BINARY:
            return Frame(FrameType.BINARY, msg.data)
        if msg.type == aiohttp.WSMsgType.PING:
            return Frame(FrameType.PING, msg.data)
        if msg.type == aiohttp.WSMsgType.PONG:
            return Frame(FrameType.PONG, msg.data)
        # CLOSE, CLOSING, CLOSED, ERROR -> connection terminated
        return None

    async def close(self) -> None:
        """Close the WebSocket and session. Idempotent, never raises."""
        ws, session = self._ws, self._session
        self._ws = None
        self._session = None
        # aiohttp can raise ClientError, ServerDisconnectedError, etc. during
        # close; teardown is best-effort.
        if ws is not None:
            with contextlib.suppress(Exception):
                await asyncio.wait_for(ws.close(), timeout=self._close_timeout)
        if session is not None:
            with contextlib.suppress(Exception):
                await asyncio.wait_for(session.close(), timeout=self._close_timeout)

    def _require_ws(self) -> aiohttp.ClientWebSocketResponse:
        if self._ws is None or self._ws.closed:
            raise OSError(f"Not connected: {self.url}")
        return self._ws

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

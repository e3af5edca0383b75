"""Single-shot relay query client.

[RelayRequest][relaycache.utils.request.RelayRequest] sends one ``REQ`` to
each relay in a list, **one relay at a time**, and collects the events each
relay returns until the subscription reaches a terminal state:

```text
Idle -> Connected -> Subscribed -+-> EOSE          (CLOSE, disconnect, next relay)
                                 +-> match         (CLOSE, disconnect, return now)
                                 +-> fatal NOTICE  (CLOSE, disconnect, next relay)
                                 +-> CLOSED        (disconnect, next relay)
                                 +-> socket ended  (disconnect, next relay)
                                 +-> timeout       (CLOSE, disconnect, next relay)
```

While subscribed, pings are answered, ``AUTH`` challenges are cached and
answered, and an ``OK`` carrying ``auth-required:`` triggers authentication
followed by a re-send of the same ``REQ`` on the same connection.

A relay that fails at the transport level contributes a single
[ErrorResponse][relaycache.nips.nip01.ErrorResponse] to the result; the
remaining relays are still queried. Results from relays queried before the
failing one are kept.

Examples:
    ```python
    request = RelayRequest(
        ["wss://relay.damus.io", "wss://nos.lol"],
        Filter(ids=[event_id], limit=1),
    ).stop_on_event_id(event_id)
    result = await request.send()
    events = collect_events(result)
    ```
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Final, Self

from relaycache.models import Event, Filter, normalize_relay_url
from relaycache.nips.nip01 import (
    AuthResponse,
    ClosedResponse,
    EoseResponse,
    ErrorResponse,
    EventResponse,
    NoticeResponse,
    NoticeSeverity,
    OkResponse,
    RelayResponse,
    UnrecognizedResponse,
    decode_frame,
    req_frame,
)

from .handshake import SubscriptionHandler
from .transport import DEFAULT_TIMEOUT, FrameType, RelayConnection


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence


DEFAULT_REQUEST_TIMEOUT: Final[float] = 15.0

logger = logging.getLogger(__name__)


class Termination(StrEnum):
    """How one relay's subscription ended."""

    EOSE = "eose"
    MATCH = "match"
    FATAL_NOTICE = "fatal_notice"
    CLOSED = "closed"
    EXHAUSTED = "exhausted"
    TIMEOUT = "timeout"


# The subscription is still open on the relay side after these
_NEEDS_CLOSE: Final[frozenset[Termination]] = frozenset(
    {Termination.EOSE, Termination.MATCH, Termination.FATAL_NOTICE, Termination.TIMEOUT}
)


class RelayRequest:
    """Issue one filtered query to a list of relays, sequentially.

    Args:
        relays: Relay URLs, queried in order. Duplicates (after URL
            normalization) are queried once.
        filters: One [Filter][relaycache.models.filter.Filter] or a sequence
            of them, sent together in a single ``REQ``.
        subscription_id: Subscription id to use. A random hex id is
            generated when omitted.
        timeout: Seconds allowed for each relay's receive loop. Exceeding
            it ends that relay's subscription like a closed socket would.
        connect_timeout: Seconds allowed for each WebSocket handshake.
        handler: [SubscriptionHandler][relaycache.utils.handshake.SubscriptionHandler]
            to use. A fresh one, with its own ephemeral keys, by default.
        connection_factory: Callable building a connection for a URL.
            Defaults to [RelayConnection][relaycache.utils.transport.RelayConnection].

    Raises:
        ValueError: If no filter is given.
    """

    def __init__(
        self,
        relays: Iterable[str],
        filters: Filter | Sequence[Filter],
        *,
        subscription_id: str | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,  # noqa: ASYNC109
        connect_timeout: float = DEFAULT_TIMEOUT,
        handler: SubscriptionHandler | None = None,
        connection_factory: Callable[..., RelayConnection] = RelayConnection,
    ) -> None:
        self._filters: tuple[Filter, ...] = (
            (filters,) if isinstance(filters, Filter) else tuple(filters)
        )
        if not self._filters:
            raise ValueError("RelayRequest needs at least one filter")

        self._relays: list[str] = list(dict.fromkeys(relays))
        self._subscription_id = subscription_id or secrets.token_hex(8)
        self._timeout = timeout
        self._connect_timeout = connect_timeout
        self._handler = handler if handler is not None else SubscriptionHandler()
        self._connection_factory = connection_factory
        self._stop_on_event_id: str | None = None
        self._challenge: str | None = None

    @property
    def subscription_id(self) -> str:
        return self._subscription_id

    @property
    def challenge(self) -> str | None:
        """Last ``AUTH`` challenge received from the relay being queried."""
        return self._challenge

    def stop_on_event_id(self, event_id: str) -> Self:
        """Return as soon as an event with *event_id* arrives from any relay.

        Relays after the one that produced the match are not contacted.
        """
        self._stop_on_event_id = event_id
        return self

    async def send(self) -> dict[str, list[RelayResponse]]:
        """Run the query against every relay and return per-relay responses.

        Returns:
            Mapping of normalized relay URL to the ``EVENT`` responses it
            delivered, or to a single ``ErrorResponse`` if it failed. In
            early-exit mode the mapping ends at the relay that matched.
        """
        result: dict[str, list[RelayResponse]] = {}

        for raw_url in self._relays:
            try:
                url = normalize_relay_url(raw_url)
            except ValueError as e:
                logger.warning("relay_url_invalid relay=%s error=%s", raw_url, str(e))
                result[raw_url] = [ErrorResponse(f"Invalid relay URL: {e}")]
                continue

            if url in result:
                continue

            responses: list[RelayResponse] = []
            try:
                termination = await self._query_relay(url, responses)
            except Exception as e:  # Intentionally broad: per-relay error boundary
                logger.warning(
                    "relay_request_failed relay=%s error=%s error_type=%s",
                    url,
                    str(e),
                    type(e).__name__,
                )
                result[url] = [
                    ErrorResponse(str(e) or type(e).__name__, timed_out=isinstance(e, TimeoutError))
                ]
                continue

            result[url] = responses
            logger.debug(
                "relay_request_done relay=%s events=%s termination=%s",
                url,
                len(responses),
                termination,
            )
            if termination is Termination.MATCH:
                break

        return result

    async def _query_relay(self, url: str, responses: list[RelayResponse]) -> Termination:
        """Run one relay's subscription to a terminal state.

        The connection is always closed on return. A ``CLOSE`` is sent at
        most once, and only while the relay still considers the
        subscription open.
        """
        self._challenge = None
        connection = self._connection_factory(url, connect_timeout=self._connect_timeout)
        termination = Termination.EXHAUSTED
        try:
            await connection.connect()
            await connection.send(self._req_frame())

            deadline = asyncio.timeout(self._timeout)
            try:
                async with deadline:
                    termination = await self._receive_loop(connection, url, responses)
            except TimeoutError:
                if not deadline.expired():
                    raise
                logger.debug("relay_request_timeout relay=%s timeout=%s", url, self._timeout)
                termination = Termination.TIMEOUT

            if termination in _NEEDS_CLOSE and connection.is_connected:
                await self._handler.send_close(connection, self._subscription_id)
        finally:
            await connection.close()

        return termination

    async def _receive_loop(
        self,
        connection: RelayConnection,
        url: str,
        responses: list[RelayResponse],
    ) -> Termination:
        while True:
            frame = await connection.recv()
            if frame is None:
                return Termination.EXHAUSTED

            if frame.type is FrameType.PING:
                await self._handler.respond_to_heartbeat(connection, _as_bytes(frame.data))
                continue
            if frame.type is not FrameType.TEXT:
                continue

            response = decode_frame(frame.data)

            if isinstance(response, EventResponse):
                if response.subscription_id != self._subscription_id:
                    continue
                responses.append(response)
                if self._stop_on_event_id is not None and (
                    response.event.id == self._stop_on_event_id
                ):
                    return Termination.MATCH

            elif isinstance(response, EoseResponse):
                if response.subscription_id == self._subscription_id:
                    return Termination.EOSE

            elif isinstance(response, NoticeResponse):
                if self._handler.classify_notice(response.message) is NoticeSeverity.FATAL:
                    logger.info("relay_notice_fatal relay=%s message=%s", url, response.message)
                    return Termination.FATAL_NOTICE
                logger.debug("relay_notice relay=%s message=%s", url, response.message)

            elif isinstance(response, ClosedResponse):
                if response.subscription_id == self._subscription_id:
                    logger.debug("relay_closed relay=%s message=%s", url, response.message)
                    return Termination.CLOSED

            elif isinstance(response, OkResponse):
                if response.auth_required:
                    await self._handler.perform_authentication(
                        connection, url, self._challenge or ""
                    )
                    await connection.send(self._req_frame())

            elif isinstance(response, AuthResponse):
                self._challenge = response.challenge
                await self._handler.perform_authentication(connection, url, response.challenge)

            elif isinstance(response, UnrecognizedResponse):
                logger.debug("relay_frame_ignored relay=%s reason=%s", url, response.reason)

    def _req_frame(self) -> list[Any]:
        return req_frame(self._subscription_id, self._filters)


def _as_bytes(data: str | bytes) -> bytes:
    return data.encode() if isinstance(data, str) else data


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def collect_events(result: Mapping[str, Iterable[RelayResponse]]) -> list[Event]:
    """Flatten a query result into unique events, keyed by event id.

    The first copy of an id wins; later copies from other relays are the
    same content-addressed event and are dropped.
    """
    events: dict[str, Event] = {}
    for responses in result.values():
        for response in responses:
            if isinstance(response, EventResponse):
                events.setdefault(response.event.id, response.event)
    return list(events.values())


def failed_relays(result: Mapping[str, Iterable[RelayResponse]]) -> dict[str, str]:
    """Return ``{relay_url: error_message}`` for relays that failed."""
    failures: dict[str, str] = {}
    for url, responses in result.items():
        for response in responses:
            if isinstance(response, ErrorResponse):
                failures[url] = response.message
    return failures


async def fetch_event_by_id(
    relays: Iterable[str],
    event_id: str,
    **kwargs: Any,
) -> Event | None:
    """Look up one event by id, trying relays in order until one has it.

    Args:
        relays: Relay URLs, most trusted first.
        event_id: 64-char hex event id.
        **kwargs: Forwarded to [RelayRequest][relaycache.utils.request.RelayRequest].

    Returns:
        The event, or ``None`` if no relay returned it.
    """
    request = RelayRequest(relays, Filter(ids=[event_id], limit=1), **kwargs)
    result = await request.stop_on_event_id(event_id).send()
    for event in collect_events(result):
        if event.id == event_id:
            return event
    return None

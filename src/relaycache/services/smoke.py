"""Smoke test for the local cache relay.

Opens one connection, sends one bounded query, and reports whether the relay
answered. An empty result still passes: a freshly deployed cache holds no
events yet. Only a transport failure fails the check.

Examples:
    ```bash
    relaycache smoke --relay ws://localhost:7777
    ```
"""

from __future__ import annotations

import os
import secrets
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from relaycache.core.logger import Logger
from relaycache.models import EventKind, Filter, ServiceName
from relaycache.utils.request import RelayRequest, collect_events, failed_relays
from relaycache.utils.transport import RelayConnection


if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


ENV_DEFAULT_RELAY: Final[str] = "NOSTR_DEFAULT_RELAY"
FALLBACK_RELAY: Final[str] = "ws://localhost:7777"
DEFAULT_SMOKE_TIMEOUT: Final[float] = 10.0

logger = Logger(ServiceName.SMOKE)


@dataclass(frozen=True, slots=True)
class SmokeReport:
    """Outcome of [run_smoke_test()][relaycache.services.smoke.run_smoke_test]."""

    relay_url: str
    passed: bool
    event_count: int
    first_event_id: str | None
    duration_s: float
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "relay": self.relay_url,
            "passed": self.passed,
            "events": self.event_count,
            "first_event_id": self.first_event_id,
            "duration_s": self.duration_s,
            "error": self.error,
        }


def default_relay_url() -> str:
    """Relay to test when none is given: ``$NOSTR_DEFAULT_RELAY`` or localhost."""
    return os.environ.get(ENV_DEFAULT_RELAY, "").strip() or FALLBACK_RELAY


async def run_smoke_test(
    relay_url: str | None = None,
    *,
    kinds: Sequence[int] = (EventKind.LONGFORM,),
    limit: int = 1,
    timeout: float = DEFAULT_SMOKE_TIMEOUT,  # noqa: ASYNC109
    connection_factory: Callable[..., RelayConnection] = RelayConnection,
) -> SmokeReport:
    """Query *relay_url* once and report pass/fail.

    Args:
        relay_url: Relay to test. Defaults to
            [default_relay_url()][relaycache.services.smoke.default_relay_url].
        kinds: Event kinds to ask for.
        limit: Maximum events to ask for.
        timeout: Seconds allowed for the handshake and for the receive loop.
        connection_factory: Builds the connection. Replaced in tests.
    """
    url = relay_url or default_relay_url()
    request = RelayRequest(
        [url],
        Filter(kinds=list(kinds), limit=limit),
        subscription_id=f"test-{secrets.token_hex(4)}",
        timeout=timeout,
        connect_timeout=timeout,
        connection_factory=connection_factory,
    )

    logger.info("smoke_started", relay=url, subscription=request.subscription_id)
    started = time.monotonic()
    result = await request.send()
    duration = round(time.monotonic() - started, 3)

    failures = failed_relays(result)
    events = collect_events(result)
    error = next(iter(failures.values()), None)
    report = SmokeReport(
        relay_url=next(iter(result), url),
        passed=error is None,
        event_count=len(events),
        first_event_id=events[0].id if events else None,
        duration_s=duration,
        error=error,
    )

    if report.passed:
        logger.info("smoke_passed", relay=report.relay_url, events=report.event_count)
    else:
        logger.error("smoke_failed", relay=report.relay_url, error=report.error)
    return report

"""
Local cache relay storage.

The ingest pipeline writes upstream events into the cache relay through a
privileged path that bypasses the relay's client-facing write policy. Two
backends implement [EventStore][relaycache.core.store.EventStore]:

* [StrfryEventStore][relaycache.core.store.StrfryEventStore] pipes events
  into ``strfry import``, reads them back with ``strfry scan`` and reports
  ``strfry db-stats``, talking to the relay's LMDB database directly.
* [MemoryEventStore][relaycache.core.store.MemoryEventStore] keeps events in
  a dict, for tests and dry runs.

Both are keyed by event id. Re-inserting an id is a no-op, so replaying the
same upstream data any number of times converges to the same content set
without a separate dedup pass.

Examples:
    ```python
    store = build_store(StoreConfig(backend="strfry", command=["strfry"]))
    async with store:
        inserted = await store.insert_events(events)
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import re
from abc import ABC, abstractmethod
from collections import Counter
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Self

from pydantic import BaseModel, Field

from relaycache.models import Event, Filter

from .exceptions import StoreError


if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import TracebackType


logger = logging.getLogger(__name__)


class StoreBackend(StrEnum):
    """Available [EventStore][relaycache.core.store.EventStore] implementations."""

    MEMORY = "memory"
    STRFRY = "strfry"


class StoreConfig(BaseModel):
    """Configuration for the cache relay storage backend.

    ``command`` is the argv prefix that runs strfry, so a containerised relay
    can be reached with e.g. ``["docker", "compose", "exec", "-T", "strfry", "strfry"]``.
    """

    backend: StoreBackend = Field(default=StoreBackend.STRFRY, description="Storage backend")
    command: list[str] = Field(
        default_factory=lambda: ["strfry"],
        min_length=1,
        description="Command prefix used to invoke strfry",
    )
    config_path: str | None = Field(
        default=None, description="strfry.conf path passed as --config (None = strfry default)"
    )
    timeout: float = Field(
        default=300.0, gt=0.0, le=3600.0, description="Seconds allowed per strfry invocation"
    )


class EventStore(ABC):
    """Content-addressed event storage of the local cache relay."""

    @abstractmethod
    async def insert_events(self, events: Iterable[Event]) -> int:
        """Store *events*, skipping ids already present.

        Returns:
            Number of events that were newly stored.

        Raises:
            StoreError: If the backend fails.
        """

    @abstractmethod
    async def scan(self, filter: Filter) -> list[Event]:  # noqa: A002
        """Return stored events matching *filter*, newest first, honouring ``limit``."""

    @abstractmethod
    async def stats(self) -> dict[str, Any]:
        """Return backend statistics as a JSON-serializable mapping."""

    async def open(self) -> None:  # noqa: B027
        """Acquire backend resources. No-op by default."""

    async def close(self) -> None:  # noqa: B027
        """Release backend resources. No-op by default."""

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.close()


def _newest_first(events: Iterable[Event], limit: int | None) -> list[Event]:
    ordered = sorted(events, key=lambda e: (-e.created_at, e.id))
    return ordered if limit is None else ordered[:limit]


class MemoryEventStore(EventStore):
    """In-process store backed by a dict keyed by event id."""

    def __init__(self) -> None:
        self._events: dict[str, Event] = {}

    async def insert_events(self, events: Iterable[Event]) -> int:
        inserted = 0
        for event in events:
            if event.id not in self._events:
                self._events[event.id] = event
                inserted += 1
        return inserted

    async def scan(self, filter: Filter) -> list[Event]:  # noqa: A002
        return _newest_first((e for e in self._events.values() if filter.matches(e)), filter.limit)

    async def stats(self) -> dict[str, Any]:
        kinds = Counter(event.kind for event in self._events.values())
        return {
            "backend": str(StoreBackend.MEMORY),
            "events": len(self._events),
            "kinds": {str(kind): count for kind, count in sorted(kinds.items())},
        }

    @property
    def ids(self) -> frozenset[str]:
        return frozenset(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._events


# strfry import summarises with e.g. "... 12 added, 3 rejected, 40 dups"
_IMPORT_ADDED_RE = re.compile(r"(\d+)\s+(?:added|imported|inserted)", re.IGNORECASE)


class StrfryEventStore(EventStore):
    """Store that shells out to the ``strfry`` binary of the cache relay.

    Writes go through ``strfry import``, which stores into the relay database
    directly and is never routed through the relay's ``writePolicy`` plugin.
    """

    def __init__(self, config: StoreConfig | None = None) -> None:
        self._config = config or StoreConfig()

    def _argv(self, *args: str) -> list[str]:
        argv = list(self._config.command)
        if self._config.config_path:
            argv.append(f"--config={self._config.config_path}")
        argv.extend(args)
        return argv

    async def _run(self, *args: str, stdin: bytes | None = None) -> tuple[bytes, bytes]:
        argv = self._argv(*args)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise StoreError(f"Cannot run {argv[0]}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(stdin), timeout=self._config.timeout
            )
        except TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            raise StoreError(
                f"strfry {args[0]} timed out after {self._config.timeout}s"
            ) from None

        if proc.returncode != 0:
            tail = stderr.decode(errors="replace").strip()[-500:]
            raise StoreError(f"strfry {args[0]} exited with {proc.returncode}: {tail}")

        return stdout, stderr

    async def insert_events(self, events: Iterable[Event]) -> int:
        unique = {event.id: event for event in events}
        if not unique:
            return 0

        payload = "".join(
            json.dumps(event.to_dict(), separators=(",", ":"), ensure_ascii=False) + "\n"
            for event in unique.values()
        ).encode()
        stdout, stderr = await self._run("import", stdin=payload)

        match = _IMPORT_ADDED_RE.search((stderr + stdout).decode(errors="replace"))
        inserted = int(match.group(1)) if match else len(unique)
        logger.debug("strfry_import submitted=%s inserted=%s", len(unique), inserted)
        return inserted

    async def scan(self, filter: Filter) -> list[Event]:  # noqa: A002
        query = json.dumps(filter.to_dict(), separators=(",", ":"))
        stdout, _ = await self._run("scan", query)

        events: list[Event] = []
        for line in stdout.decode(errors="replace").splitlines():
            if not line.strip():
                continue
            try:
                events.append(Event.from_dict(json.loads(line)))
            except (ValueError, TypeError) as e:
                logger.debug("strfry_scan_bad_line error=%s", str(e))
        return _newest_first(events, filter.limit)

    async def stats(self) -> dict[str, Any]:
        """Run ``strfry db-stats`` and return its report verbatim."""
        stdout, _ = await self._run("db-stats")
        return {
            "backend": str(StoreBackend.STRFRY),
            "db_stats": stdout.decode(errors="replace").strip(),
        }


def build_store(config: StoreConfig | None = None) -> EventStore:
    """Instantiate the backend selected by *config*."""
    config = config or StoreConfig()
    if config.backend is StoreBackend.MEMORY:
        return MemoryEventStore()
    return StrfryEventStore(config)

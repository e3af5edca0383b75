"""Export, import and statistics over the cache relay store.

Operator commands that move events in and out of an
[EventStore][relaycache.core.store.EventStore] as JSON lines, one NIP-01
event object per line. Imports go through the same privileged insert path
as the ingester, so the write-policy gate never sees them.

Examples:
    ```bash
    relaycache export --kinds 30023 --output articles.jsonl
    relaycache import articles.jsonl
    relaycache stats
    ```
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from relaycache.core.logger import Logger
from relaycache.models import Event, ServiceName


if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import IO

    from relaycache.core.store import EventStore
    from relaycache.models import Filter


DEFAULT_IMPORT_BATCH_SIZE: Final[int] = 1_000

logger = Logger(ServiceName.MAINTENANCE)


@dataclass(frozen=True, slots=True)
class ImportSummary:
    """Outcome of [import_events()][relaycache.services.maintenance.import_events].

    Attributes:
        read: Non-blank lines read.
        inserted: Events the store did not already hold.
        invalid: Lines that were not a well-formed event and were skipped.
    """

    read: int
    inserted: int
    invalid: int

    def to_dict(self) -> dict[str, Any]:
        return {"read": self.read, "inserted": self.inserted, "invalid": self.invalid}


def _dump(event: Event) -> str:
    return json.dumps(event.to_dict(), separators=(",", ":"), ensure_ascii=False)


async def export_events(store: EventStore, out: IO[str], filter: Filter) -> int:  # noqa: A002
    """Write every stored event matching *filter* to *out*, newest first.

    Returns:
        The number of events written.
    """
    events = await store.scan(filter)
    for event in events:
        out.write(_dump(event) + "\n")
    out.flush()

    logger.info("export_completed", events=len(events))
    return len(events)


async def import_events(
    store: EventStore,
    lines: Iterable[str],
    *,
    batch_size: int = DEFAULT_IMPORT_BATCH_SIZE,
) -> ImportSummary:
    """Insert the events read from *lines* into *store*.

    Blank lines are skipped. A line that is not valid JSON or not a valid
    event is counted as invalid and logged, and the import goes on.

    Args:
        store: Destination store, already open.
        lines: JSON lines, e.g. an open text file.
        batch_size: Events handed to the store per insert.

    Raises:
        ValueError: If *batch_size* is not positive.
        StoreError: If the store rejects a batch.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    read = inserted = invalid = 0
    batch: list[Event] = []

    for number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        read += 1
        try:
            batch.append(Event.from_dict(json.loads(line)))
        except (ValueError, TypeError, RecursionError) as e:
            invalid += 1
            logger.warning("import_line_invalid", line=number, error=str(e) or type(e).__name__)
            continue

        if len(batch) >= batch_size:
            inserted += await store.insert_events(batch)
            batch = []

    if batch:
        inserted += await store.insert_events(batch)

    summary = ImportSummary(read=read, inserted=inserted, invalid=invalid)
    logger.info("import_completed", **summary.to_dict())
    return summary

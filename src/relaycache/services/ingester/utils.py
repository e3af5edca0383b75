"""Ingester service utility functions.

Filter menu construction, job expansion, and the per-job sync step.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from relaycache.core.exceptions import ConnectivityError, RelayTimeoutError
from relaycache.models import EventKind, Filter, SyncJob
from relaycache.nips.nip01 import ErrorResponse
from relaycache.utils.request import RelayRequest, collect_events
from relaycache.utils.transport import RelayConnection


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from relaycache.core.store import EventStore

    from .configs import ReferencesConfig, ResolvedWindows


SECONDS_PER_DAY: Final[int] = 86_400


class FilterLabel(StrEnum):
    """Job labels. ``ARTICLES`` to ``DELETIONS`` form the windowed menu, in order."""

    ARTICLES = "articles"
    REPLIES_BY_EVENT_ID = "replies_by_event_id"
    REPLIES_BY_COORDINATE = "replies_by_coordinate"
    REACTIONS = "reactions"
    ZAP_RECEIPTS = "zap_receipts"
    HIGHLIGHTS = "highlights"
    PROFILES = "profiles"
    DELETIONS = "deletions"
    BROAD = "broad"


# Articles, drafts, comments, media posts, profiles and highlights
BROAD_KINDS: Final[tuple[EventKind, ...]] = (
    EventKind.LONGFORM,
    EventKind.LONGFORM_DRAFT,
    EventKind.COMMENT,
    EventKind.PICTURE,
    EventKind.VIDEO,
    EventKind.SHORT_VIDEO,
    EventKind.METADATA,
    EventKind.HIGHLIGHT,
)


# =============================================================================
# Filter Menu
# =============================================================================


def build_filter_menu(
    now: int,
    windows: ResolvedWindows,
    references: ReferencesConfig,
) -> list[tuple[FilterLabel, Filter]]:
    """Build the labelled ingest filters for a run starting at *now*.

    Every ``since`` is computed from *now*, so calling this again later
    yields later windows; nothing is cached between runs.

    Args:
        now: Run start as a Unix timestamp.
        windows: Effective day counts for this run.
        references: Known article ids and coordinates.

    Returns:
        ``(label, filter)`` pairs in a fixed order.
    """
    articles_since = now - windows.articles_days * SECONDS_PER_DAY
    threads_since = now - windows.threads_days * SECONDS_PER_DAY
    deletes_since = now - windows.deletes_days * SECONDS_PER_DAY
    event_ids = references.event_ids
    coordinates = references.coordinates

    return [
        (FilterLabel.ARTICLES, Filter(kinds=[EventKind.LONGFORM], since=articles_since)),
        (
            FilterLabel.REPLIES_BY_EVENT_ID,
            Filter(kinds=[EventKind.TEXT_NOTE], tags={"e": event_ids}, since=threads_since),
        ),
        (
            FilterLabel.REPLIES_BY_COORDINATE,
            Filter(kinds=[EventKind.TEXT_NOTE], tags={"a": coordinates}, since=threads_since),
        ),
        (FilterLabel.REACTIONS, Filter(kinds=[EventKind.REACTION], tags={"e": event_ids})),
        (FilterLabel.ZAP_RECEIPTS, Filter(kinds=[EventKind.ZAP_RECEIPT], tags={"e": event_ids})),
        (FilterLabel.HIGHLIGHTS, Filter(kinds=[EventKind.HIGHLIGHT], tags={"a": coordinates})),
        (FilterLabel.PROFILES, Filter(kinds=[EventKind.METADATA])),
        (FilterLabel.DELETIONS, Filter(kinds=[EventKind.DELETION], since=deletes_since)),
    ]


def build_broad_menu(limit: int) -> list[tuple[FilterLabel, Filter]]:
    """Build the single-filter broad menu: every ``BROAD_KINDS`` kind, newest *limit*.

    No time window applies; the relay's ``limit`` caps each upstream's answer.
    """
    return [(FilterLabel.BROAD, Filter(kinds=list(BROAD_KINDS), limit=limit))]


def build_sync_jobs(
    upstreams: Iterable[str],
    menu: Sequence[tuple[str, Filter]],
) -> list[SyncJob]:
    """Expand upstreams x menu into jobs, every filter of one relay before the next relay."""
    return [
        SyncJob(upstream_url=url, filter=filter_, label=str(label))
        for url in upstreams
        for label, filter_ in menu
    ]


# =============================================================================
# Sync State Types
# =============================================================================


@dataclass(slots=True)
class IngestCycleCounters:
    """Per-cycle job and event counters.

    See Also:
        [Ingester][relaycache.services.ingester.Ingester]: Service that owns
            an instance of this dataclass.
    """

    jobs_succeeded: int = 0
    jobs_failed: int = 0
    jobs_skipped: int = 0
    events_received: int = 0
    events_synced: int = 0

    def reset(self) -> None:
        self.jobs_succeeded = 0
        self.jobs_failed = 0
        self.jobs_skipped = 0
        self.events_received = 0
        self.events_synced = 0


@dataclass(frozen=True, slots=True)
class SyncContext:
    """Immutable settings shared by every job of a cycle."""

    store: EventStore
    request_timeout: float
    connect_timeout: float
    connection_factory: Callable[..., RelayConnection] = RelayConnection


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    """Result of one job."""

    received: int
    inserted: int
    skipped: bool = False


# =============================================================================
# Core Sync Function
# =============================================================================


async def sync_job(job: SyncJob, ctx: SyncContext) -> SyncOutcome:
    """Replay *job*'s filter against its upstream and store what comes back.

    Filters made unsatisfiable by an empty reference list are skipped
    without contacting the upstream.

    Raises:
        RelayTimeoutError: If connecting to the upstream timed out.
        ConnectivityError: If the upstream could not be queried otherwise.
        StoreError: If the cache relay rejected the write.
    """
    if job.filter.matches_nothing:
        return SyncOutcome(received=0, inserted=0, skipped=True)

    request = RelayRequest(
        [job.upstream_url],
        job.filter,
        timeout=ctx.request_timeout,
        connect_timeout=ctx.connect_timeout,
        connection_factory=ctx.connection_factory,
    )
    result = await request.send()

    errors = [r for responses in result.values() for r in responses if isinstance(r, ErrorResponse)]
    if errors:
        error = RelayTimeoutError if errors[0].timed_out else ConnectivityError
        raise error(errors[0].message, job.upstream_url)

    events = collect_events(result)
    inserted = await ctx.store.insert_events(events) if events else 0
    return SyncOutcome(received=len(events), inserted=inserted)

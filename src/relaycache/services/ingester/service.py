"""Ingester service for relaycache.

Mirrors selected upstream content into the local cache relay. Each cycle:

1. Computes the filter menu from the current wall-clock time via
   [build_filter_menu()][relaycache.services.ingester.utils.build_filter_menu]
   (long-form articles, thread replies, reactions, zap receipts,
   highlights, profiles, deletions), or takes the single capped filter of
   [build_broad_menu()][relaycache.services.ingester.utils.build_broad_menu]
   when ``menu: broad`` is configured.
2. Expands it into one [SyncJob][relaycache.models.SyncJob] per
   (upstream, filter), relay-major.
3. Runs the jobs one after another. Each job queries its upstream with
   [RelayRequest][relaycache.utils.request.RelayRequest] and writes the
   events into the [EventStore][relaycache.core.store.EventStore].

A failing job is logged as a warning and the cycle moves on to the next one;
a cycle with every upstream down completes with zero events synced. Writes
are keyed by event id, so re-running a cycle converges to the same content.

Examples:
    ```python
    from relaycache.core.store import StrfryEventStore
    from relaycache.services.ingester import Ingester

    store = StrfryEventStore()
    ingester = Ingester.from_yaml("config/services/ingester.yaml", store=store)

    async with store, ingester:
        await ingester.run_forever()
    ```
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, ClassVar

from relaycache.core.base_service import BaseService
from relaycache.models.constants import ServiceName
from relaycache.utils.transport import RelayConnection

from .configs import FilterMenu, IngesterConfig
from .utils import (
    IngestCycleCounters,
    SyncContext,
    build_broad_menu,
    build_filter_menu,
    build_sync_jobs,
    sync_job,
)


if TYPE_CHECKING:
    from collections.abc import Callable

    from relaycache.core.store import EventStore
    from relaycache.models import SyncJob


class Ingester(BaseService[IngesterConfig]):
    """Upstream-to-cache synchronization service.

    Args:
        store: Cache relay storage written through its privileged path.
        config: Service configuration. Defaults (plus environment
            overrides) when omitted.
        clock: Returns the current Unix time. Read once per cycle.
        connection_factory: Builds relay connections. Replaced in tests.

    See Also:
        [IngesterConfig][relaycache.services.ingester.IngesterConfig]:
            Configuration model for this service.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.INGESTER
    CONFIG_CLASS: ClassVar[type[IngesterConfig]] = IngesterConfig

    def __init__(
        self,
        store: EventStore,
        config: IngesterConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
        connection_factory: Callable[..., RelayConnection] = RelayConnection,
    ) -> None:
        super().__init__(store=store, config=config or IngesterConfig())
        self._config: IngesterConfig
        self._clock = clock
        self._connection_factory = connection_factory
        self._counters = IngestCycleCounters()

    @property
    def counters(self) -> IngestCycleCounters:
        """Counters of the most recent cycle."""
        return self._counters

    def build_jobs(self, now: int) -> list[SyncJob]:
        """Build this cycle's jobs for a run starting at *now*, from the configured menu."""
        if self._config.menu is FilterMenu.BROAD:
            menu = build_broad_menu(self._config.broad_limit)
        else:
            menu = build_filter_menu(
                now,
                self._config.resolved_windows(),
                self._config.references,
            )
        return build_sync_jobs(self._config.upstreams, menu)

    async def run(self) -> None:
        """Execute one pass over every (upstream, filter) job."""
        now = int(self._clock())
        windows = self._config.resolved_windows()
        jobs = self.build_jobs(now)

        self._logger.info(
            "cycle_started",
            upstreams=len(self._config.upstreams),
            jobs=len(jobs),
            menu=self._config.menu,
            backfill=self._config.backfill,
            articles_days=windows.articles_days,
            threads_days=windows.threads_days,
        )

        cycle_start = time.monotonic()
        self._counters.reset()

        await self.synchronize(jobs)

        self.set_gauge("jobs_total", len(jobs))
        self.set_gauge("jobs_succeeded", self._counters.jobs_succeeded)
        self.set_gauge("jobs_failed", self._counters.jobs_failed)
        self.set_gauge("events_synced", self._counters.events_synced)
        self.inc_counter("total_jobs_failed", self._counters.jobs_failed)
        self.inc_counter("total_events_synced", self._counters.events_synced)

        self._logger.info(
            "cycle_completed",
            jobs_succeeded=self._counters.jobs_succeeded,
            jobs_failed=self._counters.jobs_failed,
            jobs_skipped=self._counters.jobs_skipped,
            events_received=self._counters.events_received,
            events_synced=self._counters.events_synced,
            duration_s=round(time.monotonic() - cycle_start, 2),
        )

    async def synchronize(self, jobs: list[SyncJob]) -> None:
        """Run *jobs* sequentially, isolating each job's failure."""
        ctx = SyncContext(
            store=self._store,
            request_timeout=self._config.timeouts.request,
            connect_timeout=self._config.timeouts.connect,
            connection_factory=self._connection_factory,
        )

        for index, job in enumerate(jobs):
            if not self.is_running:
                self._logger.info("cycle_interrupted", remaining=len(jobs) - index)
                break

            log = self._logger.bind(relay=job.upstream_url, label=job.label)
            try:
                outcome = await sync_job(job, ctx)
            except Exception as e:  # Intentionally broad: per-job error boundary, one upstream must not block the others
                self._counters.jobs_failed += 1
                log.warning(
                    "sync_job_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if outcome.skipped:
                self._counters.jobs_skipped += 1
                log.debug("sync_job_skipped", reason="empty reference list")
                continue

            self._counters.jobs_succeeded += 1
            self._counters.events_received += outcome.received
            self._counters.events_synced += outcome.inserted
            log.debug("sync_job_completed", received=outcome.received, inserted=outcome.inserted)

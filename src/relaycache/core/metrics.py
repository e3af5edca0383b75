"""
Prometheus metrics for relaycache services.

Four process-wide collectors, labelled by service:

```text
relaycache_service_info                     static, set when run_forever() starts
relaycache_cycle_duration_seconds{service}  histogram of successful cycles
relaycache_service_gauge{service,name}      point-in-time values
relaycache_service_counter{service,name}    running totals
```

Names used by [BaseService][relaycache.core.base_service.BaseService]:
gauges ``consecutive_failures`` and ``last_success_timestamp``; counters
``cycles_succeeded``, ``cycles_failed`` and ``errors_<ExceptionType>``.
The [Ingester][relaycache.services.ingester.Ingester] adds gauges
``jobs_total``, ``jobs_succeeded``, ``jobs_failed``, ``events_synced`` and
counters ``total_jobs_failed``, ``total_events_synced``.

The exposition endpoint is a small aiohttp app, started by the CLI in
continuous mode only.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from pydantic import BaseModel, Field


class MetricsConfig(BaseModel):
    """Where and whether to expose ``/metrics``.

    Collection and exposition are both off by default; a one-shot ingest
    run has nobody to scrape it.
    """

    enabled: bool = Field(default=False, description="Record metrics and serve the endpoint")
    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8000, ge=1024, le=65535, description="Bind port")
    path: str = Field(default="/metrics", description="Exposition path")


SERVICE_INFO = Info(
    "relaycache_service",
    "Static service identity",
)

# Ingest cycles range from a few seconds (everything skipped) to the full interval
CYCLE_DURATION_SECONDS = Histogram(
    "relaycache_cycle_duration_seconds",
    "Wall-clock duration of successful service cycles",
    ["service"],
    buckets=(5, 15, 30, 60, 120, 300, 600, 1200, 1800, 3600),
)

SERVICE_GAUGE = Gauge(
    "relaycache_service_gauge",
    "Per-service point-in-time values, keyed by name",
    ["service", "name"],
)

SERVICE_COUNTER = Counter(
    "relaycache_service_counter",
    "Per-service running totals, keyed by name",
    ["service", "name"],
)


class MetricsServer:
    """Serves the default Prometheus registry over HTTP.

    Examples:
        ```python
        server = MetricsServer(MetricsConfig(enabled=True, port=9100))
        await server.start()
        ...
        await server.stop()
        ```
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    @property
    def running(self) -> bool:
        return self._runner is not None

    @property
    def url(self) -> str:
        return f"http://{self._config.host}:{self._config.port}{self._config.path}"

    async def start(self) -> None:
        """Bind and serve. Does nothing when metrics are disabled.

        Raises:
            OSError: If the address cannot be bound.
        """
        if not self._config.enabled or self._runner is not None:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._scrape)
        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        try:
            await web.TCPSite(runner, self._config.host, self._config.port).start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner = runner

    async def stop(self) -> None:
        """Stop serving. Safe to call more than once."""
        runner, self._runner = self._runner, None
        if runner is not None:
            await runner.cleanup()

    @staticmethod
    async def _scrape(_request: web.Request) -> web.Response:
        return web.Response(body=generate_latest(), headers={"Content-Type": CONTENT_TYPE_LATEST})


async def start_metrics_server(config: MetricsConfig | None = None) -> MetricsServer:
    """Create and start a [MetricsServer][relaycache.core.metrics.MetricsServer].

    The caller owns the returned server and must ``stop()`` it.
    """
    server = MetricsServer(config or MetricsConfig())
    await server.start()
    return server

"""
Abstract base class for relaycache services.

A service does its work in bounded cycles. ``BaseService[ConfigT]`` owns
everything around a cycle so subclasses only implement
[run()][relaycache.core.base_service.BaseService.run]:

```text
run_forever()
  └── loop until shutdown or failure limit
        ├── run_cycle()   time + log + record one run()
        └── wait(interval)
```

Services receive the cache relay's [EventStore][relaycache.core.store.EventStore]
on construction and write to it through its privileged path.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Generic, Self, TypeVar, cast

from pydantic import BaseModel, Field

from relaycache.models.constants import ServiceName

from .logger import Logger
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
)
from .yaml import load_yaml


if TYPE_CHECKING:
    from pathlib import Path
    from types import TracebackType

    from .store import EventStore


class BaseServiceConfig(BaseModel):
    """Scheduling and metrics settings shared by every service config.

    Subclass this to add service-specific fields.
    """

    interval: float = Field(
        default=3600.0,
        ge=60.0,
        description="Seconds to sleep between the end of one cycle and the next",
    )
    max_consecutive_failures: int = Field(
        default=5,
        ge=0,
        description="Give up after this many failed cycles in a row (0 = never)",
    )
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


ConfigT = TypeVar("ConfigT", bound=BaseServiceConfig)


class BaseService(ABC, Generic[ConfigT]):
    """Cycle runner for relaycache services.

    Subclasses set ``SERVICE_NAME`` and ``CONFIG_CLASS`` and implement
    [run()][relaycache.core.base_service.BaseService.run].

    Attributes:
        SERVICE_NAME: Logger name and ``service`` metrics label.
        CONFIG_CLASS: Pydantic model the factory methods parse into.

    Note:
        Lifecycle: ``async with store:`` then ``async with service:`` then
        [run_forever()][relaycache.core.base_service.BaseService.run_forever],
        or a single [run()][relaycache.core.base_service.BaseService.run]
        with ``--once``.
    """

    SERVICE_NAME: ClassVar[ServiceName]
    CONFIG_CLASS: ClassVar[type[BaseModel]]

    def __init__(self, store: EventStore, config: ConfigT | None = None) -> None:
        if config is None:
            config = cast("ConfigT", self.CONFIG_CLASS())
        self._store = store
        self._config: ConfigT = config
        self._logger = Logger(self.SERVICE_NAME)
        self._stop = asyncio.Event()
        self._cycles = 0

    @property
    def config(self) -> ConfigT:
        return self._config

    @property
    def store(self) -> EventStore:
        return self._store

    @property
    def cycle_count(self) -> int:
        """Cycles started by [run_cycle()][relaycache.core.base_service.BaseService.run_cycle]."""
        return self._cycles

    @abstractmethod
    async def run(self) -> None:
        """Do one cycle of work.

        Implementations should check
        [is_running][relaycache.core.base_service.BaseService.is_running]
        between units of work so a shutdown does not wait for the whole cycle.
        """
        ...

    # -------------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------------

    def request_shutdown(self) -> None:
        """Ask the service to stop after the current unit of work. Signal-safe."""
        self._stop.set()

    @property
    def is_running(self) -> bool:
        return not self._stop.is_set()

    async def wait(self, timeout: float) -> bool:  # noqa: ASYNC109
        """Sleep up to *timeout* seconds; return True if shutdown cut it short."""
        try:
            async with asyncio.timeout(timeout):
                await self._stop.wait()
        except TimeoutError:
            return False
        return True

    # -------------------------------------------------------------------------
    # Cycles
    # -------------------------------------------------------------------------

    async def run_cycle(self) -> bool:
        """Run [run()][relaycache.core.base_service.BaseService.run] once and record the outcome.

        Returns:
            True if the cycle completed, False if it raised. Cancellation,
            ``KeyboardInterrupt`` and ``SystemExit`` propagate.
        """
        self._cycles += 1
        started = time.monotonic()
        try:
            await self.run()
        except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
            raise
        except Exception as e:  # Intentionally broad: one bad cycle must not kill the service
            self.inc_counter("cycles_failed")
            self.inc_counter(f"errors_{type(e).__name__}")
            self._logger.error(
                "cycle_failed",
                cycle=self._cycles,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        elapsed = time.monotonic() - started
        self.inc_counter("cycles_succeeded")
        self.set_gauge("last_success_timestamp", time.time())
        if self._config.metrics.enabled:
            CYCLE_DURATION_SECONDS.labels(service=self.SERVICE_NAME).observe(elapsed)
        return True

    async def run_forever(self) -> None:
        """Repeat [run_cycle()][relaycache.core.base_service.BaseService.run_cycle] every ``config.interval`` seconds.

        Stops on shutdown, or once ``config.max_consecutive_failures``
        cycles in a row have failed.
        """
        interval = self._config.interval
        limit = self._config.max_consecutive_failures
        if self._config.metrics.enabled:
            SERVICE_INFO.info({"service": str(self.SERVICE_NAME)})

        self._logger.info("service_loop_started", interval_s=interval, failure_limit=limit)

        failures = 0
        while self.is_running:
            if await self.run_cycle():
                failures = 0
                self._logger.info("next_cycle_scheduled", in_s=interval)
            else:
                failures += 1
                if 0 < limit <= failures:
                    self._logger.critical("failure_limit_reached", failures=failures, limit=limit)
                    break
            self.set_gauge("consecutive_failures", failures)

            if await self.wait(interval):
                break

        self._logger.info("service_loop_stopped", cycles=self._cycles)

    # -------------------------------------------------------------------------
    # Construction from configuration
    # -------------------------------------------------------------------------

    @classmethod
    def from_yaml(cls, config_path: str | Path, store: EventStore, **kwargs: Any) -> Self:
        """Build the service from a YAML file parsed into ``CONFIG_CLASS``."""
        return cls.from_dict(load_yaml(config_path), store=store, **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any], store: EventStore, **kwargs: Any) -> Self:
        """Build the service from a mapping parsed into ``CONFIG_CLASS``."""
        return cls(store=store, config=cast("ConfigT", cls.CONFIG_CLASS(**data)), **kwargs)

    async def __aenter__(self) -> Self:
        self._stop.clear()
        self._logger.info("service_started")
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        self._stop.set()
        self._logger.info("service_stopped", cycles=self._cycles)

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def set_gauge(self, name: str, value: float) -> None:
        """Set ``relaycache_service_gauge{service, name}``. No-op with metrics off."""
        if self._config.metrics.enabled:
            SERVICE_GAUGE.labels(service=self.SERVICE_NAME, name=name).set(value)

    def inc_counter(self, name: str, value: float = 1) -> None:
        """Add to ``relaycache_service_counter{service, name}``. No-op with metrics off."""
        if self._config.metrics.enabled:
            SERVICE_COUNTER.labels(service=self.SERVICE_NAME, name=name).inc(value)

"""Core layer providing the foundation for relaycache services.

Depends only on ``relaycache.models`` and is depended upon by
``relaycache.services``.

Attributes:
    BaseService: Abstract generic service with ``run()``/``run_forever()``
        lifecycle, YAML/dict factories and Prometheus metrics.
    EventStore: Content-addressed storage of the local cache relay, with
        strfry and in-memory backends.
    Logger: Structured logger supporting key=value and JSON output modes.
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.
"""

from .base_service import BaseService, BaseServiceConfig, ConfigT
from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    RelayCacheError,
    RelayTimeoutError,
    StoreError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs, setup_logging
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .store import (
    EventStore,
    MemoryEventStore,
    StoreBackend,
    StoreConfig,
    StrfryEventStore,
    build_store,
)
from .yaml import load_yaml


__all__ = [
    "CYCLE_DURATION_SECONDS",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "BaseService",
    "BaseServiceConfig",
    "ConfigT",
    "ConfigurationError",
    "ConnectivityError",
    "EventStore",
    "Logger",
    "MemoryEventStore",
    "MetricsConfig",
    "MetricsServer",
    "RelayCacheError",
    "RelayTimeoutError",
    "StoreBackend",
    "StoreConfig",
    "StrfryEventStore",
    "StructuredFormatter",
    "build_store",
    "format_kv_pairs",
    "load_yaml",
    "setup_logging",
    "start_metrics_server",
]

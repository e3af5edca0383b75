"""Ingester service package.

Re-exports all public symbols::

    from relaycache.services.ingester import Ingester, IngesterConfig
"""

from .configs import (
    DEFAULT_BROAD_LIMIT,
    DEFAULT_UPSTREAMS,
    FilterMenu,
    IngesterConfig,
    ReferencesConfig,
    RequestTimeoutsConfig,
    ResolvedWindows,
    WindowsConfig,
)
from .service import Ingester
from .utils import (
    BROAD_KINDS,
    FilterLabel,
    IngestCycleCounters,
    SyncContext,
    SyncOutcome,
    build_broad_menu,
    build_filter_menu,
    build_sync_jobs,
    sync_job,
)


__all__ = [
    "BROAD_KINDS",
    "DEFAULT_BROAD_LIMIT",
    "DEFAULT_UPSTREAMS",
    "FilterLabel",
    "FilterMenu",
    "IngestCycleCounters",
    "Ingester",
    "IngesterConfig",
    "ReferencesConfig",
    "RequestTimeoutsConfig",
    "ResolvedWindows",
    "SyncContext",
    "SyncOutcome",
    "WindowsConfig",
    "build_broad_menu",
    "build_filter_menu",
    "build_sync_jobs",
    "sync_job",
]

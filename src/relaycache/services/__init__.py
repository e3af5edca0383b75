"""Service layer of relaycache.

Attributes:
    Ingester: Periodic pipeline that replays a fixed menu of time-windowed
        filters against each upstream relay and stores the results in the
        local cache relay.
    maintenance: Export, import and statistics over the cache relay store.
    smoke: One-shot reachability check of the cache relay.
    write_policy: Write-policy hook that rejects every client write.

Note:
    The ingester follows the [BaseService][relaycache.core.base_service.BaseService]
    lifecycle: ``run()`` for a single cycle, ``run_forever()`` for continuous
    operation.

Examples:
    ```python
    from relaycache.core import MemoryEventStore
    from relaycache.services import Ingester

    ingester = Ingester(store=MemoryEventStore())
    await ingester.run()
    ```
"""

from .ingester import Ingester, IngesterConfig
from .maintenance import ImportSummary, export_events, import_events
from .smoke import SmokeReport, run_smoke_test
from .write_policy import evaluate, run_hook


__all__ = [
    "ImportSummary",
    "Ingester",
    "IngesterConfig",
    "SmokeReport",
    "evaluate",
    "export_events",
    "import_events",
    "run_hook",
    "run_smoke_test",
]

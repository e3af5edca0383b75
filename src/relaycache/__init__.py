r"""relaycache -- read-only Nostr cache relay feeder.

Keeps a local, read-only cache relay populated with selected content from
public upstream relays, and provides the relay query client applications use
to read from it.

Imports flow strictly downward:

```text
            services          Ingester, store maintenance, smoke test, write-policy gate
           /   |    \
        core  nips  utils     Service base/logging/metrics/store, NIP-01/42, transport + query client
           \   |    /
            models            Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Event, Filter, Relay, SyncJob, PolicyDecision.
    core: Base service, exceptions, logging, metrics, YAML, event store.
    nips: NIP-01 frame classification and encoding, NIP-42 auth events.
    utils: WebSocket transport, subscription handshakes, query client.
    services: Ingester, store maintenance, smoke test, write-policy hook.

Note:
    Top-level imports (``from relaycache import RelayRequest``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("relaycache")

__all__ = [
    "BaseService",
    "Event",
    "EventStore",
    "Filter",
    "Ingester",
    "IngesterConfig",
    "Logger",
    "MemoryEventStore",
    "PolicyDecision",
    "Relay",
    "RelayRequest",
    "StrfryEventStore",
    "SubscriptionHandler",
    "SyncJob",
    "classify",
    "collect_events",
    "fetch_event_by_id",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("relaycache.core", "BaseService"),
    "EventStore": ("relaycache.core", "EventStore"),
    "Logger": ("relaycache.core", "Logger"),
    "MemoryEventStore": ("relaycache.core", "MemoryEventStore"),
    "StrfryEventStore": ("relaycache.core", "StrfryEventStore"),
    "Event": ("relaycache.models", "Event"),
    "Filter": ("relaycache.models", "Filter"),
    "PolicyDecision": ("relaycache.models", "PolicyDecision"),
    "Relay": ("relaycache.models", "Relay"),
    "SyncJob": ("relaycache.models", "SyncJob"),
    "classify": ("relaycache.nips", "classify"),
    "RelayRequest": ("relaycache.utils.request", "RelayRequest"),
    "SubscriptionHandler": ("relaycache.utils.handshake", "SubscriptionHandler"),
    "collect_events": ("relaycache.utils.request", "collect_events"),
    "fetch_event_by_id": ("relaycache.utils.request", "fetch_event_by_id"),
    "Ingester": ("relaycache.services", "Ingester"),
    "IngesterConfig": ("relaycache.services", "IngesterConfig"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'relaycache' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__

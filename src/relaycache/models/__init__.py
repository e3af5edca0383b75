"""Pure frozen dataclasses with zero I/O for Nostr events, filters, and relays.

The models layer is the foundation of the package. It depends on nothing
else in ``relaycache``; the only third-party import is ``rfc3986`` for relay
URL validation. Every model uses ``@dataclass(frozen=True, slots=True)`` and
validates in ``__post_init__`` so invalid instances never escape the
constructor.

Attributes:
    Event: Wire-level Nostr event. Transported as-is, never re-hashed or
        signature-checked.
    Filter: NIP-01 subscription filter with wire rendering and local matching.
    Relay: Normalized ``ws://``/``wss://`` relay URL.
    SyncJob: One (upstream, filter, label) unit of ingest work.
    PolicyDecision: Accept/reject verdict of the write-policy gate.
"""

from .constants import EVENT_KIND_MAX, EventKind, ServiceName
from .event import Event
from .filter import Filter
from .policy import PolicyAction, PolicyDecision
from .relay import Relay, normalize_relay_url
from .sync_job import SyncJob


__all__ = [
    "EVENT_KIND_MAX",
    "Event",
    "EventKind",
    "Filter",
    "PolicyAction",
    "PolicyDecision",
    "Relay",
    "ServiceName",
    "SyncJob",
    "normalize_relay_url",
]

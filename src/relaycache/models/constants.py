"""Shared constants for the models layer.

Defines enumerations used across model, protocol, and service modules.
Placing them here keeps the models layer free of upward imports.

See Also:
    [Event][relaycache.models.event.Event]: Carries the kinds enumerated
        in [EventKind][relaycache.models.constants.EventKind].
    [BaseService][relaycache.core.base_service.BaseService]: Uses
        [ServiceName][relaycache.models.constants.ServiceName] as the
        logger name and metrics label.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class ServiceName(StrEnum):
    """Canonical service identifiers used in logging and metrics.

    Attributes:
        INGESTER: Periodic upstream-to-cache sync pipeline
            ([Ingester][relaycache.services.ingester.Ingester]).
        SMOKE: One-shot reachability check against the cache relay.
        WRITE_POLICY: Write-policy hook invoked by the cache relay.
        MAINTENANCE: Export, import and statistics of the cache relay store.
    """

    INGESTER = "ingester"
    SMOKE = "smoke"
    WRITE_POLICY = "write_policy"
    MAINTENANCE = "maintenance"


class EventKind(IntEnum):
    """Well-known Nostr event kinds mirrored into the cache.

    Attributes:
        METADATA: Kind 0 -- user profile metadata (NIP-01).
        TEXT_NOTE: Kind 1 -- short text note, used for thread replies.
        DELETION: Kind 5 -- deletion request (NIP-09).
        REACTION: Kind 7 -- reaction (NIP-25).
        PICTURE: Kind 20 -- picture post (NIP-68).
        VIDEO: Kind 21 -- video post (NIP-71).
        SHORT_VIDEO: Kind 22 -- short-form video post (NIP-71).
        COMMENT: Kind 1111 -- comment (NIP-22).
        ZAP_RECEIPT: Kind 9735 -- zap receipt (NIP-57).
        HIGHLIGHT: Kind 9802 -- highlight (NIP-84).
        CLIENT_AUTH: Kind 22242 -- ephemeral client authentication (NIP-42).
        LONGFORM: Kind 30023 -- long-form article (NIP-23).
        LONGFORM_DRAFT: Kind 30024 -- long-form draft (NIP-23).
    """

    METADATA = 0
    TEXT_NOTE = 1
    DELETION = 5
    REACTION = 7
    PICTURE = 20
    VIDEO = 21
    SHORT_VIDEO = 22
    COMMENT = 1_111
    ZAP_RECEIPT = 9_735
    HIGHLIGHT = 9_802
    CLIENT_AUTH = 22_242
    LONGFORM = 30_023
    LONGFORM_DRAFT = 30_024


EVENT_KIND_MAX = 65_535

# Addressable (parameterized replaceable) kind range, NIP-01
ADDRESSABLE_KIND_MIN = 30_000
ADDRESSABLE_KIND_MAX = 39_999

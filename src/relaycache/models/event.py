"""
Immutable Nostr event as transported on the wire.

Events are mirrored verbatim from upstream relays into the cache, so this
model never computes or verifies the event id or signature. It only checks
the NIP-01 field shapes, which is enough to reject garbage frames before
they reach the store.

Note:
    The shape checks are strict: uppercase hex in ``id``, ``pubkey`` or
    ``sig`` and NUL characters in ``content`` or tags are rejected. Such
    upstream events are not mirrored; the query client logs each one at
    debug level as ``relay_frame_ignored`` with the reason.

See Also:
    [Filter][relaycache.models.filter.Filter]: Matches events by kind, id,
        author, tag and time window.
    [classify()][relaycache.nips.nip01.classify]: Parses the event object
        of an inbound ``EVENT`` frame through
        [Event.from_dict()][relaycache.models.event.Event.from_dict].
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ._validation import (
    validate_hex,
    validate_instance,
    validate_int,
    validate_str_no_null,
    validate_tags,
)
from .constants import ADDRESSABLE_KIND_MAX, ADDRESSABLE_KIND_MIN, EVENT_KIND_MAX


_ID_LENGTH = 64
_PUBKEY_LENGTH = 64
_SIG_LENGTH = 128

_WIRE_FIELDS = ("id", "pubkey", "created_at", "kind", "tags", "content", "sig")


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable Nostr event.

    Attributes:
        id: 64-char lowercase hex event id (content hash, transported as-is).
        pubkey: 64-char lowercase hex author public key.
        created_at: Unix timestamp in seconds.
        kind: Event kind (0-65535).
        tags: Tag arrays, frozen to tuples.
        content: Arbitrary content string.
        sig: 128-char lowercase hex Schnorr signature (not verified).

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If a field has the right type but an invalid value.

    Examples:
        ```python
        event = Event.from_dict(json.loads(raw)[2])
        event.kind       # 30023
        event.to_dict()  # wire object, tags as lists
        ```
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: tuple[tuple[str, ...], ...] = field(default=())
    content: str = ""
    sig: str = ""

    def __post_init__(self) -> None:
        validate_hex(self.id, "id", _ID_LENGTH)
        validate_hex(self.pubkey, "pubkey", _PUBKEY_LENGTH)
        validate_int(self.created_at, "created_at")
        validate_int(self.kind, "kind", maximum=EVENT_KIND_MAX)
        validate_instance(self.tags, tuple, "tags")
        validate_str_no_null(self.content, "content")
        validate_hex(self.sig, "sig", _SIG_LENGTH)

    @classmethod
    def from_dict(cls, data: Any) -> Event:
        """Build an event from a decoded wire object.

        Unknown keys are ignored. Missing keys raise ``ValueError``.
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"event must be an object, got {type(data).__name__}")

        missing = [name for name in _WIRE_FIELDS if name not in data]
        if missing:
            raise ValueError(f"event missing fields: {', '.join(missing)}")

        tags = data["tags"]
        validate_tags(tags, "tags")

        return cls(
            id=data["id"],
            pubkey=data["pubkey"],
            created_at=data["created_at"],
            kind=data["kind"],
            tags=tuple(tuple(tag) for tag in tags),
            content=data["content"],
            sig=data["sig"],
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 wire object."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def tag_values(self, name: str) -> list[str]:
        """Return the first value of every tag named *name*, in order."""
        return [tag[1] for tag in self.tags if len(tag) > 1 and tag[0] == name]

    @property
    def is_addressable(self) -> bool:
        return ADDRESSABLE_KIND_MIN <= self.kind <= ADDRESSABLE_KIND_MAX

    @property
    def coordinate(self) -> str | None:
        """``kind:pubkey:d`` address for addressable events, else ``None``."""
        if not self.is_addressable:
            return None
        d_values = self.tag_values("d")
        return f"{self.kind}:{self.pubkey}:{d_values[0] if d_values else ''}"

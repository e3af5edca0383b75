"""
Immutable NIP-01 subscription filter.

A field left as ``None`` is unconstrained. A field given as an empty
collection is a constraint nobody can satisfy: it is rendered on the wire as
``[]`` and matches no event. This keeps "no reference ids known yet" from
silently widening into "every reply on the relay".

See Also:
    [Event][relaycache.models.event.Event]: The record a filter matches.
    [build_filter_menu()][relaycache.services.ingester.utils.build_filter_menu]:
        Builds the ingest filters from configured windows and references.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from ._validation import validate_int, validate_str_no_null
from .constants import EVENT_KIND_MAX


if TYPE_CHECKING:
    from .event import Event


_SCALAR_FIELDS = ("since", "until", "limit")


def _freeze_strings(values: Iterable[str] | None, name: str) -> tuple[str, ...] | None:
    if values is None:
        return None
    if isinstance(values, str):
        raise TypeError(f"{name} must be a list of strings, not a single string")
    frozen = tuple(values)
    for value in frozen:
        validate_str_no_null(value, name)
    return frozen


@dataclass(frozen=True, slots=True)
class Filter:
    """Subscription filter with NIP-01 matching semantics.

    Attributes:
        kinds: Allowed event kinds, or ``None`` for any.
        ids: Allowed event ids, or ``None`` for any.
        authors: Allowed author pubkeys, or ``None`` for any.
        tags: Single-letter tag name to allowed values (``{"e": [...]}``).
        since: Inclusive lower bound on ``created_at``.
        until: Inclusive upper bound on ``created_at``.
        limit: Maximum number of stored events the relay should return.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If a kind is out of range or a tag name is not a
            single letter.

    Examples:
        ```python
        f = Filter(kinds=[30023], since=now - 7 * 86_400)
        f.to_dict()   # {"kinds": [30023], "since": ...}

        Filter(kinds=[1], tags={"e": []}).matches(event)  # always False
        ```
    """

    kinds: tuple[int, ...] | None = None
    ids: tuple[str, ...] | None = None
    authors: tuple[str, ...] | None = None
    tags: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    since: int | None = None
    until: int | None = None
    limit: int | None = None

    def __post_init__(self) -> None:
        if self.kinds is not None:
            kinds = tuple(self.kinds)
            for kind in kinds:
                validate_int(kind, "kinds", maximum=EVENT_KIND_MAX)
            object.__setattr__(self, "kinds", tuple(int(kind) for kind in kinds))

        object.__setattr__(self, "ids", _freeze_strings(self.ids, "ids"))
        object.__setattr__(self, "authors", _freeze_strings(self.authors, "authors"))

        tags: dict[str, tuple[str, ...]] = {}
        for letter, values in self.tags.items():
            if not (isinstance(letter, str) and len(letter) == 1 and letter.isalpha()):
                raise ValueError(f"tag filter name must be a single letter, got {letter!r}")
            tags[letter] = _freeze_strings(values, f"#{letter}") or ()
        object.__setattr__(self, "tags", MappingProxyType(tags))

        for name in _SCALAR_FIELDS:
            value = getattr(self, name)
            if value is not None:
                validate_int(value, name)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Filter:
        """Parse a wire filter object. Unknown keys are ignored."""
        tags = {
            key[1:]: values
            for key, values in data.items()
            if isinstance(key, str) and key.startswith("#")
        }
        return cls(
            kinds=data.get("kinds"),
            ids=data.get("ids"),
            authors=data.get("authors"),
            tags=tags,
            since=data.get("since"),
            until=data.get("until"),
            limit=data.get("limit"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Render the wire filter object, omitting unconstrained fields."""
        result: dict[str, Any] = {}
        if self.kinds is not None:
            result["kinds"] = list(self.kinds)
        if self.ids is not None:
            result["ids"] = list(self.ids)
        if self.authors is not None:
            result["authors"] = list(self.authors)
        for letter, values in self.tags.items():
            result[f"#{letter}"] = list(values)
        for name in _SCALAR_FIELDS:
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        return result

    @property
    def matches_nothing(self) -> bool:
        """True if an empty constraint list makes the filter unsatisfiable."""
        if self.limit == 0:
            return True
        if any(values is not None and not values for values in (self.kinds, self.ids, self.authors)):
            return True
        return any(not values for values in self.tags.values())

    def matches(self, event: Event) -> bool:
        """Return True if *event* satisfies every constraint.

        ``limit`` is not a per-event constraint and is ignored here.
        """
        if self.kinds is not None and event.kind not in self.kinds:
            return False
        if self.ids is not None and event.id not in self.ids:
            return False
        if self.authors is not None and event.pubkey not in self.authors:
            return False
        if self.since is not None and event.created_at < self.since:
            return False
        if self.until is not None and event.created_at > self.until:
            return False
        for letter, values in self.tags.items():
            if not set(values).intersection(event.tag_values(letter)):
                return False
        return True

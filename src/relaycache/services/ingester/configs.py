"""Ingester service configuration models.

Values come from ``config/services/ingester.yaml`` and may be overridden by
environment variables, which win over the file:

```text
UPSTREAMS        space-separated upstream relay URLs
DAYS_ARTICLES    long-form window in days
DAYS_THREADS     thread reply window in days
ARTICLE_E_LIST   JSON array of known article event ids
ARTICLE_A_LIST   JSON array of known article coordinates (kind:pubkey:d)
```

See Also:
    [Ingester][relaycache.services.ingester.Ingester]: The service class that
        consumes these configurations.
    [BaseServiceConfig][relaycache.core.base_service.BaseServiceConfig]: Base
        class providing ``interval``, failure limit and metrics fields.
"""

from __future__ import annotations

import json
import os
from enum import StrEnum
from typing import Any, NamedTuple

from pydantic import BaseModel, Field, field_validator, model_validator

from relaycache.core.base_service import BaseServiceConfig
from relaycache.core.exceptions import ConfigurationError
from relaycache.models import normalize_relay_url


ENV_UPSTREAMS = "UPSTREAMS"
ENV_DAYS_ARTICLES = "DAYS_ARTICLES"
ENV_DAYS_THREADS = "DAYS_THREADS"
ENV_ARTICLE_E_LIST = "ARTICLE_E_LIST"
ENV_ARTICLE_A_LIST = "ARTICLE_A_LIST"

DEFAULT_UPSTREAMS = (
    "wss://relay.snort.social",
    "wss://relay.damus.io",
    "wss://relay.nostr.band",
)

DEFAULT_BROAD_LIMIT = 5_000

_HEX_STRING_LENGTH = 64
_MAX_DAYS = 3650


class FilterMenu(StrEnum):
    """Which filter menu each run replays.

    ``windowed`` runs the labelled, time-windowed categories (articles,
    replies, reactions, zaps, highlights, profiles, deletions). ``broad`` runs
    one capped filter over articles, drafts, comments, media posts, profiles
    and highlights, with no time window.
    """

    WINDOWED = "windowed"
    BROAD = "broad"


class ResolvedWindows(NamedTuple):
    """Day counts in effect for one run, after applying the backfill defaults."""

    articles_days: int
    threads_days: int
    deletes_days: int


class WindowsConfig(BaseModel):
    """Trailing time windows, in days, per content category.

    ``None`` means "use the mode default": 7/3 days for routine runs and
    90/30 days in backfill mode.
    """

    articles_days: int | None = Field(
        default=None, ge=0, le=_MAX_DAYS, description="Long-form window (None = mode default)"
    )
    threads_days: int | None = Field(
        default=None, ge=0, le=_MAX_DAYS, description="Thread reply window (None = mode default)"
    )
    deletes_days: int = Field(default=30, ge=0, le=_MAX_DAYS, description="Deletion window")

    articles_default: int = Field(default=7, ge=0, le=_MAX_DAYS)
    threads_default: int = Field(default=3, ge=0, le=_MAX_DAYS)
    articles_backfill_default: int = Field(default=90, ge=0, le=_MAX_DAYS)
    threads_backfill_default: int = Field(default=30, ge=0, le=_MAX_DAYS)

    def resolve(self, *, backfill: bool) -> ResolvedWindows:
        """Return the effective windows for a routine or backfill run."""
        if backfill:
            articles, threads = self.articles_backfill_default, self.threads_backfill_default
        else:
            articles, threads = self.articles_default, self.threads_default
        return ResolvedWindows(
            articles_days=self.articles_days if self.articles_days is not None else articles,
            threads_days=self.threads_days if self.threads_days is not None else threads,
            deletes_days=self.deletes_days,
        )


class ReferencesConfig(BaseModel):
    """Already-ingested content that reply, reaction, zap and highlight filters reference.

    Empty lists are valid and make the dependent filters match nothing.
    """

    event_ids: list[str] = Field(default_factory=list, description="Known article event ids")
    coordinates: list[str] = Field(
        default_factory=list, description="Known article coordinates (kind:pubkey:d)"
    )

    @field_validator("event_ids", mode="after")
    @classmethod
    def validate_event_ids(cls, v: list[str]) -> list[str]:
        for event_id in v:
            if len(event_id) != _HEX_STRING_LENGTH:
                raise ValueError(
                    f"Invalid event id length: {len(event_id)} (expected {_HEX_STRING_LENGTH})"
                )
            try:
                bytes.fromhex(event_id)
            except ValueError as e:
                raise ValueError(f"Invalid event id: {event_id}") from e
        return [event_id.lower() for event_id in v]

    @field_validator("coordinates", mode="after")
    @classmethod
    def validate_coordinates(cls, v: list[str]) -> list[str]:
        for coordinate in v:
            kind, _, rest = coordinate.partition(":")
            if not kind.isdigit() or ":" not in rest:
                raise ValueError(f"Invalid coordinate (expected kind:pubkey:d): {coordinate}")
        return v


class RequestTimeoutsConfig(BaseModel):
    """Per-upstream query timeouts in seconds."""

    request: float = Field(
        default=15.0, gt=0.0, le=600.0, description="Receive-loop timeout per upstream query"
    )
    connect: float = Field(
        default=10.0, gt=0.0, le=120.0, description="WebSocket handshake timeout"
    )


def _env_json_list(name: str) -> list[str]:
    raw = os.environ[name]
    try:
        value = json.loads(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a JSON array of strings: {e}") from e
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigurationError(f"{name} must be a JSON array of strings")
    return value


def _env_days(name: str) -> int:
    raw = os.environ[name].strip()
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


class IngesterConfig(BaseServiceConfig):
    """Ingester service configuration.

    See Also:
        [Ingester][relaycache.services.ingester.Ingester]: The service class
            that consumes this configuration.
        [build_filter_menu()][relaycache.services.ingester.utils.build_filter_menu]:
            Turns ``windows`` and ``references`` into filters.
    """

    upstreams: list[str] = Field(
        default_factory=lambda: list(DEFAULT_UPSTREAMS),
        description="Upstream relays to read from, in order",
    )
    menu: FilterMenu = Field(default=FilterMenu.WINDOWED, description="Filter menu to replay")
    broad_limit: int = Field(
        default=DEFAULT_BROAD_LIMIT,
        ge=1,
        le=100_000,
        description="Per-upstream limit of the broad menu",
    )
    backfill: bool = Field(default=False, description="Use the long backfill windows")
    windows: WindowsConfig = Field(default_factory=WindowsConfig)
    references: ReferencesConfig = Field(default_factory=ReferencesConfig)
    timeouts: RequestTimeoutsConfig = Field(default_factory=RequestTimeoutsConfig)

    @model_validator(mode="before")
    @classmethod
    def _apply_env_overrides(cls, data: Any) -> Any:
        """Overlay the ingest environment variables onto the file values."""
        if not isinstance(data, dict):
            return data
        data = dict(data)

        if os.environ.get(ENV_UPSTREAMS, "").strip():
            data["upstreams"] = os.environ[ENV_UPSTREAMS].split()

        windows = dict(data.get("windows") or {})
        if os.environ.get(ENV_DAYS_ARTICLES, "").strip():
            windows["articles_days"] = _env_days(ENV_DAYS_ARTICLES)
        if os.environ.get(ENV_DAYS_THREADS, "").strip():
            windows["threads_days"] = _env_days(ENV_DAYS_THREADS)
        if windows:
            data["windows"] = windows

        references = dict(data.get("references") or {})
        if os.environ.get(ENV_ARTICLE_E_LIST, "").strip():
            references["event_ids"] = _env_json_list(ENV_ARTICLE_E_LIST)
        if os.environ.get(ENV_ARTICLE_A_LIST, "").strip():
            references["coordinates"] = _env_json_list(ENV_ARTICLE_A_LIST)
        if references:
            data["references"] = references

        return data

    @field_validator("upstreams", mode="after")
    @classmethod
    def normalize_upstreams(cls, v: list[str]) -> list[str]:
        """Normalize URLs and drop duplicates, keeping first-seen order."""
        return list(dict.fromkeys(normalize_relay_url(url) for url in v))

    def resolved_windows(self) -> ResolvedWindows:
        return self.windows.resolve(backfill=self.backfill)

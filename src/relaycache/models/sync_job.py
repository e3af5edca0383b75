"""One (upstream relay, filter) unit of ingest work."""

from __future__ import annotations

from dataclasses import dataclass

from ._validation import validate_instance, validate_str_no_null
from .filter import Filter
from .relay import normalize_relay_url


@dataclass(frozen=True, slots=True)
class SyncJob:
    """Pure value describing a single sync to run against one upstream.

    Built fresh from wall-clock time on every pipeline run and never stored.

    Attributes:
        upstream_url: Normalized URL of the upstream relay to read from.
        filter: [Filter][relaycache.models.filter.Filter] to replay.
        label: Content category name used in logs and metrics.
    """

    upstream_url: str
    filter: Filter
    label: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "upstream_url", normalize_relay_url(self.upstream_url))
        validate_instance(self.filter, Filter, "filter")
        validate_str_no_null(self.label, "label")

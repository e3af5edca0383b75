"""relaycache exception hierarchy.

Typed exceptions for the failure categories the services distinguish.
Lower layers (``models``, ``nips``, ``utils``) raise builtin exceptions
(``ValueError``, ``OSError``, ``TimeoutError``); services translate them into
these types where a caller needs to tell categories apart.

Exception hierarchy:

```text
RelayCacheError (base -- never raised directly)
├── ConfigurationError      -- config validation, bad YAML, bad env overrides
├── ConnectivityError       -- upstream or cache relay unreachable
│   └── RelayTimeoutError   -- connection or response timed out
└── StoreError              -- cache relay storage command failed
```

See Also:
    [BaseService.run_forever()][relaycache.core.base_service.BaseService.run_forever]:
        Top-level error boundary that counts failures per exception type.
    [sync_job()][relaycache.services.ingester.utils.sync_job]: Raises
        [ConnectivityError][relaycache.core.exceptions.ConnectivityError], or
        [RelayTimeoutError][relaycache.core.exceptions.RelayTimeoutError] for a
        connect timeout, when an upstream cannot be queried.
"""

from __future__ import annotations


class RelayCacheError(Exception):
    """Base exception for all relaycache errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(RelayCacheError):
    """Invalid or missing configuration (YAML, env vars, CLI flags)."""


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(RelayCacheError):
    """Base for relay/network connectivity errors.

    Attributes:
        relay_url: URL of the relay that could not be reached, if known.
    """

    def __init__(self, message: str, relay_url: str | None = None) -> None:
        super().__init__(message)
        self.relay_url = relay_url


class RelayTimeoutError(ConnectivityError):
    """Connection or response timed out."""


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class StoreError(RelayCacheError):
    """The cache relay's storage backend rejected or failed an operation.

    See Also:
        [StrfryEventStore][relaycache.core.store.StrfryEventStore]: Raises
            this when a ``strfry`` subprocess exits non-zero or times out.
    """

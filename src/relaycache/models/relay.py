"""
Validated, normalized Nostr relay URL.

Parses ``ws://`` and ``wss://`` URLs with RFC 3986 validation and reduces
them to a canonical form so that ``wss://relay.damus.io/`` and
``WSS://relay.damus.io:443`` name the same relay. Private and local hosts
are accepted: the cache relay itself usually lives at ``ws://localhost:7777``
or on a container network.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator


@dataclass(frozen=True, slots=True)
class Relay:
    """Immutable relay endpoint.

    Attributes:
        url: Fully normalized URL including scheme.
        scheme: ``ws`` or ``wss``.
        host: Hostname or IP address (brackets stripped for IPv6).
        port: Explicit port number, or ``None`` when using the default.
        path: URL path component without trailing slash, or ``None``.

    Raises:
        ValueError: If the URL is malformed, uses an unsupported scheme,
            carries a query string or fragment, or contains null bytes.

    Examples:
        ```python
        Relay("wss://relay.damus.io/").url    # 'wss://relay.damus.io'
        Relay("ws://strfry:7777").port        # 7777
        Relay("wss://nos.lol:443").url        # 'wss://nos.lol'
        ```
    """

    raw_url: str = field(repr=False)

    url: str = field(init=False)
    scheme: str = field(init=False)
    host: str = field(init=False)
    port: int | None = field(init=False)
    path: str | None = field(init=False)

    _DEFAULT_PORTS: ClassVar[dict[str, int]] = {"ws": 80, "wss": 443}

    def __post_init__(self) -> None:
        if not isinstance(self.raw_url, str):
            raise TypeError(f"raw_url must be a str, got {type(self.raw_url).__name__}")
        if "\x00" in self.raw_url:
            raise ValueError("Relay URL contains null bytes")

        uri = uri_reference(self.raw_url.strip()).normalize()

        validator = (
            Validator()
            .require_presence_of("scheme", "host")
            .allow_schemes("ws", "wss")
            .check_validity_of("scheme", "host", "port", "path")
        )
        try:
            validator.validate(uri)
        except UnpermittedComponentError:
            raise ValueError("Invalid scheme: must be ws or wss") from None
        except ValidationError as e:
            raise ValueError(f"Invalid URL: {e}") from None

        if uri.query:
            raise ValueError(f"Relay URL must not contain a query string: ?{uri.query}")
        if uri.fragment:
            raise ValueError(f"Relay URL must not contain a fragment: #{uri.fragment}")

        scheme = uri.scheme
        host = uri.host.strip("[]")
        if not host:
            raise ValueError("Relay URL has an empty host")
        port = int(uri.port) if uri.port else None
        if port == self._DEFAULT_PORTS[scheme]:
            port = None

        path = uri.path or ""
        while "//" in path:
            path = path.replace("//", "/")
        path = path.rstrip("/") or None

        formatted_host = f"[{host}]" if ":" in host else host
        authority = f"{formatted_host}:{port}" if port else formatted_host

        object.__setattr__(self, "url", f"{scheme}://{authority}{path or ''}")
        object.__setattr__(self, "scheme", scheme)
        object.__setattr__(self, "host", host)
        object.__setattr__(self, "port", port)
        object.__setattr__(self, "path", path)

    def __str__(self) -> str:
        return self.url


def normalize_relay_url(url: str) -> str:
    """Return the canonical form of *url*.

    Raises:
        ValueError: If *url* is not a valid relay URL.
    """
    return Relay(url).url

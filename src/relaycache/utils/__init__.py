"""WebSocket transport, subscription handshakes, and the relay query client.

The utils layer depends on [relaycache.models][relaycache.models] and on the
protocol codecs in [relaycache.nips][relaycache.nips]. It provides the
network-facing primitives consumed by [relaycache.services][relaycache.services].

Attributes:
    transport: A single aiohttp WebSocket connection with explicit frame
        types and errors normalized to ``OSError``/``TimeoutError``.
    handshake: Heartbeat, NIP-42 authentication and ``CLOSE`` chores, using
        one ephemeral identity per handler.
    request: Sequential single-shot query client with early exit on a target
        event id, plus result helpers.

Note:
    The utils layer has **zero** imports from ``relaycache.core`` or
    ``relaycache.services``.

Examples:
    ```python
    from relaycache.utils.request import RelayRequest, collect_events
    ```
"""

"""
NIP-42 client authentication event construction.

Builds and signs the ephemeral kind 22242 event that binds a relay URL and a
challenge string to a public key. Signing goes through ``nostr-sdk``; the
result is returned as a plain wire dict so the caller can frame it like any
other outbound message.
"""

from __future__ import annotations

import json
from typing import Any

from nostr_sdk import EventBuilder, Keys, RelayUrl


def build_auth_event(keys: Keys, relay_url: str, challenge: str) -> dict[str, Any]:
    """Sign a NIP-42 authentication event for *relay_url* and *challenge*.

    Args:
        keys: Signing keys (an ephemeral identity in this package).
        relay_url: URL of the relay that issued the challenge.
        challenge: Challenge string from the relay's ``AUTH`` frame. May be
            empty when the relay asked for auth before sending one.

    Returns:
        The signed event as a wire object (``id``, ``pubkey``, ``sig``, ...).

    Raises:
        nostr_sdk.NostrSdkError: If the URL cannot be parsed or signing fails.
    """
    event = EventBuilder.auth(challenge, RelayUrl.parse(relay_url)).sign_with_keys(keys)
    return json.loads(event.as_json())

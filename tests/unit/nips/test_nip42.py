"""
Unit tests for nips.nip42 module.

Tests:
- build_auth_event() signs a kind 22242 event bound to relay and challenge
"""

from nostr_sdk import Keys

from relaycache.nips import build_auth_event


class TestBuildAuthEvent:
    """build_auth_event() output."""

    def test_kind_and_tags(self) -> None:
        """The event is kind 22242 with relay and challenge tags."""
        keys = Keys.generate()
        event = build_auth_event(keys, "wss://relay.example.com", "abc123")

        assert event["kind"] == 22242
        assert event["pubkey"] == keys.public_key().to_hex()
        assert ["challenge", "abc123"] in event["tags"]
        assert any(tag[0] == "relay" for tag in event["tags"])

    def test_signed(self) -> None:
        """The event carries an id and signature."""
        event = build_auth_event(Keys.generate(), "wss://relay.example.com", "c")
        assert len(event["id"]) == 64
        assert len(event["sig"]) == 128

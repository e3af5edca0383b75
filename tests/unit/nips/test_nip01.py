"""
Unit tests for nips.nip01 module.

Tests:
- classify() for every inbound label
- classify() on malformed frames (never raises)
- decode_frame() JSON handling
- classify_notice() severity
- Outbound frame builders
"""

from typing import Any

import pytest

from conftest import event_id, make_event
from relaycache.models import Filter
from relaycache.nips import (
    AuthResponse,
    ClosedResponse,
    EoseResponse,
    EventResponse,
    NoticeResponse,
    NoticeSeverity,
    OkResponse,
    ResponseType,
    UnrecognizedResponse,
    auth_frame,
    classify,
    classify_notice,
    close_frame,
    decode_frame,
    encode_frame,
    req_frame,
)


# =============================================================================
# Well-formed Frames
# =============================================================================


class TestClassifyWellFormed:
    """classify() on valid frames."""

    def test_event(self) -> None:
        """EVENT frames carry the subscription id and a parsed event."""
        event = make_event(5)
        response = classify(["EVENT", "sub1", event.to_dict()])
        assert isinstance(response, EventResponse)
        assert response.type is ResponseType.EVENT
        assert response.subscription_id == "sub1"
        assert response.event == event

    def test_eose(self) -> None:
        """EOSE frames carry the subscription id."""
        assert classify(["EOSE", "sub1"]) == EoseResponse("sub1")

    def test_notice(self) -> None:
        """NOTICE frames carry the message."""
        response = classify(["NOTICE", "slow down"])
        assert response == NoticeResponse("slow down")
        assert response.severity is NoticeSeverity.INFO  # type: ignore[union-attr]

    def test_closed_with_message(self) -> None:
        """CLOSED frames carry the subscription id and reason."""
        assert classify(["CLOSED", "sub1", "error: shutting down"]) == ClosedResponse(
            "sub1", "error: shutting down"
        )

    def test_closed_without_message(self) -> None:
        """A CLOSED frame without a reason gets an empty message."""
        assert classify(["CLOSED", "sub1"]) == ClosedResponse("sub1", "")

    def test_ok(self) -> None:
        """OK frames carry the event id, flag and message."""
        response = classify(["OK", event_id(1), True, ""])
        assert response == OkResponse(event_id(1), True, "")
        assert not response.auth_required  # type: ignore[union-attr]

    def test_ok_auth_required(self) -> None:
        """auth-required: messages are detected."""
        response = classify(["OK", event_id(1), False, "auth-required: sign in first"])
        assert isinstance(response, OkResponse)
        assert response.auth_required

    def test_auth(self) -> None:
        """AUTH frames carry the challenge."""
        assert classify(["AUTH", "challenge-123"]) == AuthResponse("challenge-123")


# =============================================================================
# Malformed Frames
# =============================================================================


class TestClassifyMalformed:
    """classify() never raises on bad input."""

    @pytest.mark.parametrize(
        "frame",
        [
            None,
            {},
            [],
            "EOSE",
            [42, "sub"],
            ["UNKNOWN", "x"],
            ["EVENT", "sub"],
            ["EVENT", "sub", {"id": "nope"}],
            ["EVENT", 1, None],
            ["EOSE"],
            ["EOSE", "sub", "extra"],
            ["EOSE", 5],
            ["NOTICE"],
            ["NOTICE", {"msg": "x"}],
            ["CLOSED"],
            ["CLOSED", "sub", 5],
            ["OK", "id", "true", ""],
            ["OK", "id"],
            ["AUTH"],
            ["AUTH", None],
        ],
    )
    def test_unrecognized(self, frame: Any) -> None:
        """Malformed frames become UnrecognizedResponse."""
        response = classify(frame)
        assert isinstance(response, UnrecognizedResponse)
        assert response.type is ResponseType.UNRECOGNIZED
        assert response.raw == frame
        assert response.reason

    def test_invalid_event_reason(self) -> None:
        """The reason names the event problem."""
        response = classify(["EVENT", "sub", {"id": "x"}])
        assert isinstance(response, UnrecognizedResponse)
        assert response.reason.startswith("invalid event")

    def test_deeply_nested_frame(self) -> None:
        """A frame nested past the recursion limit is unrecognized."""
        frame: list[Any] = []
        for _ in range(100_000):
            frame = [frame]

        response = classify(frame)

        assert isinstance(response, UnrecognizedResponse)
        assert response.reason == "label must be a string, got list"


class TestDecodeFrame:
    """decode_frame() JSON handling."""

    def test_text(self) -> None:
        """Decodes text and classifies it."""
        assert decode_frame('["EOSE","s"]') == EoseResponse("s")

    def test_bytes(self) -> None:
        """Accepts bytes."""
        assert decode_frame(b'["AUTH","c"]') == AuthResponse("c")

    def test_invalid_json(self) -> None:
        """Invalid JSON is unrecognized, not an exception."""
        response = decode_frame("not json")
        assert isinstance(response, UnrecognizedResponse)
        assert "invalid json" in response.reason

    def test_deeply_nested_json(self) -> None:
        """JSON nested past the recursion limit is unrecognized, not an exception."""
        response = decode_frame("[" * 100_000 + "]" * 100_000)
        assert isinstance(response, UnrecognizedResponse)
        assert response.reason == "invalid json: nested too deeply"


class TestClassifyNotice:
    """classify_notice() severity."""

    def test_error_prefix_fatal(self) -> None:
        """ERROR: notices are fatal."""
        assert classify_notice("ERROR: bad filter") is NoticeSeverity.FATAL

    def test_other_info(self) -> None:
        """Anything else is informational."""
        assert classify_notice("rate limited") is NoticeSeverity.INFO
        assert classify_notice("error: lowercase") is NoticeSeverity.INFO


class TestOutboundFrames:
    """Outbound frame builders."""

    def test_req(self) -> None:
        """REQ carries every filter as an object."""
        frame = req_frame("s1", [Filter(kinds=[1], limit=2), Filter(ids=[event_id(1)])])
        assert frame == ["REQ", "s1", {"kinds": [1], "limit": 2}, {"ids": [event_id(1)]}]

    def test_close(self) -> None:
        """CLOSE carries the subscription id."""
        assert close_frame("s1") == ["CLOSE", "s1"]

    def test_auth(self) -> None:
        """AUTH carries the signed event."""
        assert auth_frame({"kind": 22242}) == ["AUTH", {"kind": 22242}]

    def test_encode_compact(self) -> None:
        """Encoded frames use compact separators."""
        assert encode_frame(["CLOSE", "s1"]) == '["CLOSE","s1"]'

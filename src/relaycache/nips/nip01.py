"""
NIP-01 relay message classification and client message encoding.

Every inbound frame is turned into exactly one member of the closed
[RelayResponse][relaycache.nips.nip01.RelayResponse] union.
[classify()][relaycache.nips.nip01.classify] never raises: a frame with an
unknown label, the wrong arity, or wrongly typed elements becomes an
[UnrecognizedResponse][relaycache.nips.nip01.UnrecognizedResponse] and is
logged at debug level.

Inbound frames:

```text
["EVENT",  <subscription_id>, <event>]
["EOSE",   <subscription_id>]
["NOTICE", <message>]
["CLOSED", <subscription_id>, <message>]
["OK",     <event_id>, <true|false>, <message>]
["AUTH",   <challenge>]
```

Outbound frames: ``REQ``, ``CLOSE`` and ``AUTH``.

See Also:
    [RelayRequest][relaycache.utils.request.RelayRequest]: The query
        client that dispatches on these variants.
    [SubscriptionHandler][relaycache.utils.handshake.SubscriptionHandler]:
        Uses [classify_notice()][relaycache.nips.nip01.classify_notice] and
        the outbound encoders.
"""

from __future__ import annotations

import json
import logging
import reprlib
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar

from relaycache.models import Event


if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from relaycache.models import Filter


logger = logging.getLogger(__name__)

AUTH_REQUIRED_PREFIX = "auth-required:"
ERROR_NOTICE_PREFIX = "ERROR:"

_FRAME_REPR = reprlib.Repr()
_FRAME_REPR.maxstring = 200
_FRAME_REPR.maxother = 200


class ResponseType(StrEnum):
    """Label of a classified relay response."""

    EVENT = "EVENT"
    EOSE = "EOSE"
    NOTICE = "NOTICE"
    CLOSED = "CLOSED"
    OK = "OK"
    AUTH = "AUTH"
    UNRECOGNIZED = "UNRECOGNIZED"
    ERROR = "ERROR"


class NoticeSeverity(StrEnum):
    """How a ``NOTICE`` affects the subscription that received it."""

    INFO = "info"
    FATAL = "fatal"


# ---------------------------------------------------------------------------
# Response variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EventResponse:
    """A stored or live event delivered for a subscription."""

    type: ClassVar[ResponseType] = ResponseType.EVENT
    subscription_id: str
    event: Event


@dataclass(frozen=True, slots=True)
class EoseResponse:
    """End of stored events for a subscription."""

    type: ClassVar[ResponseType] = ResponseType.EOSE
    subscription_id: str


@dataclass(frozen=True, slots=True)
class NoticeResponse:
    """Human-readable message from the relay."""

    type: ClassVar[ResponseType] = ResponseType.NOTICE
    message: str

    @property
    def severity(self) -> NoticeSeverity:
        return classify_notice(self.message)


@dataclass(frozen=True, slots=True)
class ClosedResponse:
    """Relay-side termination of a subscription."""

    type: ClassVar[ResponseType] = ResponseType.CLOSED
    subscription_id: str
    message: str


@dataclass(frozen=True, slots=True)
class OkResponse:
    """Acknowledgement of a client-sent event (including AUTH events)."""

    type: ClassVar[ResponseType] = ResponseType.OK
    event_id: str
    accepted: bool
    message: str

    @property
    def auth_required(self) -> bool:
        return self.message.startswith(AUTH_REQUIRED_PREFIX)


@dataclass(frozen=True, slots=True)
class AuthResponse:
    """NIP-42 authentication challenge."""

    type: ClassVar[ResponseType] = ResponseType.AUTH
    challenge: str


@dataclass(frozen=True, slots=True)
class UnrecognizedResponse:
    """A frame that could not be classified. Callers ignore it."""

    type: ClassVar[ResponseType] = ResponseType.UNRECOGNIZED
    raw: Any
    reason: str


@dataclass(frozen=True, slots=True)
class ErrorResponse:
    """Synthetic entry recording a transport-level failure for one relay.

    Never produced by [classify()][relaycache.nips.nip01.classify]; only the
    query client creates it.

    Attributes:
        message: The failure, as text.
        timed_out: The relay failed by timing out (connect or transport).
    """

    type: ClassVar[ResponseType] = ResponseType.ERROR
    message: str
    timed_out: bool = False


RelayResponse = (
    EventResponse
    | EoseResponse
    | NoticeResponse
    | ClosedResponse
    | OkResponse
    | AuthResponse
    | UnrecognizedResponse
    | ErrorResponse
)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class _MalformedFrameError(ValueError):
    pass


def _expect_str(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise _MalformedFrameError(f"{what} must be a string")
    return value


def _expect_arity(frame: Sequence[Any], minimum: int, maximum: int | None = None) -> None:
    if len(frame) < minimum or (maximum is not None and len(frame) > maximum):
        raise _MalformedFrameError(f"unexpected arity {len(frame)}")


def _parse_event(frame: Sequence[Any]) -> EventResponse:
    _expect_arity(frame, 3, 3)
    try:
        event = Event.from_dict(frame[2])
    except (TypeError, ValueError) as e:
        raise _MalformedFrameError(f"invalid event: {e}") from e
    return EventResponse(_expect_str(frame[1], "subscription id"), event)


def _parse_eose(frame: Sequence[Any]) -> EoseResponse:
    _expect_arity(frame, 2, 2)
    return EoseResponse(_expect_str(frame[1], "subscription id"))


def _parse_notice(frame: Sequence[Any]) -> NoticeResponse:
    _expect_arity(frame, 2, 2)
    return NoticeResponse(_expect_str(frame[1], "message"))


def _parse_closed(frame: Sequence[Any]) -> ClosedResponse:
    # The message is optional in practice even though NIP-01 lists it
    _expect_arity(frame, 2, 3)
    message = _expect_str(frame[2], "message") if len(frame) == 3 else ""
    return ClosedResponse(_expect_str(frame[1], "subscription id"), message)


def _parse_ok(frame: Sequence[Any]) -> OkResponse:
    _expect_arity(frame, 3, 4)
    if not isinstance(frame[2], bool):
        raise _MalformedFrameError("accepted flag must be a boolean")
    message = _expect_str(frame[3], "message") if len(frame) == 4 else ""
    return OkResponse(_expect_str(frame[1], "event id"), frame[2], message)


def _parse_auth(frame: Sequence[Any]) -> AuthResponse:
    _expect_arity(frame, 2, 2)
    return AuthResponse(_expect_str(frame[1], "challenge"))


_PARSERS: dict[str, Callable[[Sequence[Any]], RelayResponse]] = {
    ResponseType.EVENT: _parse_event,
    ResponseType.EOSE: _parse_eose,
    ResponseType.NOTICE: _parse_notice,
    ResponseType.CLOSED: _parse_closed,
    ResponseType.OK: _parse_ok,
    ResponseType.AUTH: _parse_auth,
}


def classify(frame: Any) -> RelayResponse:
    """Classify one decoded relay frame.

    Args:
        frame: The JSON-decoded frame, normally a list whose first element
            is the message label.

    Returns:
        The matching response variant, or
        [UnrecognizedResponse][relaycache.nips.nip01.UnrecognizedResponse]
        for anything malformed or unknown.
    """
    if not isinstance(frame, list) or not frame:
        return _unrecognized(frame, "frame is not a non-empty array")

    label = frame[0]
    if not isinstance(label, str):
        return _unrecognized(frame, f"label must be a string, got {type(label).__name__}")
    parser = _PARSERS.get(label)
    if parser is None:
        return _unrecognized(frame, f"unknown label {label!r}")

    try:
        return parser(frame)
    except _MalformedFrameError as e:
        return _unrecognized(frame, str(e))
    except RecursionError:
        return _unrecognized(frame, "frame nested too deeply")


def decode_frame(text: str | bytes) -> RelayResponse:
    """JSON-decode a text frame and classify it."""
    try:
        frame = json.loads(text)
    except (ValueError, TypeError) as e:
        return _unrecognized(text, f"invalid json: {e}")
    except RecursionError:
        return _unrecognized(text, "invalid json: nested too deeply")
    return classify(frame)


def _unrecognized(raw: Any, reason: str) -> UnrecognizedResponse:
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("unrecognized_frame reason=%s frame=%s", reason, _FRAME_REPR.repr(raw))
    return UnrecognizedResponse(raw, reason)


def classify_notice(message: str) -> NoticeSeverity:
    """Return ``FATAL`` for an ``ERROR:`` notice, ``INFO`` otherwise."""
    if message.startswith(ERROR_NOTICE_PREFIX):
        return NoticeSeverity.FATAL
    return NoticeSeverity.INFO


# ---------------------------------------------------------------------------
# Outbound frames
# ---------------------------------------------------------------------------


def req_frame(subscription_id: str, filters: Sequence[Filter]) -> list[Any]:
    """Build ``["REQ", <subscription_id>, <filter>, ...]``."""
    return ["REQ", subscription_id, *(f.to_dict() for f in filters)]


def close_frame(subscription_id: str) -> list[Any]:
    """Build ``["CLOSE", <subscription_id>]``."""
    return ["CLOSE", subscription_id]


def auth_frame(signed_event: dict[str, Any]) -> list[Any]:
    """Build ``["AUTH", <signed kind 22242 event>]``."""
    return ["AUTH", signed_event]


def encode_frame(frame: list[Any]) -> str:
    """Serialize an outbound frame as compact JSON text."""
    return json.dumps(frame, separators=(",", ":"), ensure_ascii=False)

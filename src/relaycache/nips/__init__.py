"""Nostr protocol message handling.

Attributes:
    nip01: Relay message classification into a closed set of response
        variants, plus ``REQ``/``CLOSE``/``AUTH`` frame encoders.
    nip42: Signed client authentication events.
"""

from .nip01 import (
    AUTH_REQUIRED_PREFIX,
    AuthResponse,
    ClosedResponse,
    EoseResponse,
    ErrorResponse,
    EventResponse,
    NoticeResponse,
    NoticeSeverity,
    OkResponse,
    RelayResponse,
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
from .nip42 import build_auth_event


__all__ = [
    "AUTH_REQUIRED_PREFIX",
    "AuthResponse",
    "ClosedResponse",
    "EoseResponse",
    "ErrorResponse",
    "EventResponse",
    "NoticeResponse",
    "NoticeSeverity",
    "OkResponse",
    "RelayResponse",
    "ResponseType",
    "UnrecognizedResponse",
    "auth_frame",
    "build_auth_event",
    "classify",
    "classify_notice",
    "close_frame",
    "decode_frame",
    "encode_frame",
    "req_frame",
]

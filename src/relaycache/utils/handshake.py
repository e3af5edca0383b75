"""Per-subscription protocol chores: heartbeats, NIP-42 auth, and teardown.

[SubscriptionHandler][relaycache.utils.handshake.SubscriptionHandler] owns a
single ephemeral identity, generated on construction and used for nothing
but answering authentication challenges. Every operation is best-effort:
failures are logged and swallowed so that the caller's receive loop, which
reacts to the relay's own protocol responses, stays in charge.

See Also:
    [RelayRequest][relaycache.utils.request.RelayRequest]: The query client
        that drives these operations.
    [build_auth_event()][relaycache.nips.nip42.build_auth_event]: Signs the
        kind 22242 event sent during authentication.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nostr_sdk import Keys

from relaycache.nips.nip01 import NoticeSeverity, auth_frame, classify_notice, close_frame
from relaycache.nips.nip42 import build_auth_event


if TYPE_CHECKING:
    from .transport import RelayConnection


logger = logging.getLogger(__name__)


class SubscriptionHandler:
    """Helper holding one ephemeral identity for relay handshakes.

    Each instance generates its own keys unless *keys* is given. Instances
    are never shared across query clients.
    """

    def __init__(self, keys: Keys | None = None) -> None:
        self._keys = keys if keys is not None else Keys.generate()

    @property
    def public_key(self) -> str:
        """Hex public key of the ephemeral identity."""
        return self._keys.public_key().to_hex()

    async def respond_to_heartbeat(self, connection: RelayConnection, payload: bytes) -> None:
        """Answer a transport ping with one pong frame."""
        await connection.pong(payload)

    async def perform_authentication(
        self,
        connection: RelayConnection,
        relay_url: str,
        challenge: str,
    ) -> bool:
        """Sign and send a NIP-42 ``AUTH`` event bound to *relay_url* and *challenge*.

        Returns:
            True if the frame was sent. False if signing or sending failed;
            the failure is logged as a warning and processing continues
            without authentication.
        """
        try:
            event = build_auth_event(self._keys, relay_url, challenge)
            await connection.send(auth_frame(event))
        except Exception as e:  # Intentionally broad: nostr-sdk FFI errors plus transport errors
            logger.warning("auth_failed relay=%s error=%s", relay_url, str(e))
            return False

        logger.debug("auth_sent relay=%s pubkey=%s", relay_url, self.public_key)
        return True

    async def send_close(self, connection: RelayConnection, subscription_id: str) -> bool:
        """Send ``["CLOSE", subscription_id]``. Never raises.

        Returns:
            True if the frame was sent, False if the transport rejected it.
        """
        try:
            await connection.send(close_frame(subscription_id))
        except (OSError, TimeoutError) as e:
            logger.debug(
                "close_failed relay=%s subscription=%s error=%s",
                connection.url,
                subscription_id,
                str(e),
            )
            return False
        return True

    @staticmethod
    def classify_notice(message: str) -> NoticeSeverity:
        """Severity of a ``NOTICE`` for the current subscription."""
        return classify_notice(message)

"""Write-policy gate that makes the cache relay read-only to clients.

The cache relay runs this as its write-policy plugin for every event a
client tries to publish. The plugin reads the candidate on stdin and must
print exactly one JSON object ``{"action": "accept"|"reject", "msg": ...}``
on stdout. Anything else, including a crash, is a reject on the relay side.

The candidate is never inspected: every client write is rejected. Events
written by the [Ingester][relaycache.services.ingester.Ingester] go through
``strfry import``, which does not consult this plugin.

Examples:
    strfry.conf::

        relay {
            writePolicy {
                plugin = "relaycache-write-policy"
            }
        }
"""

from __future__ import annotations

import json
import sys
from typing import IO, Any, Final

from relaycache.core.logger import Logger
from relaycache.models import PolicyAction, PolicyDecision
from relaycache.models.constants import ServiceName


READ_ONLY_MESSAGE: Final[str] = "read-only relay"

logger = Logger(ServiceName.WRITE_POLICY)


def evaluate(candidate: Any = None) -> PolicyDecision:  # noqa: ARG001
    """Decide on a client-submitted write. Always rejects."""
    return PolicyDecision(PolicyAction.REJECT, READ_ONLY_MESSAGE)


def render_decision(decision: PolicyDecision) -> str:
    """Serialize *decision* as the single output line of the hook."""
    return json.dumps(decision.to_dict(), separators=(",", ":"))


def run_hook(stdin: IO[Any], stdout: IO[str]) -> int:
    """Drain *stdin*, write one rejection object to *stdout*.

    The input is consumed but never parsed, so empty, truncated or invalid
    JSON all get the same answer.

    Returns:
        Process exit code (always 0).
    """
    candidate = stdin.read()
    decision = evaluate(candidate)
    stdout.write(render_decision(decision) + "\n")
    stdout.flush()
    logger.debug("write_rejected", input_bytes=len(candidate), reason=decision.message)
    return 0


def cli() -> None:
    """Console-script entry point for the cache relay's plugin setting."""
    sys.exit(run_hook(sys.stdin.buffer, sys.stdout))

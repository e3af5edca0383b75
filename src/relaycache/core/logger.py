"""
Structured logging for relaycache services.

Services log event-style messages with keyword fields through
[Logger][relaycache.core.logger.Logger]; the fields travel on the log record
and are rendered by [StructuredFormatter][relaycache.core.logger.StructuredFormatter]
as ``key=value`` pairs or, with ``json_output``, as one JSON object per
line.

The ``models``, ``nips`` and ``utils`` layers keep to plain
``logging.getLogger(__name__)`` with ``"event key=%s"`` messages; the
formatter gives both kinds of record the same ``level name message`` prefix.

Examples:
    ```python
    logger = Logger("ingester").bind(relay="wss://relay.damus.io")
    logger.info("sync_job_completed", label="articles", inserted=12)
    # info ingester sync_job_completed relay=wss://relay.damus.io label=articles inserted=12
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, Final


DEFAULT_MAX_VALUE_LENGTH: Final[int] = 1000
_NEEDS_QUOTING: Final[frozenset[str]] = frozenset(' ="\'\t\n')


def _clip(value: Any, limit: int | None) -> str:
    text = str(value)
    if limit and len(text) > limit:
        return f"{text[:limit]}...<truncated {len(text) - limit} chars>"
    return text


def format_kv_pairs(
    fields: dict[str, Any],
    max_value_length: int | None = DEFAULT_MAX_VALUE_LENGTH,
    prefix: str = " ",
) -> str:
    """Render *fields* as ``key=value`` pairs separated by spaces.

    Values are clipped to *max_value_length*. Empty values, and values
    containing whitespace, ``=`` or quotes, are double-quoted with
    backslash escapes, so relay messages like ``auth-required: sign in``
    stay one field.

    Returns:
        ``prefix`` followed by the pairs, or ``""`` when *fields* is empty.
    """
    if not fields:
        return ""

    rendered = []
    for key, value in fields.items():
        text = _clip(value, max_value_length)
        if text and _NEEDS_QUOTING.isdisjoint(text):
            rendered.append(f"{key}={text}")
            continue
        escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
        rendered.append(f'{key}="{escaped}"')
    return prefix + " ".join(rendered)


class StructuredFormatter(logging.Formatter):
    """Render records as ``<level> <logger> <message> key=value ...`` or as JSON.

    With ``json_output`` each record becomes one JSON object holding
    ``timestamp``, ``level``, ``logger``, ``message`` and the record's
    keyword fields, plus ``exception`` when a traceback is attached. Plain
    ``logging.getLogger(__name__)`` records are rendered the same way,
    without fields.
    """

    def __init__(self, *, json_output: bool = False) -> None:
        super().__init__()
        self._json_output = json_output

    @property
    def json_output(self) -> bool:
        return self._json_output

    def format(self, record: logging.LogRecord) -> str:
        fields = getattr(record, "kv", None) or {}
        if self._json_output:
            return self._format_json(record, fields)

        line = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        line += format_kv_pairs(fields)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line

    def _format_json(self, record: logging.LogRecord, fields: dict[str, Any]) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.datetime.fromtimestamp(record.created, datetime.UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Fields never overwrite the envelope keys
        payload.update((k, v) for k, v in fields.items() if k not in payload)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class Logger:
    """Event-style logger carrying keyword fields on each record.

    Fields travel on the record as ``kv``; the handler's
    [StructuredFormatter][relaycache.core.logger.StructuredFormatter]
    decides between ``key=value`` and JSON rendering.

    Args:
        name: Logger name; services use their ``ServiceName``.
        max_value_length: Clip string field values to this many chars.
        context: Fields added to every record (see
            [bind()][relaycache.core.logger.Logger.bind]).
    """

    def __init__(
        self,
        name: str,
        *,
        max_value_length: int | None = DEFAULT_MAX_VALUE_LENGTH,
        context: dict[str, Any] | None = None,
    ) -> None:
        self._logger = logging.getLogger(name)
        self._max_value_length = max_value_length
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **context: Any) -> Logger:
        """Return a logger for the same name with *context* added to every record."""
        return Logger(
            self._logger.name,
            max_value_length=self._max_value_length,
            context={**self._context, **context},
        )

    def _emit(self, level: int, msg: str, fields: dict[str, Any], *, exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        # Numbers and bools keep their type
        kv = {
            key: value if isinstance(value, int | float | bool) else _clip(value, self._max_value_length)
            for key, value in {**self._context, **fields}.items()
        }
        self._logger.log(level, msg, extra={"kv": kv} if kv else None, exc_info=exc_info)

    def debug(self, msg: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, msg, fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._emit(logging.INFO, msg, fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._emit(logging.WARNING, msg, fields)

    def error(self, msg: str, **fields: Any) -> None:
        self._emit(logging.ERROR, msg, fields)

    def critical(self, msg: str, **fields: Any) -> None:
        self._emit(logging.CRITICAL, msg, fields)

    def exception(self, msg: str, **fields: Any) -> None:
        """Log at ERROR with the active exception's traceback attached."""
        self._emit(logging.ERROR, msg, fields, exc_info=True)


def setup_logging(level: str = "INFO", *, json_output: bool = False) -> None:
    """Route all records to stderr through one structured handler on the root logger.

    With *json_output* every record, including plain ``logging`` records
    from the lower layers, is written as one JSON object per line.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter(json_output=json_output))
    logging.root.handlers = [handler]
    logging.root.setLevel(level.upper())
    # nostr-sdk logs its own errors for failures this package already reports
    logging.getLogger("nostr_sdk").setLevel(logging.CRITICAL)

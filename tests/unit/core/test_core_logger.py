"""
Unit tests for core.logger module.

Tests:
- format_kv_pairs() quoting and truncation
- StructuredFormatter output
- Logger fields, bind() and truncation
- StructuredFormatter JSON mode
- setup_logging() root configuration
"""

import json
import logging
import sys

import pytest

from relaycache.core.logger import Logger, StructuredFormatter, format_kv_pairs, setup_logging


class TestFormatKvPairs:
    """format_kv_pairs()."""

    def test_empty(self) -> None:
        """No pairs renders nothing."""
        assert format_kv_pairs({}) == ""

    def test_simple(self) -> None:
        """Plain values are unquoted."""
        assert format_kv_pairs({"relay": "wss://x", "events": 3}) == " relay=wss://x events=3"

    def test_quotes_spaces_and_equals(self) -> None:
        """Values with spaces or = are quoted."""
        assert format_kv_pairs({"msg": "auth-required: sign in"}) == ' msg="auth-required: sign in"'
        assert format_kv_pairs({"q": "a=b"}) == ' q="a=b"'

    def test_escapes_quotes_and_newlines(self) -> None:
        """Quotes and newlines are escaped."""
        assert format_kv_pairs({"e": 'say "hi"\nnow'}) == ' e="say \\"hi\\"\\nnow"'

    def test_empty_value_quoted(self) -> None:
        """Empty values are rendered as ""."""
        assert format_kv_pairs({"msg": ""}) == ' msg=""'

    def test_truncation(self) -> None:
        """Long values are truncated (and quoted, the marker contains a space)."""
        out = format_kv_pairs({"v": "x" * 20}, max_value_length=5)
        assert out == ' v="xxxxx...<truncated 15 chars>"'

    def test_custom_prefix(self) -> None:
        """The prefix is configurable."""
        assert format_kv_pairs({"a": 1}, prefix="") == "a=1"


class TestStructuredFormatter:
    """StructuredFormatter.format()."""

    def test_with_structured_fields(self) -> None:
        """Appends key=value fields after the message."""
        record = logging.LogRecord("ingester", logging.INFO, "", 0, "cycle_started", (), None)
        record.kv = {"jobs": 24}
        assert StructuredFormatter().format(record) == "info ingester cycle_started jobs=24"

    def test_plain_record(self) -> None:
        """Plain logging records share the prefix layout."""
        record = logging.LogRecord(
            "relaycache.utils.request", logging.DEBUG, "", 0, "done relay=%s", ("wss://x",), None
        )
        assert StructuredFormatter().format(record) == "debug relaycache.utils.request done relay=wss://x"

    def test_json_mode(self) -> None:
        """JSON mode renders one object with the envelope and the fields."""
        record = logging.LogRecord("ingester", logging.WARNING, "", 0, "sync_job_failed", (), None)
        record.kv = {"label": "articles", "jobs": 3}

        payload = json.loads(StructuredFormatter(json_output=True).format(record))

        assert payload["level"] == "warning"
        assert payload["logger"] == "ingester"
        assert payload["message"] == "sync_job_failed"
        assert payload["label"] == "articles"
        assert payload["jobs"] == 3
        assert "timestamp" in payload

    def test_json_plain_record(self) -> None:
        """Plain logging records are JSON too, with the %-args applied."""
        record = logging.LogRecord(
            "relaycache.utils.request", logging.DEBUG, "", 0, "done relay=%s", ("wss://x",), None
        )
        payload = json.loads(StructuredFormatter(json_output=True).format(record))
        assert payload["message"] == "done relay=wss://x"
        assert payload["logger"] == "relaycache.utils.request"

    def test_json_fields_keep_envelope(self) -> None:
        """A field named like an envelope key does not replace it."""
        record = logging.LogRecord("cli", logging.INFO, "", 0, "interrupted", (), None)
        record.kv = {"message": "other", "signal": "SIGINT"}
        payload = json.loads(StructuredFormatter(json_output=True).format(record))
        assert payload["message"] == "interrupted"
        assert payload["signal"] == "SIGINT"

    def test_json_exception(self) -> None:
        """Tracebacks are carried in the exception key."""
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("cli", logging.ERROR, "", 0, "failed", (), sys.exc_info())
        payload = json.loads(StructuredFormatter(json_output=True).format(record))
        assert "RuntimeError: boom" in payload["exception"]


class TestLogger:
    """Logger methods."""

    def test_name(self) -> None:
        """The name is exposed."""
        assert Logger("ingester").name == "ingester"

    def test_kv_mode(self, caplog: pytest.LogCaptureFixture) -> None:
        """Keyword arguments become structured fields."""
        with caplog.at_level(logging.INFO, logger="kv_test"):
            Logger("kv_test").info("job_completed", relay="wss://x", events=2)

        record = caplog.records[-1]
        assert record.getMessage() == "job_completed"
        assert record.kv == {"relay": "wss://x", "events": 2}  # type: ignore[attr-defined]

    def test_disabled_level_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        """Records below the logger level are not emitted."""
        with caplog.at_level(logging.ERROR, logger="quiet_test"):
            Logger("quiet_test").info("nothing")
        assert not [r for r in caplog.records if r.name == "quiet_test"]

    def test_value_truncation(self, caplog: pytest.LogCaptureFixture) -> None:
        """String values are truncated to max_value_length."""
        with caplog.at_level(logging.INFO, logger="trunc_test"):
            Logger("trunc_test", max_value_length=4).info("m", frame="abcdefgh", count=123456)

        kv = caplog.records[-1].kv  # type: ignore[attr-defined]
        assert kv["frame"].startswith("abcd...")
        assert kv["count"] == 123456

    def test_bind_adds_context(self, caplog: pytest.LogCaptureFixture) -> None:
        """Bound fields appear on every record; call fields win on conflict."""
        base = Logger("bind_test")
        bound = base.bind(relay="wss://a", label="articles")
        with caplog.at_level(logging.INFO, logger="bind_test"):
            bound.info("sync_job_completed", label="threads", inserted=3)
            base.info("plain")

        bound_record, plain_record = caplog.records[-2:]
        assert bound_record.kv == {  # type: ignore[attr-defined]
            "relay": "wss://a",
            "label": "threads",
            "inserted": 3,
        }
        assert not hasattr(plain_record, "kv")
        assert bound.name == "bind_test"

    def test_exception_includes_traceback(self, caplog: pytest.LogCaptureFixture) -> None:
        """exception() attaches exc_info."""
        with caplog.at_level(logging.ERROR, logger="exc_test"):
            try:
                raise RuntimeError("boom")
            except RuntimeError:
                Logger("exc_test").exception("failed", step="store")

        assert caplog.records[-1].exc_info is not None


class TestSetupLogging:
    """setup_logging()."""

    @pytest.fixture(autouse=True)
    def _restore_root(self):
        handlers, level = logging.root.handlers[:], logging.root.level
        yield
        logging.root.handlers = handlers
        logging.root.setLevel(level)

    def test_structured_handler(self) -> None:
        """Installs one handler with the structured formatter."""
        setup_logging("debug")
        assert len(logging.root.handlers) == 1
        assert isinstance(logging.root.handlers[0].formatter, StructuredFormatter)
        assert logging.root.level == logging.DEBUG

    def test_json_handler(self, capsys: pytest.CaptureFixture[str]) -> None:
        """JSON mode writes service fields and plain records as JSON lines."""
        setup_logging("INFO", json_output=True)
        formatter = logging.root.handlers[0].formatter
        assert isinstance(formatter, StructuredFormatter)
        assert formatter.json_output

        Logger("json_setup_test").info("cycle_started", jobs=24)
        logging.getLogger("json_setup_plain").warning("relay_request_failed relay=%s", "wss://x")

        lines = capsys.readouterr().err.strip().splitlines()
        first, second = (json.loads(line) for line in lines[-2:])
        assert first["message"] == "cycle_started"
        assert first["jobs"] == 24
        assert second["message"] == "relay_request_failed relay=wss://x"
        assert logging.root.level == logging.INFO

    def test_quiets_nostr_sdk(self) -> None:
        """nostr-sdk's own logger is silenced."""
        setup_logging()
        assert logging.getLogger("nostr_sdk").level == logging.CRITICAL

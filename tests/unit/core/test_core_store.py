"""
Unit tests for core.store module.

Tests:
- MemoryEventStore insert/scan semantics
- StrfryEventStore subprocess handling (mocked)
- build_store() backend selection
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import event_id, make_event
from relaycache.core.exceptions import StoreError
from relaycache.core.store import (
    MemoryEventStore,
    StoreBackend,
    StoreConfig,
    StrfryEventStore,
    build_store,
)
from relaycache.models import Filter


def _proc(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.returncode = returncode
    proc.kill = MagicMock()
    proc.wait = AsyncMock()
    return proc


# =============================================================================
# MemoryEventStore
# =============================================================================


class TestMemoryEventStore:
    """MemoryEventStore."""

    async def test_insert_counts_new_events(self) -> None:
        """Only new ids count as inserted."""
        store = MemoryEventStore()

        assert await store.insert_events([make_event(1), make_event(2)]) == 2
        assert await store.insert_events([make_event(2), make_event(3)]) == 1
        assert len(store) == 3
        assert event_id(3) in store

    async def test_insert_idempotent(self) -> None:
        """Re-inserting the same events leaves the store unchanged."""
        store = MemoryEventStore()
        events = [make_event(1), make_event(2)]

        await store.insert_events(events)
        ids = store.ids
        assert await store.insert_events(events) == 0
        assert store.ids == ids

    async def test_scan_newest_first_with_limit(self) -> None:
        """scan() filters, orders newest first and applies limit."""
        store = MemoryEventStore()
        await store.insert_events(
            [
                make_event(1, kind=1, created_at=100),
                make_event(2, kind=1, created_at=300),
                make_event(3, kind=7, created_at=200),
                make_event(4, kind=1, created_at=200),
            ]
        )

        events = await store.scan(Filter(kinds=[1], limit=2))

        assert [e.id for e in events] == [event_id(2), event_id(4)]

    async def test_stats_counts_kinds(self) -> None:
        """stats() reports the event total and a per-kind breakdown."""
        store = MemoryEventStore()
        await store.insert_events(
            [make_event(1, kind=30023), make_event(2, kind=1), make_event(3, kind=1)]
        )

        assert await store.stats() == {
            "backend": "memory",
            "events": 3,
            "kinds": {"1": 2, "30023": 1},
        }

    async def test_stats_empty(self) -> None:
        assert await MemoryEventStore().stats() == {"backend": "memory", "events": 0, "kinds": {}}

    async def test_context_manager(self) -> None:
        """The store works as an async context manager."""
        async with MemoryEventStore() as store:
            assert len(store) == 0


# =============================================================================
# StrfryEventStore
# =============================================================================


class TestStrfryArgv:
    """Command line construction."""

    def test_config_path(self) -> None:
        """config_path is passed as --config."""
        store = StrfryEventStore(
            StoreConfig(command=["docker", "exec", "strfry", "strfry"], config_path="/etc/s.conf")
        )
        assert store._argv("import") == [
            "docker",
            "exec",
            "strfry",
            "strfry",
            "--config=/etc/s.conf",
            "import",
        ]


class TestStrfryInsert:
    """StrfryEventStore.insert_events()."""

    async def test_pipes_jsonl(self) -> None:
        """Events are piped as JSON lines and the added count is parsed."""
        proc = _proc(stderr=b"Imported 2 events: 1 added, 1 rejected, 0 dups\n")
        store = StrfryEventStore()

        with patch(
            "relaycache.core.store.asyncio.create_subprocess_exec",
            AsyncMock(return_value=proc),
        ) as spawn:
            inserted = await store.insert_events([make_event(1), make_event(2), make_event(1)])

        assert inserted == 1
        assert spawn.await_args.args == ("strfry", "import")
        payload = proc.communicate.await_args.args[0].decode()
        lines = payload.splitlines()
        assert [json.loads(line)["id"] for line in lines] == [event_id(1), event_id(2)]

    async def test_unparsed_summary_falls_back(self) -> None:
        """Without a recognizable summary the unique count is reported."""
        store = StrfryEventStore()
        with patch(
            "relaycache.core.store.asyncio.create_subprocess_exec",
            AsyncMock(return_value=_proc()),
        ):
            assert await store.insert_events([make_event(1), make_event(2)]) == 2

    async def test_empty_skips_subprocess(self) -> None:
        """No events means no subprocess."""
        spawn = AsyncMock()
        with patch("relaycache.core.store.asyncio.create_subprocess_exec", spawn):
            assert await StrfryEventStore().insert_events([]) == 0
        spawn.assert_not_awaited()

    async def test_nonzero_exit(self) -> None:
        """A failing strfry raises StoreError with stderr."""
        proc = _proc(stderr=b"lmdb: permission denied", returncode=1)
        with (
            patch(
                "relaycache.core.store.asyncio.create_subprocess_exec",
                AsyncMock(return_value=proc),
            ),
            pytest.raises(StoreError, match="permission denied"),
        ):
            await StrfryEventStore().insert_events([make_event(1)])

    async def test_missing_binary(self) -> None:
        """A missing binary raises StoreError."""
        with (
            patch(
                "relaycache.core.store.asyncio.create_subprocess_exec",
                AsyncMock(side_effect=FileNotFoundError("strfry")),
            ),
            pytest.raises(StoreError, match="Cannot run strfry"),
        ):
            await StrfryEventStore().insert_events([make_event(1)])

    async def test_timeout_kills(self) -> None:
        """A hung strfry is killed and reported."""
        proc = _proc()
        proc.communicate.side_effect = TimeoutError()
        with (
            patch(
                "relaycache.core.store.asyncio.create_subprocess_exec",
                AsyncMock(return_value=proc),
            ),
            pytest.raises(StoreError, match="timed out"),
        ):
            await StrfryEventStore(StoreConfig(timeout=1)).insert_events([make_event(1)])

        proc.kill.assert_called_once()


class TestStrfryScan:
    """StrfryEventStore.scan()."""

    async def test_parses_output(self) -> None:
        """Valid lines become events; bad lines are skipped."""
        lines = [
            json.dumps(make_event(1, created_at=100).to_dict()),
            "not json",
            "",
            json.dumps(make_event(2, created_at=200).to_dict()),
        ]
        proc = _proc(stdout="\n".join(lines).encode())

        with patch(
            "relaycache.core.store.asyncio.create_subprocess_exec",
            AsyncMock(return_value=proc),
        ) as spawn:
            events = await StrfryEventStore().scan(Filter(kinds=[1]))

        assert [e.id for e in events] == [event_id(2), event_id(1)]
        assert spawn.await_args.args == ("strfry", "scan", '{"kinds":[1]}')


class TestStrfryStats:
    """StrfryEventStore.stats()."""

    async def test_reports_db_stats(self) -> None:
        """The db-stats report is returned as text."""
        proc = _proc(stdout=b"DB size: 12 MB\nEvents: 4210\n")
        with patch(
            "relaycache.core.store.asyncio.create_subprocess_exec",
            AsyncMock(return_value=proc),
        ) as spawn:
            stats = await StrfryEventStore(StoreConfig(config_path="/etc/strfry.conf")).stats()

        assert stats == {"backend": "strfry", "db_stats": "DB size: 12 MB\nEvents: 4210"}
        assert spawn.await_args.args == ("strfry", "--config=/etc/strfry.conf", "db-stats")

    async def test_failure(self) -> None:
        """A failing db-stats raises StoreError."""
        with (
            patch(
                "relaycache.core.store.asyncio.create_subprocess_exec",
                AsyncMock(return_value=_proc(stderr=b"no such database", returncode=1)),
            ),
            pytest.raises(StoreError, match="db-stats exited with 1"),
        ):
            await StrfryEventStore().stats()


class TestBuildStore:
    """build_store()."""

    def test_memory(self) -> None:
        assert isinstance(build_store(StoreConfig(backend=StoreBackend.MEMORY)), MemoryEventStore)

    def test_default_strfry(self) -> None:
        assert isinstance(build_store(), StrfryEventStore)

    def test_from_yaml_strings(self) -> None:
        """The backend can be given as a plain string."""
        assert isinstance(build_store(StoreConfig(backend="memory")), MemoryEventStore)  # type: ignore[arg-type]

"""CLI entry point for relaycache.

Examples:
    ```bash
    python -m relaycache ingest --once
    python -m relaycache ingest --backfill --once          # long backfill windows
    python -m relaycache ingest --config config/services/ingester.yaml
    python -m relaycache ingest --menu broad --once          # single broad sync profile
    python -m relaycache smoke --relay ws://localhost:7777
    python -m relaycache export --kinds 30023 --output articles.jsonl
    python -m relaycache import articles.jsonl
    python -m relaycache stats
    python -m relaycache write-policy < event.json
    ```
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from relaycache.core import start_metrics_server
from relaycache.core.base_service import BaseService
from relaycache.core.exceptions import ConfigurationError, StoreError
from relaycache.core.logger import Logger, setup_logging
from relaycache.core.store import EventStore, StoreConfig, build_store
from relaycache.core.yaml import load_yaml
from relaycache.models import Filter
from relaycache.services.ingester import FilterMenu, Ingester
from relaycache.services.maintenance import (
    DEFAULT_IMPORT_BATCH_SIZE,
    export_events,
    import_events,
)
from relaycache.services.smoke import DEFAULT_SMOKE_TIMEOUT, default_relay_url, run_smoke_test
from relaycache.services.write_policy import run_hook


CONFIG_BASE = Path("config")
STORE_CONFIG = CONFIG_BASE / "store.yaml"
INGESTER_CONFIG = CONFIG_BASE / "services" / "ingester.yaml"

EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130

logger = Logger("cli")


async def run_service(service: BaseService[Any], *, once: bool) -> int:
    """Run a service in one-shot or continuous mode.

    In continuous mode a Prometheus metrics server is started and SIGINT /
    SIGTERM request a graceful shutdown.

    Returns:
        Exit code: 0 for success, 1 for failure.
    """
    name = service.SERVICE_NAME

    if once:
        try:
            async with service:
                await service.run()
            logger.info(f"{name}_completed")
            return 0
        except Exception as e:  # Intentionally broad: CLI error boundary for one-shot mode
            logger.error(f"{name}_failed", error=str(e), error_type=type(e).__name__)
            return 1

    metrics_config = service.config.metrics
    metrics_server = await start_metrics_server(metrics_config)
    if metrics_config.enabled:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        service.request_shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        async with service:
            await service.run_forever()
        return 0
    except Exception as e:  # Intentionally broad: CLI error boundary for continuous mode
        logger.error(f"{name}_failed", error=str(e), error_type=type(e).__name__)
        return 1
    finally:
        await metrics_server.stop()
        if metrics_config.enabled:
            logger.info("metrics_server_stopped")


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.warning("config_not_found", path=str(path))
        return {}
    return load_yaml(path)


async def run_ingest(args: argparse.Namespace) -> int:
    """Build the store and the ingester from config files, then run it."""
    try:
        store_dict = _load_yaml_dict(args.store_config)
        service_dict = _load_yaml_dict(args.config)
        if args.backfill:
            service_dict["backfill"] = True
        if args.menu is not None:
            service_dict["menu"] = args.menu
        store = build_store(StoreConfig(**store_dict))
        service = Ingester.from_dict(service_dict, store=store)
    except (ValidationError, ConfigurationError) as e:
        logger.error("config_invalid", error=str(e))
        return EXIT_CONFIG_ERROR

    async with store:
        return await run_service(service, once=args.once)


def _load_store(path: Path) -> EventStore:
    """Build the store from its config file.

    Raises:
        ValidationError: If the file does not describe a valid store.
    """
    return build_store(StoreConfig(**_load_yaml_dict(path)))


async def run_store_command(args: argparse.Namespace) -> int:
    """Run ``export``, ``import`` or ``stats`` against the configured store."""
    try:
        store = _load_store(args.store_config)
    except (ValidationError, ConfigurationError) as e:
        logger.error("config_invalid", error=str(e))
        return EXIT_CONFIG_ERROR

    try:
        async with store:
            if args.command == "export":
                query = Filter(kinds=args.kinds, since=args.since, limit=args.limit)
                if args.output is None:
                    await export_events(store, sys.stdout, query)
                else:
                    with args.output.open("w", encoding="utf-8") as out:
                        await export_events(store, out, query)
            elif args.command == "import":
                if args.file == "-":
                    summary = await import_events(store, sys.stdin, batch_size=args.batch_size)
                else:
                    with Path(args.file).open(encoding="utf-8") as lines:
                        summary = await import_events(store, lines, batch_size=args.batch_size)
                print(json.dumps(summary.to_dict()))  # noqa: T201
            else:
                print(json.dumps(await store.stats()))  # noqa: T201
    except (StoreError, OSError) as e:
        logger.error(f"{args.command}_failed", error=str(e), error_type=type(e).__name__)
        return 1
    return 0


async def run_smoke(args: argparse.Namespace) -> int:
    report = await run_smoke_test(
        args.relay,
        kinds=args.kinds,
        limit=args.limit,
        timeout=args.timeout,
    )
    print(json.dumps(report.to_dict()))  # noqa: T201
    return 0 if report.passed else 1


def _parse_kinds(value: str) -> list[int]:
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid kinds list: {value!r}") from None


def _add_store_config(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--store-config",
        type=Path,
        default=STORE_CONFIG,
        help=f"Store config path (default: {STORE_CONFIG})",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="relaycache",
        description="relaycache: read-only Nostr cache relay feeder",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit JSON log lines",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    ingest = commands.add_parser("ingest", help="Sync upstream relays into the cache relay")
    ingest.add_argument(
        "--config",
        type=Path,
        default=INGESTER_CONFIG,
        help=f"Ingester config path (default: {INGESTER_CONFIG})",
    )
    ingest.add_argument(
        "--store-config",
        type=Path,
        default=STORE_CONFIG,
        help=f"Store config path (default: {STORE_CONFIG})",
    )
    ingest.add_argument(
        "--once",
        action="store_true",
        help="Run one cycle and exit (default: run continuously)",
    )
    ingest.add_argument(
        "--backfill",
        action="store_true",
        help="Use the long backfill windows (90/30 days unless configured)",
    )
    ingest.add_argument(
        "--menu",
        choices=[str(menu) for menu in FilterMenu],
        default=None,
        help="Filter menu: windowed labelled filters or one broad profile (default: from config)",
    )

    smoke = commands.add_parser("smoke", help="Check that a relay answers one bounded query")
    smoke.add_argument(
        "--relay",
        default=None,
        help="Relay URL (default: $NOSTR_DEFAULT_RELAY or ws://localhost:7777)",
    )
    smoke.add_argument(
        "--kinds",
        type=_parse_kinds,
        default=[30023],
        help="Comma-separated event kinds to query (default: 30023)",
    )
    smoke.add_argument("--limit", type=int, default=1, help="Query limit (default: 1)")
    smoke.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_SMOKE_TIMEOUT,
        help=f"Seconds to wait (default: {DEFAULT_SMOKE_TIMEOUT})",
    )

    export = commands.add_parser("export", help="Write stored events as JSON lines")
    _add_store_config(export)
    export.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output file (default: stdout)",
    )
    export.add_argument(
        "--kinds",
        type=_parse_kinds,
        default=None,
        help="Comma-separated event kinds (default: all)",
    )
    export.add_argument("--since", type=int, default=None, help="Oldest created_at to export")
    export.add_argument("--limit", type=int, default=None, help="Maximum events to export")

    import_ = commands.add_parser("import", help="Insert JSON-line events into the store")
    _add_store_config(import_)
    import_.add_argument("file", help="JSON-lines file, or - for stdin")
    import_.add_argument(
        "--batch-size",
        type=int,
        default=DEFAULT_IMPORT_BATCH_SIZE,
        help=f"Events per store insert (default: {DEFAULT_IMPORT_BATCH_SIZE})",
    )

    stats = commands.add_parser("stats", help="Print store statistics as JSON")
    _add_store_config(stats)

    commands.add_parser("write-policy", help="Write-policy hook: reject the event on stdin")

    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, configure logging, dispatch the command."""
    args = parse_args(argv)
    setup_logging(args.log_level, json_output=args.log_json)

    try:
        if args.command == "ingest":
            return await run_ingest(args)
        if args.command == "smoke":
            if args.relay is None:
                args.relay = default_relay_url()
            return await run_smoke(args)
        if args.command in ("export", "import", "stats"):
            return await run_store_command(args)
        if args.command == "write-policy":
            return run_hook(sys.stdin.buffer, sys.stdout)
        raise AssertionError(f"unhandled command {args.command!r}")
    except KeyboardInterrupt:
        logger.info("interrupted")
        return EXIT_INTERRUPTED


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    logging.captureWarnings(True)
    cli()

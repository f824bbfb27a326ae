"""Command-line entry point: ``python -m mindshare_sync <command>``."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from mindshare_sync.batches.leaderboard import BatchError
from mindshare_sync.config import Settings, get_settings
from mindshare_sync.service import SyncService

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mindshare_sync",
        description="Mirror market, claim and balance state from the ledger into the local store.",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create missing tables before running (local/test databases; use Alembic in production)",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("run", help="Seed, sweep once, then keep sweeping until interrupted")
    sub.add_parser("sweep", help="Refresh every known market once and print the report")
    sub.add_parser("seed", help="Seed today's and yesterday's leaderboards if missing")
    sub.add_parser("close-all", help="Close every trading market past its lock time")
    sub.add_parser("regenerate-leaderboard", help="Shuffle today's leaderboard into a new snapshot")

    imp = sub.add_parser("import-markets", help="Import a deployment file (JSON list of markets)")
    imp.add_argument("path", type=Path)
    imp.add_argument("--clear", action="store_true", help="Delete all markets first")

    contracts = sub.add_parser("save-contracts", help="Register contracts from a JSON list")
    contracts.add_argument("path", type=Path)
    return parser


def _print(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _load_json_list(path: Path) -> list[Any]:
    data = json.loads(path.read_text())
    if isinstance(data, dict):
        data = data.get("markets") or data.get("contracts") or []
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list")
    return data


async def _run_forever(settings: Settings, create_schema: bool) -> None:
    service = SyncService(settings)
    if create_schema:
        await _create_schema(settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # unsupported on Windows event loops
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, service.request_stop)
    await service.run()


async def _create_schema(settings: Settings) -> None:
    async with SyncService(settings, background=False) as service:
        await service.db.init_schema_async()


async def _run_command(args: argparse.Namespace, settings: Settings) -> int:
    if args.command == "run":
        await _run_forever(settings, args.create_schema)
        return 0

    if args.create_schema:
        await _create_schema(settings)

    async with SyncService(settings, background=False) as service:
        if args.command == "sweep":
            report = await service.orchestrator.run_sweep()
            _print(
                {
                    "total": report.total,
                    "ok": report.ok,
                    "absent": report.absent,
                    "transient": report.transient,
                    "unexpected": report.unexpected,
                    "failures": report.failures,
                    "error": report.error,
                }
            )
            return 1 if report.unexpected or report.error else 0

        if args.command == "seed":
            seeded = await service.leaderboard.ensure_seed_data()
            _print({"seeded": [b.to_dict() for b in seeded]})
            return 0

        if args.command == "close-all":
            summary = await service.admin.close_all_markets()
            _print(summary.to_dict())
            return 0

        if args.command == "regenerate-leaderboard":
            batch, entries = await service.leaderboard.regenerate()
            _print({**batch.to_dict(), "count": len(entries), "top10": [e.name for e in entries[:10]]})
            return 0

        if args.command == "import-markets":
            result = await service.deployments.import_markets(
                _load_json_list(args.path), clear_existing=args.clear
            )
            _print(result.to_dict())
            return 0

        if args.command == "save-contracts":
            count = await service.registry.save_contracts(_load_json_list(args.path))
            _print({"success": True, "count": count})
            return 0

    raise ValueError(f"Unknown command {args.command!r}")


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logger.error("Invalid configuration: %s", e)
        return 2

    logging.basicConfig(level=settings.get_logging_level(), format=LOG_FORMAT)

    try:
        settings.validate_requirements(command=args.command)
        return asyncio.run(_run_command(args, settings))
    except (BatchError, ValueError) as e:
        logger.error("%s", e)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())

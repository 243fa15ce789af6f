"""Command line interface.

    entrant-sync sweep --filepath entries.csv [--size 9] [--yes]
    entrant-sync reconcile --filepath entries.csv
    entrant-sync send-invoices --filepath draft-orders.csv [--sku SKU] [--dry-run]
    entrant-sync config [--json]

Exit codes: 0 when the run completed (per-record failures are written to the
output directory), 1 when it was aborted, 2 on configuration errors.
"""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Mapping, Sequence
import json
import logging
from pathlib import Path
import sys
import tomllib
from typing import Any

from entrant_sync.config import (
    ConfigFileError,
    FrozenConfig,
    get_config_info,
    print_config_debug,
    resolve_config,
)
from entrant_sync.core.types import BatchResult
from entrant_sync.exceptions import BatchAborted, ConfigurationError
from entrant_sync.executor import create_executor
from entrant_sync.gates import AutoApproveGate, ConfirmationGate, ConsoleGate
from entrant_sync.ingest import read_draft_orders, read_entries
from entrant_sync.progress import LoggingProgressObserver
from entrant_sync.sinks import CsvResultSink

# ruff: noqa: T201

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_CONFIG = 2


def load_variant_map(path: str | Path) -> dict[str, str]:
    """Load a selector -> variant id map from a JSON or TOML file.

    TOML files may hold the pairs at top level or under ``[variant_map]``.
    """
    path = Path(path)
    try:
        if path.suffix.lower() == ".json":
            data: Any = json.loads(path.read_text(encoding="utf-8"))
        else:
            with path.open("rb") as f:
                data = tomllib.load(f)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Cannot read variant map {path}: {e}") from e
    if isinstance(data, Mapping) and isinstance(data.get("variant_map"), Mapping):
        data = data["variant_map"]
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Variant map {path} must be a table of selector = id")
    return {str(k).strip(): str(v).strip() for k, v in data.items()}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="entrant-sync",
        description="Turn raffle entries into customers, draft orders and invoices",
    )
    parser.add_argument("--profile", help="Configuration profile to use")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log every step (debug level)"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def run_options(p: argparse.ArgumentParser) -> None:
        p.add_argument("--filepath", "-f", required=True, help="Input CSV file")
        p.add_argument("--output-dir", help="Where result CSVs are written")
        p.add_argument(
            "--yes", "-y", action="store_true", help="Answer yes to every confirmation"
        )
        # SUPPRESS keeps a top-level --verbose from being reset by the subparser
        p.add_argument(
            "--verbose", "-v", action="store_true", default=argparse.SUPPRESS
        )

    sweep = sub.add_parser("sweep", help="Reconcile entries and create draft orders")
    run_options(sweep)
    sweep.add_argument("--size", help="Only process entries for this size")
    sweep.add_argument("--variant-map", help="JSON or TOML file mapping size to variant id")
    sweep.add_argument(
        "--keep-going",
        action="store_true",
        help="Create orders even if some entries failed reconciliation",
    )

    reconcile = sub.add_parser("reconcile", help="Find or create customers only")
    run_options(reconcile)

    invoices = sub.add_parser("send-invoices", help="Send invoices for draft orders")
    run_options(invoices)
    invoices.add_argument("--sku", default="", help="Label added to output file names")
    invoices.add_argument("--message", help="Custom invoice message")
    invoices.add_argument(
        "--dry-run", action="store_true", help="Count invoices without sending"
    )

    config = sub.add_parser("config", help="Show the effective configuration")
    config.add_argument("--json", action="store_true", help="Output as JSON")
    config.add_argument(
        "--no-sources", action="store_true", help="Don't show configuration sources"
    )
    return parser


def _summarize(label: str, result: BatchResult[Any]) -> None:
    print(f"{label}: {len(result.successes)} succeeded, {len(result.failures)} failed")


async def _ask(gate: ConfirmationGate, message: str) -> None:
    if not await asyncio.to_thread(gate.confirm, message):
        raise BatchAborted(f"Declined: {message}")


async def _confirm_scope(
    args: argparse.Namespace, config: FrozenConfig, gate: ConfirmationGate
) -> None:
    """Confirm the shop and any size or SKU filter before the first phase."""
    if config.use_real_api:
        await _ask(gate, f"Running against the shop at {config.shop_name}. Is this correct?")
    else:
        logger.info("Running against the in-memory shop")
    if getattr(args, "size", None):
        await _ask(gate, f"Running for size {args.size}. Is this correct?")
    if getattr(args, "sku", None):
        await _ask(gate, f"Running for SKU {args.sku}. Is this correct?")


async def _run(args: argparse.Namespace, config: FrozenConfig) -> None:
    gate: ConfirmationGate = AutoApproveGate() if args.yes else ConsoleGate()
    await _confirm_scope(args, config, gate)
    sink = CsvResultSink(args.output_dir or config.output_dir)
    kwargs: dict[str, Any] = {
        "gate": gate,
        "observer": LoggingProgressObserver(),
        "sink": sink,
    }

    if args.command == "sweep":
        variant_map = load_variant_map(args.variant_map) if args.variant_map else None
        records = read_entries(args.filepath)
        kwargs["halt_on_reconcile_failures"] = not args.keep_going
        async with create_executor(config, **kwargs) as executor:
            report = await executor.sweep(records, variant_map, selector=args.size)
        _summarize("Customers", report.reconciliation)
        _summarize("Draft orders", report.orders)
    elif args.command == "reconcile":
        records = read_entries(args.filepath)
        async with create_executor(config, **kwargs) as executor:
            result = await executor.reconcile(records)
        _summarize("Customers", result)
    elif args.command == "send-invoices":
        refs = read_draft_orders(args.filepath)
        async with create_executor(config, **kwargs) as executor:
            result = await executor.send_invoices(
                refs, args.message, dry_run=args.dry_run, label=args.sku
            )
        if args.dry_run:
            print(f"Dry run: {len(refs)} invoice(s) would be sent")
        else:
            _summarize("Invoices", result)
    print(f"Results written to {sink.output_dir}")


def _show_config(args: argparse.Namespace) -> None:
    if args.json:
        print(json.dumps(get_config_info(profile=args.profile), indent=2, default=str))
    else:
        print_config_debug(profile=args.profile, show_sources=not args.no_sources)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "config":
            _show_config(args)
            return EXIT_OK
        config = resolve_config(profile=args.profile).to_frozen()
    except (ConfigFileError, ValueError) as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG

    try:
        asyncio.run(_run(args, config))
    except BatchAborted as e:
        logger.error("Aborted: %s", e.reason)
        if e.partial is not None:
            _summarize("Before abort", e.partial)
        return EXIT_ABORTED
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG
    except OSError as e:
        logger.error("File error: %s", e)
        return EXIT_CONFIG
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return EXIT_ABORTED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

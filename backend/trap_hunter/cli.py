#!/usr/bin/env python3
"""
Trap Hunter — Command Line Scanner

Runs a trap scan over a CSV or JSON bar file and prints the events.

Usage:
    trap-hunter bars.csv
    trap-hunter bars.json --format table --min-trap-score 0.6
    trap-hunter bars.csv --calc-params 20,20,3,5,20,1.3,0.0007,0.35,0.5,1,5 --output events.csv
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd
import structlog

from trap_hunter.config import get_settings
from trap_hunter.engines.trap_engine import TrapEngine
from trap_hunter.models import TrapParams
from trap_hunter.utils.formatters import format_event_row
from trap_hunter.utils.validators import MalformedBarError

log = structlog.get_logger("trap_hunter.cli")

# CLI flag → TrapParams field
_OVERRIDES = {
    "resistance_lookback": int,
    "support_lookback": int,
    "confirmation_bars": int,
    "max_trap_bars": int,
    "volume_ma_period": int,
    "min_volume_spike": float,
    "min_breakout_factor": float,
    "min_wick_ratio": float,
    "min_trap_score": float,
    "normal_quiet_bars": int,
}


def load_bars_frame(path: Path) -> pd.DataFrame:
    """Read a bar file; ``.json`` is read as records, anything else as CSV."""
    if path.suffix.lower() == ".json":
        return pd.read_json(path, orient="records", convert_dates=False)
    return pd.read_csv(path)


def parse_calc_params(raw: str) -> list[Optional[float]]:
    """Parse ``"20,20,3,,5"`` into a positional vector; blanks become None."""
    return [float(x) if x.strip() else None for x in raw.split(",")]


def build_params(args: argparse.Namespace) -> TrapParams:
    """Settings defaults, then the positional vector, then individual flags."""
    if args.calc_params:
        params = TrapParams.from_calc_params(parse_calc_params(args.calc_params))
    else:
        params = get_settings().default_params()

    updates = {
        name: getattr(args, name)
        for name in _OVERRIDES
        if getattr(args, name) is not None
    }
    if args.no_normal:
        updates["enable_normal_signal"] = False
    if updates:
        params = TrapParams(**{**params.model_dump(), **updates})
    return params


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trap-hunter",
        description="Detect bull/bear traps in an OHLCV bar file",
    )
    parser.add_argument("path", type=Path, help="CSV or JSON file with timestamp/open/high/low/close/volume")
    parser.add_argument(
        "--format",
        default="json",
        choices=["json", "table"],
        help="Output format (default: json)",
    )
    parser.add_argument("--output", type=Path, help="Also write the event table to this CSV file")
    parser.add_argument("--calc-params", help="Comma-separated positional parameter vector")
    parser.add_argument("--no-normal", action="store_true", help="Disable normal-state markers")
    parser.add_argument("--no-validate", action="store_true", help="Skip the malformed-bar check")
    parser.add_argument("--precision", type=int, default=2, help="Price precision for table output")
    for name, kind in _OVERRIDES.items():
        parser.add_argument(f"--{name.replace('_', '-')}", dest=name, type=kind, default=None)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the ``trap-hunter`` console script."""
    saved = structlog.get_config()
    # Logs go to stderr so stdout carries only the result
    structlog.configure(logger_factory=structlog.PrintLoggerFactory(sys.stderr))
    try:
        return _run(build_parser().parse_args(argv))
    finally:
        structlog.configure(**saved)


def _run(args: argparse.Namespace) -> int:
    engine = TrapEngine()
    try:
        frame = load_bars_frame(args.path)
        bars = engine.bars_from_dataframe(frame)
    except (OSError, ValueError) as exc:
        log.error("load_failed", path=str(args.path), error=str(exc))
        return 2

    try:
        params = build_params(args)
    except ValueError as exc:
        log.error("invalid_params", calc_params=args.calc_params, error=str(exc))
        return 2

    try:
        scan = engine.scan(bars, params, validate=not args.no_validate)
    except MalformedBarError as exc:
        log.error("malformed_bar", index=exc.index, reason=exc.reason)
        return 2

    if args.format == "json":
        payload = {
            "indicator": scan.indicator,
            "bar_count": scan.bar_count,
            "params": params.model_dump(),
            "events": [e.model_dump(mode="json") for e in scan.events],
        }
        print(json.dumps(payload, indent=2))
    else:
        for event in scan.events:
            print(format_event_row(event, precision=args.precision))
        print(
            f"{scan.bar_count} bars: {scan.bull_count} bull, "
            f"{scan.bear_count} bear, {scan.normal_count} normal"
        )

    if args.output:
        engine.records_to_dataframe(scan.events).to_csv(args.output, index=False)
        log.info("events_written", path=str(args.output), rows=len(scan.events))

    return 0


if __name__ == "__main__":
    sys.exit(main())

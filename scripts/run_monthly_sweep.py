#!/usr/bin/env python3
"""Run the monthly quota reset sweep over a registry export.

Loads vehicles from a JSON array of registry records, opens a fresh
allowance for every (matching) vehicle and sends each owner the
"new quota" notice, then prints the sweep report.  Balances are kept in
the in-process store only, so this entry point is the monthly
announcement run an external scheduler (cron, systemd timer) fires; the
station-facing service keeps its own store.

Owner notifications follow the ``FUELQUOTA_*`` environment settings; SMS
is off unless ``FUELQUOTA_SMS_ENABLED`` is set.

With ``--scheduled`` the month that was last swept is recorded in a
state file (by default ``<registry>.sweep-state.json``) and a second
fire in the same month does nothing.

Usage
-----
::

    python scripts/run_monthly_sweep.py vehicles.json --scheduled
    python scripts/run_monthly_sweep.py vehicles.json --fuel-type diesel --json

Options::

    --scheduled          Timer-driven run: at most once per calendar month
    --state-file FILE    Where --scheduled records the last swept month
    --vehicle-class CLS  Only reset vehicles of this class
    --fuel-type TYPE     Only reset vehicles using this fuel
    --reminders          Also send quota expiry reminders afterwards
    --json               Output the report as JSON

Exit status is 1 when any vehicle failed to reset.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from fuelquota import FuelQuotaService, InMemoryVehicleDirectory, QuotaConfig  # noqa: E402
from fuelquota.models import SweepResult, SweepState  # noqa: E402
from fuelquota.periods import month_tick, utcnow  # noqa: E402

_logger = logging.getLogger("run_monthly_sweep")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reset monthly fuel quotas for every registered vehicle.")
    parser.add_argument("registry", type=Path, help="JSON file with an array of vehicle records")
    parser.add_argument("--scheduled", action="store_true", help="Timer-driven run: at most once per month")
    parser.add_argument("--state-file", type=Path, help="Where --scheduled records the last swept month")
    parser.add_argument("--vehicle-class", help="Only reset vehicles of this class")
    parser.add_argument("--fuel-type", help="Only reset vehicles using this fuel")
    parser.add_argument("--reminders", action="store_true", help="Send quota expiry reminders after the sweep")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _state_path(args: argparse.Namespace) -> Path:
    if args.state_file is not None:
        return args.state_file
    return args.registry.with_name(f"{args.registry.stem}.sweep-state.json")


def _read_last_tick(path: Path) -> str | None:
    if not path.exists():
        return None
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict) and isinstance(data.get("last_tick"), str):
        return data["last_tick"]
    return None


def _write_last_tick(path: Path, tick: str) -> None:
    path.write_text(json.dumps({"last_tick": tick}), encoding="utf-8")


def _print_report(result: SweepResult, reminders: int | None) -> None:
    print(f"Quota reset sweep for {result.period_label}: {result.state}")
    print(f"  vehicles      : {result.total}")
    print(f"  reset         : {result.succeeded}")
    print(f"  failed        : {result.failed}")
    print(f"  skipped       : {result.skipped}")
    print(f"  notices sent  : {result.notifications_sent}")
    print(f"  not delivered : {result.notifications_undelivered}")
    for failure in result.failures:
        print(f"    {failure.vehicle_id}: {failure.error}")
    if reminders is not None:
        print(f"  reminders     : {reminders}")


async def _run(args: argparse.Namespace) -> int:
    config = QuotaConfig.from_env()
    directory = InMemoryVehicleDirectory.from_json_file(args.registry)

    state_path = _state_path(args)
    tick = month_tick(utcnow(), config.zone)
    if args.scheduled and _read_last_tick(state_path) == tick:
        _logger.info("Quota reset sweep for %s already ran (%s); nothing to do", tick, state_path)
        if args.json_mode:
            print(json.dumps({"tick": tick, "already_ran": True}, indent=2))
        else:
            print(f"Quota reset sweep for {tick} already ran; nothing to do")
        return 0

    async with FuelQuotaService(config, directory) as service:
        result = await service.run_monthly_sweep(
            vehicle_class=args.vehicle_class,
            fuel_type=args.fuel_type,
        )
        reminders = await service.send_expiry_reminders() if args.reminders else None

    if args.scheduled and result.state != SweepState.CANCELLED:
        _write_last_tick(state_path, tick)

    if args.json_mode:
        report: dict[str, Any] = result.model_dump(mode="json")
        report["tick"] = tick if args.scheduled else None
        report["reminders_sent"] = reminders
        print(json.dumps(report, indent=2))
    else:
        _print_report(result, reminders)
    return 1 if result.failed else 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())

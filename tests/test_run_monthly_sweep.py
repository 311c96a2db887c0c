from __future__ import annotations

import importlib.util
import json
from pathlib import Path
from types import ModuleType

import pytest

from fuelquota.config import QuotaConfig
from fuelquota.periods import month_tick, utcnow

_SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "run_monthly_sweep.py"


@pytest.fixture
def script() -> ModuleType:
    spec = importlib.util.spec_from_file_location("run_monthly_sweep", _SCRIPT)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def registry(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for key in ("FUELQUOTA_SMS_ENABLED", "FUELQUOTA_TIME_ZONE", "FUELQUOTA_SWEEP_CONCURRENCY"):
        monkeypatch.delenv(key, raising=False)
    path = tmp_path / "vehicles.json"
    path.write_text(
        json.dumps(
            [
                {"vehicleId": "WP-CAB-1234", "vehicleClass": "CAR", "fuelType": "PETROL", "engineDisplacement": 1500},
                {"vehicleId": "WP-NB-5555", "vehicleClass": "BUS", "fuelType": "DIESEL"},
            ]
        ),
        encoding="utf-8",
    )
    return path


@pytest.mark.asyncio
async def test_scheduled_run_is_remembered_across_invocations(
    script: ModuleType, registry: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    args = ["--scheduled", "--json"]

    assert await script._run(script._parse_args([str(registry), *args])) == 0
    first = json.loads(capsys.readouterr().out)
    assert await script._run(script._parse_args([str(registry), *args])) == 0
    second = json.loads(capsys.readouterr().out)

    tick = month_tick(utcnow(), QuotaConfig().zone)
    assert first["total"] == 2
    assert first["tick"] == tick
    assert second == {"tick": tick, "already_ran": True}
    state = registry.with_name("vehicles.sweep-state.json")
    assert json.loads(state.read_text(encoding="utf-8")) == {"last_tick": tick}


@pytest.mark.asyncio
async def test_unscheduled_run_ignores_state_file(
    script: ModuleType, registry: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    state = tmp_path / "state.json"
    state.write_text(json.dumps({"last_tick": month_tick(utcnow(), QuotaConfig().zone)}), encoding="utf-8")

    assert await script._run(script._parse_args([str(registry), "--state-file", str(state), "--json"])) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["total"] == 2
    assert report["tick"] is None


@pytest.mark.asyncio
async def test_json_report_includes_reminder_count(
    script: ModuleType, registry: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert await script._run(script._parse_args([str(registry), "--fuel-type", "diesel", "--reminders", "--json"])) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["total"] == 1
    assert isinstance(report["reminders_sent"], int)


@pytest.mark.asyncio
async def test_text_report_without_reminders(
    script: ModuleType, registry: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert await script._run(script._parse_args([str(registry)])) == 0

    out = capsys.readouterr().out
    assert "vehicles      : 2" in out
    assert "reminders" not in out

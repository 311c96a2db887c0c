from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from fuelquota.exceptions import SweepInProgressError, SweepPartialFailureError
from fuelquota.ledger import QuotaLedger
from fuelquota.models.notification import NotificationKind
from fuelquota.models.outcomes import SweepState
from fuelquota.models.quota import QuotaPeriod
from fuelquota.models.vehicle import FuelType, Vehicle, VehicleClass
from fuelquota.registry import InMemoryVehicleDirectory
from fuelquota.state.store import InMemoryQuotaStore
from fuelquota.sweep import PeriodResetSweep

from tests._fakes import FakeGateway, MutableClock

COLOMBO = ZoneInfo("Asia/Colombo")


class FailingStore(InMemoryQuotaStore):
    def __init__(self, failing_vehicle_id: str) -> None:
        super().__init__()
        self._failing = failing_vehicle_id

    async def supersede_and_insert(self, period: QuotaPeriod, now: datetime) -> QuotaPeriod | None:
        if period.vehicle_id == self._failing:
            raise RuntimeError("store unavailable")
        return await super().supersede_and_insert(period, now)


class BlockingDirectory(InMemoryVehicleDirectory):
    def __init__(self, vehicles: list[Vehicle]) -> None:
        super().__init__(vehicles)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def list_vehicles(self) -> list[Vehicle]:
        self.entered.set()
        await self.release.wait()
        return await super().list_vehicles()


def _sweep(
    directory: InMemoryVehicleDirectory,
    clock: MutableClock,
    gateway: FakeGateway | None = None,
    store: InMemoryQuotaStore | None = None,
    concurrency: int = 2,
) -> PeriodResetSweep:
    ledger = QuotaLedger(store, zone=COLOMBO, clock=clock)
    return PeriodResetSweep(ledger, directory, gateway, zone=COLOMBO, concurrency=concurrency)


@pytest.mark.asyncio
async def test_sweep_resets_every_vehicle_and_notifies(
    directory: InMemoryVehicleDirectory, clock: MutableClock, gateway: FakeGateway
) -> None:
    sweep = _sweep(directory, clock, gateway)

    result = await sweep.run()

    assert result.state == SweepState.COMPLETED
    assert sweep.state == SweepState.COMPLETED
    assert (result.total, result.succeeded, result.failed, result.skipped) == (5, 5, 0, 0)
    assert result.notifications_sent == 5
    assert result.period_label == "October 2026"
    assert gateway.kinds() == [NotificationKind.ALLOCATION_GRANTED] * 5
    allocations = {args["vehicle_id"]: args["allocated"] for _kind, args in gateway.sent}
    assert allocations == {
        "WP-CAB-1234": 60.0,
        "WP-CAR-2000": 80.0,
        "WP-QA-1111": 20.0,
        "WP-NB-5555": 200.0,
        "WP-LA-7777": 200.0,
    }


@pytest.mark.asyncio
async def test_one_failing_vehicle_does_not_stop_the_others(
    directory: InMemoryVehicleDirectory, clock: MutableClock, gateway: FakeGateway
) -> None:
    sweep = _sweep(directory, clock, gateway, store=FailingStore("WP-QA-1111"))

    result = await sweep.run()

    assert result.state == SweepState.COMPLETED_WITH_FAILURES
    assert (result.succeeded, result.failed) == (4, 1)
    assert result.failures[0].vehicle_id == "WP-QA-1111"
    assert "store unavailable" in result.failures[0].error
    assert result.notifications_sent == 4
    with pytest.raises(SweepPartialFailureError):
        result.raise_for_failures()


@pytest.mark.asyncio
async def test_undelivered_notices_do_not_fail_the_vehicle(
    directory: InMemoryVehicleDirectory, clock: MutableClock
) -> None:
    gateway = FakeGateway(raising_kinds={NotificationKind.ALLOCATION_GRANTED})
    sweep = _sweep(directory, clock, gateway)

    result = await sweep.run()

    assert result.state == SweepState.COMPLETED
    assert result.succeeded == 5
    assert result.notifications_sent == 0
    assert result.notifications_undelivered == 5


@pytest.mark.asyncio
async def test_sweep_without_gateway_still_resets(directory: InMemoryVehicleDirectory, clock: MutableClock) -> None:
    sweep = _sweep(directory, clock)

    result = await sweep.run()

    assert result.succeeded == 5
    assert result.notifications_sent == result.notifications_undelivered == 0


@pytest.mark.asyncio
async def test_repeated_admin_runs_reset_each_time(
    directory: InMemoryVehicleDirectory, clock: MutableClock
) -> None:
    store = InMemoryQuotaStore()
    sweep = _sweep(directory, clock, store=store)
    vehicle = await directory.get_vehicle("WP-CAB-1234")
    assert vehicle is not None

    await sweep.run()
    ledger = QuotaLedger(store, zone=COLOMBO, clock=clock)
    await ledger.deduct(vehicle, FuelType.PETROL, 25)
    await sweep.run()

    assert await ledger.remaining_balance(vehicle) == 60.0
    history = await ledger.history(vehicle.vehicle_id, FuelType.PETROL)
    assert len(history) == 2
    assert sum(1 for p in history if not p.is_superseded) == 1


@pytest.mark.asyncio
async def test_scheduled_tick_runs_once(directory: InMemoryVehicleDirectory, clock: MutableClock) -> None:
    store = InMemoryQuotaStore()
    sweep = _sweep(directory, clock, store=store)

    first = await sweep.run(tick="2026-10")
    second = await sweep.run(tick="2026-10")

    assert second is first
    assert len(store) == 5

    third = await sweep.run(tick="2026-11")
    assert third is not first
    assert len(store) == 10


@pytest.mark.asyncio
async def test_admin_run_between_scheduled_ticks_keeps_scheduled_result(
    directory: InMemoryVehicleDirectory, clock: MutableClock
) -> None:
    store = InMemoryQuotaStore()
    sweep = _sweep(directory, clock, store=store)

    first = await sweep.run(tick="2026-10")
    admin = await sweep.run(fuel_type=FuelType.DIESEL)
    again = await sweep.run(tick="2026-10")

    assert admin.total == 2
    assert again is first
    assert again.total == 5
    assert len(store) == 7


@pytest.mark.asyncio
async def test_overlapping_run_is_rejected(clock: MutableClock, fleet: list[Vehicle]) -> None:
    directory = BlockingDirectory(fleet)
    sweep = _sweep(directory, clock)

    running = asyncio.create_task(sweep.run())
    await directory.entered.wait()
    assert sweep.state == SweepState.RUNNING

    with pytest.raises(SweepInProgressError):
        await sweep.run()

    directory.release.set()
    result = await running
    assert result.state == SweepState.COMPLETED


@pytest.mark.asyncio
async def test_cancelled_sweep_reports_skipped(directory: InMemoryVehicleDirectory, clock: MutableClock) -> None:
    cancel = asyncio.Event()
    cancel.set()
    sweep = _sweep(directory, clock)

    result = await sweep.run(tick="2026-10", cancel_event=cancel)

    assert result.state == SweepState.CANCELLED
    assert (result.succeeded, result.skipped) == (0, 5)

    # A cancelled scheduled run does not consume its tick.
    again = await sweep.run(tick="2026-10")
    assert again.state == SweepState.COMPLETED
    assert again.succeeded == 5


@pytest.mark.asyncio
async def test_sweep_filters(directory: InMemoryVehicleDirectory, clock: MutableClock, gateway: FakeGateway) -> None:
    sweep = _sweep(directory, clock, gateway)

    diesel = await sweep.run(fuel_type=FuelType.DIESEL)
    assert diesel.total == 2

    cars = await sweep.run(vehicle_class=VehicleClass.CAR, fuel_type=FuelType.PETROL)
    assert cars.total == 2


def test_concurrency_must_be_positive(directory: InMemoryVehicleDirectory) -> None:
    ledger = QuotaLedger(clock=lambda: datetime(2026, 10, 15, tzinfo=UTC))
    with pytest.raises(ValueError):
        PeriodResetSweep(ledger, directory, zone=COLOMBO, concurrency=0)

"""Monthly period reset sweep.

``IDLE -> RUNNING -> COMPLETED | COMPLETED_WITH_FAILURES | CANCELLED``

Every selected vehicle gets a forced reset through the ledger followed by
an allocation notice.  Vehicles are processed by a bounded pool of
workers; one vehicle's failure is recorded and never stops the others.
Cancellation is cooperative: once the event is set no new vehicle is
started and the unstarted ones are reported as skipped.

The scheduler itself lives outside the engine.  A scheduled trigger
passes the month ``tick`` so that firing twice for the same month runs
the sweep once; an administrative run without a tick always resets.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from datetime import datetime, tzinfo

from fuelquota._constants import DEFAULT_SWEEP_CONCURRENCY
from fuelquota.exceptions import SweepInProgressError
from fuelquota.ledger import QuotaLedger
from fuelquota.models.notification import NotificationKind
from fuelquota.models.outcomes import SweepFailure, SweepResult, SweepState
from fuelquota.models.vehicle import FuelType, Vehicle, VehicleClass
from fuelquota.notifications import NotificationGateway, dispatch_best_effort
from fuelquota.periods import month_label
from fuelquota.registry import VehicleDirectory

_logger = logging.getLogger(__name__)


@dataclasses.dataclass
class _Tally:
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    notifications_sent: int = 0
    notifications_undelivered: int = 0
    failures: list[SweepFailure] = dataclasses.field(default_factory=list)


def _selected(vehicle: Vehicle, vehicle_class: VehicleClass | None, fuel_type: FuelType | None) -> bool:
    if vehicle_class is not None and vehicle.vehicle_class != vehicle_class:
        return False
    return fuel_type is None or vehicle.fuel_type == fuel_type


class PeriodResetSweep:
    """Resets every vehicle's quota period and announces the new allowance."""

    def __init__(
        self,
        ledger: QuotaLedger,
        directory: VehicleDirectory,
        gateway: NotificationGateway | None = None,
        *,
        zone: tzinfo,
        concurrency: int = DEFAULT_SWEEP_CONCURRENCY,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self._ledger = ledger
        self._directory = directory
        self._gateway = gateway
        self._zone = zone
        self._concurrency = concurrency
        self._clock = clock or ledger.now
        self._state = SweepState.IDLE
        self._run_lock = asyncio.Lock()
        self._last_tick: str | None = None
        self._last_scheduled_result: SweepResult | None = None
        self._last_result: SweepResult | None = None

    @property
    def state(self) -> SweepState:
        return self._state

    @property
    def gateway(self) -> NotificationGateway | None:
        return self._gateway

    @gateway.setter
    def gateway(self, gateway: NotificationGateway | None) -> None:
        self._gateway = gateway

    @property
    def last_result(self) -> SweepResult | None:
        return self._last_result

    async def run(
        self,
        *,
        tick: str | None = None,
        vehicle_class: VehicleClass | None = None,
        fuel_type: FuelType | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> SweepResult:
        """Run one sweep and return its aggregate result.

        Parameters
        ----------
        tick
            Scheduling tick (e.g. ``"2026-10"``).  A second call with the
            tick of the last completed scheduled run returns that run's
            result without resetting anything, even if untimed runs
            happened in between.
        vehicle_class, fuel_type
            Restrict the sweep to matching vehicles.
        cancel_event
            Stops the sweep from starting further vehicles once set.

        Raises
        ------
        SweepInProgressError
            Another sweep on this instance has not finished yet.
        """
        if self._run_lock.locked():
            raise SweepInProgressError("A quota reset sweep is already running")
        async with self._run_lock:
            if tick is not None and tick == self._last_tick and self._last_scheduled_result is not None:
                _logger.info("Quota reset sweep for %s already ran; skipping", tick)
                return self._last_scheduled_result

            self._state = SweepState.RUNNING
            try:
                result = await self._sweep(tick, vehicle_class, fuel_type, cancel_event)
            except BaseException:
                self._state = SweepState.IDLE
                raise
            self._state = result.state
            self._last_result = result
            if tick is not None and result.state != SweepState.CANCELLED:
                self._last_tick = tick
                self._last_scheduled_result = result
            return result

    async def _sweep(
        self,
        tick: str | None,
        vehicle_class: VehicleClass | None,
        fuel_type: FuelType | None,
        cancel_event: asyncio.Event | None,
    ) -> SweepResult:
        started_at = self._clock()
        label = month_label(started_at, self._zone)
        vehicles = [v for v in await self._directory.list_vehicles() if _selected(v, vehicle_class, fuel_type)]
        _logger.info("Starting quota reset sweep for %s: %d vehicle(s)", label, len(vehicles))

        tally = _Tally()
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _worker(vehicle: Vehicle) -> None:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    tally.skipped += 1
                    return
                await self._reset_one(vehicle, tally)

        await asyncio.gather(*(_worker(vehicle) for vehicle in vehicles))

        if tally.skipped:
            state = SweepState.CANCELLED
        elif tally.failed:
            state = SweepState.COMPLETED_WITH_FAILURES
        else:
            state = SweepState.COMPLETED

        result = SweepResult(
            state=state,
            total=len(vehicles),
            succeeded=tally.succeeded,
            failed=tally.failed,
            skipped=tally.skipped,
            notifications_sent=tally.notifications_sent,
            notifications_undelivered=tally.notifications_undelivered,
            failures=tally.failures,
            period_label=label,
            tick=tick,
            started_at=started_at,
            finished_at=self._clock(),
        )
        _logger.info(
            "Quota reset sweep %s: total=%d succeeded=%d failed=%d skipped=%d",
            state,
            result.total,
            result.succeeded,
            result.failed,
            result.skipped,
        )
        return result

    async def _reset_one(self, vehicle: Vehicle, tally: _Tally) -> None:
        try:
            period = await self._ledger.reset_period(vehicle, vehicle.fuel_type)
        except Exception as exc:
            tally.failed += 1
            tally.failures.append(SweepFailure(vehicle_id=vehicle.vehicle_id, error=f"{type(exc).__name__}: {exc}"))
            _logger.warning("Quota reset failed for %s", vehicle.vehicle_id, exc_info=True)
            return
        tally.succeeded += 1

        if self._gateway is None:
            return
        delivered = await dispatch_best_effort(
            self._gateway,
            vehicle,
            NotificationKind.ALLOCATION_GRANTED,
            {
                "vehicle_id": vehicle.vehicle_id,
                "fuel_type": str(period.fuel_type),
                "allocated": period.allocated,
                "period_label": period.label,
            },
        )
        if delivered:
            tally.notifications_sent += 1
        else:
            tally.notifications_undelivered += 1

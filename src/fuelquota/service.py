"""High-level async facade used by station, admin and scheduler flows."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import aiohttp

from fuelquota._transport import TwilioTransport
from fuelquota.config import QuotaConfig
from fuelquota.exceptions import FuelQuotaError, QuotaValidationError, VehicleNotFoundError
from fuelquota.ledger import QuotaLedger, validate_amount
from fuelquota.models.notification import NotificationKind
from fuelquota.models.outcomes import DispenseResult, SweepResult, ThresholdAlert
from fuelquota.models.quota import BalanceSummary, QuotaPeriod
from fuelquota.models.vehicle import FuelType, Vehicle, VehicleClass
from fuelquota.notifications import NotificationGateway, SmsNotificationGateway, dispatch_best_effort
from fuelquota.periods import is_expiring_soon, month_tick, utcnow
from fuelquota.registry import VehicleDirectory
from fuelquota.state.store import QuotaStore
from fuelquota.sweep import PeriodResetSweep
from fuelquota.thresholds import ThresholdMonitor

_logger = logging.getLogger(__name__)


class FuelQuotaService:
    """Async facade over the quota ledger, threshold monitor and reset sweep.

    Usage::

        async with FuelQuotaService(config, directory) as service:
            result = await service.try_dispense("WP-CAB-1234", "petrol", 20)

    Without an explicit ``gateway`` the service opens an aiohttp session on
    entry and sends notifications by SMS according to ``config.notifications``.
    """

    def __init__(
        self,
        config: QuotaConfig,
        directory: VehicleDirectory,
        *,
        store: QuotaStore | None = None,
        gateway: NotificationGateway | None = None,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._config = config
        self._directory = directory
        self._clock = clock
        self._external_session = session is not None
        self._http_session = session
        self._gateway = gateway
        self._owns_gateway = gateway is None
        self._ledger = QuotaLedger(store, zone=config.zone, clock=clock)
        self._monitor = ThresholdMonitor(
            low_pct=config.low_threshold_pct,
            critical_pct=config.critical_threshold_pct,
            gateway=gateway,
        )
        self._sweep = PeriodResetSweep(
            self._ledger,
            directory,
            gateway,
            zone=config.zone,
            concurrency=config.sweep_concurrency,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FuelQuotaService:
        if self._owns_gateway:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            transport = TwilioTransport(self._config.notifications, self._http_session)
            self._attach_gateway(SmsNotificationGateway(self._config.notifications, transport))
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._owns_gateway:
            self._attach_gateway(None)
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    def _attach_gateway(self, gateway: NotificationGateway | None) -> None:
        self._gateway = gateway
        self._monitor.gateway = gateway
        self._sweep.gateway = gateway

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @property
    def ledger(self) -> QuotaLedger:
        return self._ledger

    @property
    def sweep(self) -> PeriodResetSweep:
        return self._sweep

    @property
    def _expiring_window(self) -> timedelta:
        return timedelta(days=self._config.expiring_soon_days)

    async def _require_vehicle(self, vehicle_id: str) -> Vehicle:
        vehicle = await self._directory.get_vehicle(vehicle_id)
        if vehicle is None:
            raise VehicleNotFoundError(vehicle_id)
        return vehicle

    @staticmethod
    def _coerce_fuel_type(fuel_type: FuelType | str) -> FuelType:
        try:
            return FuelType(fuel_type)
        except ValueError as exc:
            raise QuotaValidationError(f"Unknown fuel type: {fuel_type!r}", field="fuel_type", value=fuel_type) from exc

    @classmethod
    def _parse_fuel_type(cls, fuel_type: FuelType | str | None, vehicle: Vehicle) -> FuelType:
        if fuel_type is None:
            return vehicle.fuel_type
        return cls._coerce_fuel_type(fuel_type)

    def _summary(self, period: QuotaPeriod) -> BalanceSummary:
        return BalanceSummary.from_period(period, now=self._clock(), expiring_window=self._expiring_window)

    # ------------------------------------------------------------------
    # Station flow
    # ------------------------------------------------------------------

    async def get_balance(self, vehicle_id: str, fuel_type: FuelType | str | None = None) -> BalanceSummary:
        """Current-period balance, opening the period if this is its first use."""
        vehicle = await self._require_vehicle(vehicle_id)
        period = await self._ledger.current_period(vehicle, self._parse_fuel_type(fuel_type, vehicle))
        return self._summary(period)

    async def try_dispense(
        self,
        vehicle_id: str,
        fuel_type: FuelType | str,
        amount_liters: float,
        *,
        station: str | None = None,
    ) -> DispenseResult:
        """Deduct a dispense from the vehicle's quota.

        Raises :class:`QuotaValidationError` for a non-positive amount, an
        amount above the per-transaction ceiling or a fuel type the vehicle
        does not use, and :class:`VehicleNotFoundError` for an unknown
        vehicle.  An insufficient balance is returned, not raised, with the
        actual remaining balance in ``before``/``after``.
        """
        vehicle = await self._require_vehicle(vehicle_id)
        requested_fuel = self._parse_fuel_type(fuel_type, vehicle)
        if requested_fuel != vehicle.fuel_type:
            raise QuotaValidationError(
                f"Fuel type mismatch: {vehicle.vehicle_id} uses {vehicle.fuel_type}",
                field="fuel_type",
                value=str(requested_fuel),
            )
        amount = validate_amount(amount_liters, field="amount_liters")
        if amount > self._config.max_dispense_liters:
            raise QuotaValidationError(
                f"Maximum {self._config.max_dispense_liters:g} liters allowed per transaction",
                field="amount_liters",
                value=amount,
            )

        deduction = await self._ledger.deduct(vehicle, requested_fuel, amount)
        if not deduction.succeeded:
            return DispenseResult(
                status=deduction.status,
                vehicle_id=vehicle.vehicle_id,
                fuel_type=requested_fuel,
                amount=amount,
                before=deduction.before,
                after=deduction.after,
                allocated=deduction.period.allocated,
                period_id=deduction.period.period_id,
            )

        alert = self._monitor.on_deduction(
            requested_fuel,
            deduction.period.allocated,
            deduction.before,
            deduction.after,
        )
        await self._after_dispense(vehicle, requested_fuel, amount, deduction.after, alert, station)
        return DispenseResult(
            status=deduction.status,
            vehicle_id=vehicle.vehicle_id,
            fuel_type=requested_fuel,
            amount=amount,
            before=deduction.before,
            after=deduction.after,
            allocated=deduction.period.allocated,
            period_id=deduction.period.period_id,
            alert=alert,
        )

    async def _after_dispense(
        self,
        vehicle: Vehicle,
        fuel_type: FuelType,
        amount: float,
        remaining: float,
        alert: ThresholdAlert,
        station: str | None,
    ) -> None:
        if self._gateway is None:
            return
        if self._config.notify_on_dispense:
            await dispatch_best_effort(
                self._gateway,
                vehicle,
                NotificationKind.DISPENSE_RECEIPT,
                {
                    "vehicle_id": vehicle.vehicle_id,
                    "fuel_type": str(fuel_type),
                    "amount": amount,
                    "remaining": remaining,
                    "station": station,
                },
            )
        await self._monitor.notify_owner(vehicle, fuel_type, alert, remaining)

    # ------------------------------------------------------------------
    # Admin / scheduler flow
    # ------------------------------------------------------------------

    async def force_reset(self, vehicle_id: str, fuel_type: FuelType | str | None = None) -> BalanceSummary:
        """Replace the vehicle's active period with a full one and tell the owner."""
        vehicle = await self._require_vehicle(vehicle_id)
        period = await self._ledger.reset_period(vehicle, self._parse_fuel_type(fuel_type, vehicle))
        if self._gateway is not None:
            await dispatch_best_effort(
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
        return self._summary(period)

    async def run_monthly_sweep(
        self,
        *,
        scheduled: bool = False,
        vehicle_class: VehicleClass | str | None = None,
        fuel_type: FuelType | str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> SweepResult:
        """Reset every (matching) vehicle's period.

        ``scheduled=True`` marks a timer-driven run: it runs at most once per
        calendar month.  Administrative runs always reset.  An unknown
        ``fuel_type`` filter raises :class:`QuotaValidationError`; an
        unknown ``vehicle_class`` selects the ``other`` class.
        """
        class_filter = VehicleClass(vehicle_class) if vehicle_class is not None else None
        fuel_filter = self._coerce_fuel_type(fuel_type) if fuel_type is not None else None
        tick = month_tick(self._clock(), self._config.zone) if scheduled else None
        return await self._sweep.run(
            tick=tick,
            vehicle_class=class_filter,
            fuel_type=fuel_filter,
            cancel_event=cancel_event,
        )

    async def quota_history(self, vehicle_id: str, fuel_type: FuelType | str | None = None) -> list[QuotaPeriod]:
        """Every recorded period for the vehicle, newest first."""
        vehicle = await self._require_vehicle(vehicle_id)
        return await self._ledger.history(vehicle.vehicle_id, self._parse_fuel_type(fuel_type, vehicle))

    async def send_expiry_reminders(self) -> int:
        """Remind owners whose balance is about to lapse unused.

        Only vehicles with an existing active period are considered; no
        period is opened by this call.  Returns the number of reminders
        delivered.
        """
        if self._gateway is None:
            raise FuelQuotaError("No notification gateway. Use 'async with FuelQuotaService(...) as service:'")
        now = self._clock()
        sent = 0
        for vehicle in await self._directory.list_vehicles():
            period = await self._ledger.store.find_active(vehicle.vehicle_id, vehicle.fuel_type, now)
            if period is None or period.remaining <= 0:
                continue
            if not is_expiring_soon(period.period_end, now, self._expiring_window):
                continue
            delivered = await dispatch_best_effort(
                self._gateway,
                vehicle,
                NotificationKind.EXPIRY_REMINDER,
                {
                    "vehicle_id": vehicle.vehicle_id,
                    "remaining": period.remaining,
                    "expires_on": f"{period.period_end:%Y-%m-%d}",
                },
            )
            if delivered:
                sent += 1
        _logger.info("Sent %d quota expiry reminder(s)", sent)
        return sent

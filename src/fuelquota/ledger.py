"""Quota ledger: current-period resolution and atomic deduction.

All work on one ``(vehicle, fuel type)`` key runs under that key's
``asyncio.Lock``: lazy period creation, deduction and forced resets
never interleave for the same key, while different keys proceed
independently.  A lock lives only while some caller holds or waits for
it, so the table does not grow with the fleet.

Several ledgers may share one store (e.g. one per process in front of a
database).  Their locks do not see each other, so the ledger also copes
with what another ledger does in between its own store calls:

* a concurrent first use that inserted the period already is resolved by
  re-reading the active record;
* a concurrent reset that retired the period between resolving and
  deducting is retried against the successor record.

The deduction itself is a single conditional update in the store, so no
interleaving can overdraw a period.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
from collections.abc import AsyncIterator, Callable
from datetime import datetime, tzinfo
from numbers import Real
from typing import Any
from zoneinfo import ZoneInfo

from fuelquota._constants import DEFAULT_TIME_ZONE
from fuelquota.allocation import allocate_for
from fuelquota.exceptions import QuotaConflictError, QuotaValidationError
from fuelquota.models.outcomes import DeductionResult, DeductionStatus
from fuelquota.models.quota import QuotaPeriod
from fuelquota.models.vehicle import FuelType, Vehicle
from fuelquota.periods import month_bounds, utcnow
from fuelquota.state.store import DuplicateActivePeriodError, InMemoryQuotaStore, QuotaKey, QuotaStore

_logger = logging.getLogger(__name__)

_MAX_DEDUCT_ATTEMPTS = 3


def validate_amount(amount: Any, *, field: str = "amount") -> float:
    """Return *amount* as a float, rejecting non-positive and non-finite values."""
    if isinstance(amount, bool) or not isinstance(amount, Real):
        raise QuotaValidationError(f"{field} must be a number, got {amount!r}", field=field, value=amount)
    value = float(amount)
    if not math.isfinite(value) or value <= 0:
        raise QuotaValidationError(f"{field} must be a positive amount, got {amount!r}", field=field, value=amount)
    return value


class QuotaLedger:
    """Owns the active-period balance per vehicle and fuel type."""

    def __init__(
        self,
        store: QuotaStore | None = None,
        *,
        zone: tzinfo | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store: QuotaStore = store if store is not None else InMemoryQuotaStore()
        self._zone = zone if zone is not None else ZoneInfo(DEFAULT_TIME_ZONE)
        self._clock = clock
        self._locks: dict[QuotaKey, asyncio.Lock] = {}
        self._lock_users: dict[QuotaKey, int] = {}

    @property
    def store(self) -> QuotaStore:
        return self._store

    def now(self) -> datetime:
        return self._clock()

    @contextlib.asynccontextmanager
    async def _locked(self, key: QuotaKey) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                # Nobody holds or waits for it; a later caller starts a fresh lock.
                del self._lock_users[key]
                del self._locks[key]

    def _new_period(self, vehicle: Vehicle, fuel_type: FuelType, now: datetime) -> QuotaPeriod:
        start, end = month_bounds(now, self._zone)
        allocated = allocate_for(vehicle, fuel_type)
        return QuotaPeriod(
            vehicle_id=vehicle.vehicle_id,
            fuel_type=fuel_type,
            allocated=allocated,
            remaining=allocated,
            period_start=start,
            period_end=end,
            created_at=now,
            updated_at=now,
        )

    async def _resolve(self, vehicle: Vehicle, fuel_type: FuelType, now: datetime) -> QuotaPeriod:
        # Caller must hold the key's lock.
        period = await self._store.find_active(vehicle.vehicle_id, fuel_type, now)
        if period is not None:
            return period
        try:
            period = await self._store.insert(self._new_period(vehicle, fuel_type, now), now)
        except DuplicateActivePeriodError:
            # Another ledger on the same store opened the period first.
            period = await self._store.find_active(vehicle.vehicle_id, fuel_type, now)
            if period is None:
                raise
            _logger.debug("Quota period for %s/%s opened concurrently; using it", vehicle.vehicle_id, fuel_type)
            return period
        _logger.info(
            "Opened %s quota period for %s/%s: %.1f L",
            period.label,
            vehicle.vehicle_id,
            fuel_type,
            period.allocated,
        )
        return period

    async def current_period(self, vehicle: Vehicle, fuel_type: FuelType | None = None) -> QuotaPeriod:
        """Return the active period, creating it from the allowance table if missing."""
        fuel_type = fuel_type or vehicle.fuel_type
        async with self._locked((vehicle.vehicle_id, fuel_type)):
            return await self._resolve(vehicle, fuel_type, self._clock())

    async def remaining_balance(self, vehicle: Vehicle, fuel_type: FuelType | None = None) -> float:
        period = await self.current_period(vehicle, fuel_type)
        return period.remaining

    async def has_sufficient_balance(self, vehicle: Vehicle, fuel_type: FuelType | None, amount: float) -> bool:
        """Advisory check only; :meth:`deduct` re-checks atomically."""
        return await self.remaining_balance(vehicle, fuel_type) >= amount

    async def deduct(self, vehicle: Vehicle, fuel_type: FuelType | None, amount: float) -> DeductionResult:
        """Subtract *amount* liters from the active period, all or nothing.

        Raises :class:`QuotaValidationError` for a non-positive amount.
        An amount above the remaining balance is not an error: the result
        has status ``INSUFFICIENT_BALANCE`` and the balance is untouched.
        Raises :class:`QuotaConflictError` if the active period keeps being
        replaced by other writers while the deduction is attempted.
        """
        value = validate_amount(amount)
        fuel_type = fuel_type or vehicle.fuel_type
        async with self._locked((vehicle.vehicle_id, fuel_type)):
            for _attempt in range(_MAX_DEDUCT_ATTEMPTS):
                now = self._clock()
                period = await self._resolve(vehicle, fuel_type, now)
                outcome = await self._store.conditional_deduct(period.period_id, value, now)
                if outcome is not None:
                    before, after = outcome
                    _logger.debug(
                        "Deducted %.2f L from %s/%s: %.2f -> %.2f L",
                        value,
                        vehicle.vehicle_id,
                        fuel_type,
                        before.remaining,
                        after.remaining,
                    )
                    return DeductionResult(
                        status=DeductionStatus.SUCCESS,
                        requested=value,
                        before=before.remaining,
                        after=after.remaining,
                        period=after,
                    )

                latest = await self._store.get(period.period_id)
                if latest is not None and latest.is_active(now) and latest.remaining < value:
                    _logger.debug(
                        "Insufficient balance for %s/%s: requested %.2f L, remaining %.2f L",
                        vehicle.vehicle_id,
                        fuel_type,
                        value,
                        latest.remaining,
                    )
                    return DeductionResult(
                        status=DeductionStatus.INSUFFICIENT_BALANCE,
                        requested=value,
                        before=latest.remaining,
                        after=latest.remaining,
                        period=latest,
                    )
                _logger.debug(
                    "Quota period %s for %s/%s was replaced during deduction; retrying",
                    period.period_id,
                    vehicle.vehicle_id,
                    fuel_type,
                )
        raise QuotaConflictError(
            f"Active quota period for {vehicle.vehicle_id}/{fuel_type} changed {_MAX_DEDUCT_ATTEMPTS} times "
            "during one deduction"
        )

    async def reset_period(self, vehicle: Vehicle, fuel_type: FuelType | None = None) -> QuotaPeriod:
        """Retire the active period (if any) and open a full one for the present month.

        Runs whether or not the natural period has elapsed.  The retired
        record is kept, marked superseded.
        """
        fuel_type = fuel_type or vehicle.fuel_type
        async with self._locked((vehicle.vehicle_id, fuel_type)):
            now = self._clock()
            fresh = self._new_period(vehicle, fuel_type, now)
            retired = await self._store.supersede_and_insert(fresh, now)
        if retired is not None:
            _logger.info(
                "Reset %s/%s: retired period %s with %.1f of %.1f L left, new allowance %.1f L",
                vehicle.vehicle_id,
                fuel_type,
                retired.period_id,
                retired.remaining,
                retired.allocated,
                fresh.allocated,
            )
        else:
            _logger.info("Reset %s/%s: new allowance %.1f L", vehicle.vehicle_id, fuel_type, fresh.allocated)
        return fresh

    async def history(self, vehicle_id: str, fuel_type: FuelType) -> list[QuotaPeriod]:
        """Every period recorded for the key, newest first."""
        return await self._store.history(vehicle_id, fuel_type)

"""Quota period persistence.

:class:`QuotaStore` is the boundary a database-backed implementation
fills in.  Every method that mutates a record is a single atomic step:
``conditional_deduct`` is "subtract where remaining >= amount" and
``supersede_and_insert`` retires the active record and inserts its
successor together, so a concurrent reader sees either the old or the
new record, never a half-written one.

:class:`InMemoryQuotaStore` is the reference implementation.  None of its
coroutines await between reading and writing, which makes each of them
atomic on the event loop.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from fuelquota.exceptions import FuelQuotaError
from fuelquota.models.quota import QuotaPeriod
from fuelquota.models.vehicle import FuelType

QuotaKey = tuple[str, FuelType]


class QuotaStore(Protocol):
    """Structural persistence interface used by the ledger."""

    async def get(self, period_id: str) -> QuotaPeriod | None: ...

    async def find_active(self, vehicle_id: str, fuel_type: FuelType, now: datetime) -> QuotaPeriod | None: ...

    async def history(self, vehicle_id: str, fuel_type: FuelType) -> list[QuotaPeriod]: ...

    async def insert(self, period: QuotaPeriod, now: datetime) -> QuotaPeriod: ...

    async def conditional_deduct(
        self, period_id: str, amount: float, now: datetime
    ) -> tuple[QuotaPeriod, QuotaPeriod] | None: ...

    async def supersede_and_insert(self, period: QuotaPeriod, now: datetime) -> QuotaPeriod | None: ...


class DuplicateActivePeriodError(FuelQuotaError):
    """An insert would leave two active periods for one vehicle and fuel type."""


class InMemoryQuotaStore:
    """Process-local store keeping every period, including superseded ones."""

    def __init__(self) -> None:
        self._periods: dict[str, QuotaPeriod] = {}
        self._by_key: dict[QuotaKey, list[str]] = {}

    def _active_for(self, key: QuotaKey, now: datetime) -> QuotaPeriod | None:
        for period_id in reversed(self._by_key.get(key, [])):
            period = self._periods[period_id]
            if period.is_active(now):
                return period
        return None

    async def get(self, period_id: str) -> QuotaPeriod | None:
        return self._periods.get(period_id)

    async def find_active(self, vehicle_id: str, fuel_type: FuelType, now: datetime) -> QuotaPeriod | None:
        return self._active_for((vehicle_id, fuel_type), now)

    async def history(self, vehicle_id: str, fuel_type: FuelType) -> list[QuotaPeriod]:
        """All periods for the key, newest first."""
        ids = self._by_key.get((vehicle_id, fuel_type), [])
        return [self._periods[period_id] for period_id in reversed(ids)]

    async def insert(self, period: QuotaPeriod, now: datetime) -> QuotaPeriod:
        key = (period.vehicle_id, period.fuel_type)
        if self._active_for(key, now) is not None:
            raise DuplicateActivePeriodError(f"active period already exists for {key[0]}/{key[1]}")
        self._periods[period.period_id] = period
        self._by_key.setdefault(key, []).append(period.period_id)
        return period

    async def conditional_deduct(
        self, period_id: str, amount: float, now: datetime
    ) -> tuple[QuotaPeriod, QuotaPeriod] | None:
        """Subtract *amount* if the record still has it.

        Returns ``(before, after)`` snapshots, or ``None`` when the record
        is missing, superseded or short of *amount*; nothing changes then.
        """
        current = self._periods.get(period_id)
        if current is None or current.is_superseded or current.remaining < amount:
            return None
        updated = current.model_copy(update={"remaining": current.remaining - amount, "updated_at": now})
        self._periods[period_id] = updated
        return current, updated

    async def supersede_and_insert(self, period: QuotaPeriod, now: datetime) -> QuotaPeriod | None:
        """Retire the active record for *period*'s key and insert *period*.

        Returns the retired record, if there was one.
        """
        key = (period.vehicle_id, period.fuel_type)
        retired: QuotaPeriod | None = None
        for period_id in self._by_key.get(key, []):
            existing = self._periods[period_id]
            if not existing.is_active(now):
                continue
            retired = existing.model_copy(update={"superseded_at": now, "updated_at": now})
            self._periods[period_id] = retired
        self._periods[period.period_id] = period
        self._by_key.setdefault(key, []).append(period.period_id)
        return retired

    def __len__(self) -> int:
        return len(self._periods)

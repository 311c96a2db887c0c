"""Quota period (ledger record) and balance summary models."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from pydantic import Field, model_validator

from fuelquota.models._base import QuotaBaseModel, QuotaEnum
from fuelquota.models.vehicle import FuelType
from fuelquota.periods import is_expiring_soon, utcnow


def _new_period_id() -> str:
    return uuid.uuid4().hex


class AllocationPeriod(QuotaEnum):
    MONTHLY = "monthly"


class QuotaPeriod(QuotaBaseModel):
    """One vehicle's allowance for one fuel type and one calendar month.

    ``allocated`` is fixed at creation; only ``remaining`` changes, and
    only through the store's conditional deduction.  A period retired by a
    reset keeps its balances for audit and carries ``superseded_at``.
    """

    period_id: str = Field(default_factory=_new_period_id)
    vehicle_id: str
    fuel_type: FuelType
    """Fuel type at creation time; kept even if the vehicle later changes fuel."""
    allocated: float = Field(ge=0)
    remaining: float = Field(ge=0)
    period_start: datetime
    period_end: datetime
    """Last instant of the month (inclusive)."""
    allocation_period: AllocationPeriod = AllocationPeriod.MONTHLY
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    superseded_at: datetime | None = None

    @model_validator(mode="after")
    def _check_bounds(self) -> QuotaPeriod:
        if self.remaining > self.allocated:
            raise ValueError(f"remaining ({self.remaining}) exceeds allocated ({self.allocated})")
        if self.period_end < self.period_start:
            raise ValueError("period_end precedes period_start")
        return self

    @property
    def used(self) -> float:
        return self.allocated - self.remaining

    @property
    def usage_pct(self) -> float:
        if self.allocated == 0:
            return 0.0
        return self.used / self.allocated * 100

    @property
    def remaining_pct(self) -> float:
        if self.allocated == 0:
            return 0.0
        return self.remaining / self.allocated * 100

    @property
    def label(self) -> str:
        """Human period label, e.g. ``"October 2026"``."""
        return f"{self.period_start:%B %Y}"

    @property
    def is_superseded(self) -> bool:
        return self.superseded_at is not None

    def is_active(self, now: datetime) -> bool:
        return self.superseded_at is None and self.period_end >= now


class BalanceSummary(QuotaBaseModel):
    """Read-only view of a vehicle's current-period balance."""

    vehicle_id: str
    fuel_type: FuelType
    period_id: str
    period_label: str
    allocated: float
    remaining: float
    used: float
    usage_pct: float
    expiring_soon: bool
    period_start: datetime
    period_end: datetime

    @classmethod
    def from_period(cls, period: QuotaPeriod, *, now: datetime, expiring_window: timedelta) -> BalanceSummary:
        return cls(
            vehicle_id=period.vehicle_id,
            fuel_type=period.fuel_type,
            period_id=period.period_id,
            period_label=period.label,
            allocated=period.allocated,
            remaining=period.remaining,
            used=period.used,
            usage_pct=round(period.usage_pct, 2),
            expiring_soon=is_expiring_soon(period.period_end, now, expiring_window),
            period_start=period.period_start,
            period_end=period.period_end,
        )

"""Typed outcomes of ledger, monitor and sweep operations."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from fuelquota.exceptions import SweepPartialFailureError
from fuelquota.models._base import QuotaBaseModel, QuotaEnum
from fuelquota.models.quota import QuotaPeriod
from fuelquota.models.vehicle import FuelType


class DeductionStatus(QuotaEnum):
    SUCCESS = "success"
    INSUFFICIENT_BALANCE = "insufficient_balance"


class DeductionResult(QuotaBaseModel):
    """Result of one all-or-nothing deduction.

    On ``INSUFFICIENT_BALANCE`` both balances equal the untouched
    remaining amount, so the caller can report the actual shortfall.
    """

    status: DeductionStatus
    requested: float
    before: float
    after: float
    period: QuotaPeriod

    @property
    def succeeded(self) -> bool:
        return self.status == DeductionStatus.SUCCESS

    @property
    def shortfall(self) -> float:
        if self.succeeded:
            return 0.0
        return self.requested - self.before


class AlertLevel(QuotaEnum):
    NONE = "none"
    LOW = "low"
    CRITICAL = "critical"


class ThresholdAlert(QuotaBaseModel):
    level: AlertLevel = AlertLevel.NONE
    threshold_pct: float | None = None
    """The crossed threshold, ``None`` when nothing was crossed."""
    remaining_pct: float = 0.0

    @property
    def fired(self) -> bool:
        return self.level != AlertLevel.NONE


class DispenseResult(QuotaBaseModel):
    """What a station receives back from a dispense attempt."""

    status: DeductionStatus
    vehicle_id: str
    fuel_type: FuelType
    amount: float
    before: float
    after: float
    allocated: float
    period_id: str
    alert: ThresholdAlert = Field(default_factory=ThresholdAlert)

    @property
    def succeeded(self) -> bool:
        return self.status == DeductionStatus.SUCCESS


class SweepState(QuotaEnum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_FAILURES = "completed_with_failures"
    CANCELLED = "cancelled"


class SweepFailure(QuotaBaseModel):
    vehicle_id: str
    error: str


class SweepResult(QuotaBaseModel):
    """Aggregate report of one period reset sweep.

    ``succeeded`` counts vehicles whose period was reset, even if the
    allocation notice could not be delivered.  Notices are tallied
    separately; ``notifications_undelivered`` includes messages dropped
    because delivery is switched off.
    """

    state: SweepState
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    notifications_sent: int = 0
    notifications_undelivered: int = 0
    failures: list[SweepFailure] = Field(default_factory=list)
    period_label: str = ""
    tick: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def raise_for_failures(self) -> None:
        """Raise :class:`SweepPartialFailureError` if any vehicle failed."""
        if self.failed:
            raise SweepPartialFailureError(self)

"""Data models for the quota engine."""

from fuelquota.models._base import QuotaBaseModel, QuotaEnum
from fuelquota.models.notification import NotificationKind
from fuelquota.models.outcomes import (
    AlertLevel,
    DeductionResult,
    DeductionStatus,
    DispenseResult,
    SweepFailure,
    SweepResult,
    SweepState,
    ThresholdAlert,
)
from fuelquota.models.quota import AllocationPeriod, BalanceSummary, QuotaPeriod
from fuelquota.models.vehicle import FuelType, OwnerContact, Vehicle, VehicleClass

__all__ = [
    "AlertLevel",
    "AllocationPeriod",
    "BalanceSummary",
    "DeductionResult",
    "DeductionStatus",
    "DispenseResult",
    "FuelType",
    "NotificationKind",
    "OwnerContact",
    "QuotaBaseModel",
    "QuotaEnum",
    "QuotaPeriod",
    "SweepFailure",
    "SweepResult",
    "SweepState",
    "ThresholdAlert",
    "Vehicle",
    "VehicleClass",
]

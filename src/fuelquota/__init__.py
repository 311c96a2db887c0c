"""fuelquota - Async monthly fuel quota engine."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fuelquota")
except PackageNotFoundError:
    __version__ = "0+local"
from fuelquota.allocation import allocate, allocate_for
from fuelquota.config import NotificationSettings, QuotaConfig
from fuelquota.exceptions import (
    FuelQuotaConfigError,
    FuelQuotaError,
    NotificationDeliveryError,
    QuotaConflictError,
    QuotaValidationError,
    SweepInProgressError,
    SweepPartialFailureError,
    VehicleNotFoundError,
)
from fuelquota.ledger import QuotaLedger
from fuelquota.models import (
    AlertLevel,
    BalanceSummary,
    DeductionResult,
    DeductionStatus,
    DispenseResult,
    FuelType,
    NotificationKind,
    OwnerContact,
    QuotaPeriod,
    SweepResult,
    SweepState,
    ThresholdAlert,
    Vehicle,
    VehicleClass,
)
from fuelquota.notifications import NotificationGateway, SmsNotificationGateway
from fuelquota.registry import InMemoryVehicleDirectory, VehicleDirectory
from fuelquota.service import FuelQuotaService
from fuelquota.state import InMemoryQuotaStore, QuotaStore
from fuelquota.sweep import PeriodResetSweep
from fuelquota.thresholds import ThresholdMonitor

__all__ = [
    "__version__",
    "AlertLevel",
    "BalanceSummary",
    "DeductionResult",
    "DeductionStatus",
    "DispenseResult",
    "FuelQuotaConfigError",
    "FuelQuotaError",
    "FuelQuotaService",
    "FuelType",
    "InMemoryQuotaStore",
    "InMemoryVehicleDirectory",
    "NotificationDeliveryError",
    "NotificationGateway",
    "NotificationKind",
    "NotificationSettings",
    "OwnerContact",
    "PeriodResetSweep",
    "QuotaConfig",
    "QuotaConflictError",
    "QuotaLedger",
    "QuotaPeriod",
    "QuotaStore",
    "QuotaValidationError",
    "SmsNotificationGateway",
    "SweepInProgressError",
    "SweepPartialFailureError",
    "SweepResult",
    "SweepState",
    "ThresholdAlert",
    "ThresholdMonitor",
    "Vehicle",
    "VehicleClass",
    "VehicleDirectory",
    "VehicleNotFoundError",
    "allocate",
    "allocate_for",
]

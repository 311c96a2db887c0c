"""Custom exception hierarchy for fuelquota."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fuelquota.models.outcomes import SweepResult


class FuelQuotaError(Exception):
    """Base exception for all fuelquota errors."""


class FuelQuotaConfigError(FuelQuotaError):
    """Invalid or missing configuration."""


class QuotaValidationError(FuelQuotaError):
    """A request was rejected before touching the ledger.

    Covers non-positive or non-finite amounts, amounts above the station
    per-transaction ceiling and fuel types that do not match the vehicle.
    """

    def __init__(
        self,
        message: str,
        *,
        field: str = "",
        value: Any = None,
    ) -> None:
        self.field = field
        self.value = value
        super().__init__(message)


class VehicleNotFoundError(FuelQuotaError):
    """The vehicle directory has no record for the requested vehicle."""

    def __init__(self, vehicle_id: str) -> None:
        self.vehicle_id = vehicle_id
        super().__init__(f"Unknown vehicle: {vehicle_id}")


class QuotaConflictError(FuelQuotaError):
    """The active period kept being replaced by other writers during a deduction."""


class NotificationDeliveryError(FuelQuotaError):
    """The SMS provider did not accept a message.

    Never propagated out of a ledger or sweep operation; the gateway
    absorbs it, logs it and reports the message as not delivered.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class SweepInProgressError(FuelQuotaError):
    """A period reset sweep was started while another one is still running."""


class SweepPartialFailureError(FuelQuotaError):
    """One or more vehicles failed during a sweep.

    The sweep never raises this itself; it is produced on demand by
    :meth:`fuelquota.models.outcomes.SweepResult.raise_for_failures`.
    """

    def __init__(self, result: SweepResult) -> None:
        self.result = result
        super().__init__(f"Sweep finished with {result.failed} failed vehicle(s) out of {result.total}")

"""Low/critical balance detection.

Edge-triggered: a level fires only on the deduction that moves the
balance from strictly above its threshold to at or below it.  When one
deduction crosses both thresholds only the critical level is reported.
"""

from __future__ import annotations

import logging

from fuelquota._constants import CRITICAL_THRESHOLD_PCT, LOW_THRESHOLD_PCT
from fuelquota.models.notification import NotificationKind
from fuelquota.models.outcomes import AlertLevel, ThresholdAlert
from fuelquota.models.vehicle import FuelType, Vehicle
from fuelquota.notifications import NotificationGateway, dispatch_best_effort

_logger = logging.getLogger(__name__)


def _at_or_below(amount: float, allocated: float, pct: float) -> bool:
    # Cross-multiplied so 12 of 60 L is exactly 20%.
    return amount * 100 <= pct * allocated


def crossed(before: float, after: float, allocated: float, pct: float) -> bool:
    return _at_or_below(after, allocated, pct) and not _at_or_below(before, allocated, pct)


class ThresholdMonitor:
    """Decides which warning, if any, a deduction warrants."""

    def __init__(
        self,
        *,
        low_pct: float = LOW_THRESHOLD_PCT,
        critical_pct: float = CRITICAL_THRESHOLD_PCT,
        gateway: NotificationGateway | None = None,
    ) -> None:
        if not 0 < critical_pct < low_pct <= 100:
            raise ValueError(f"expected 0 < critical < low <= 100, got critical={critical_pct} low={low_pct}")
        self._low_pct = low_pct
        self._critical_pct = critical_pct
        self._gateway = gateway

    @property
    def gateway(self) -> NotificationGateway | None:
        return self._gateway

    @gateway.setter
    def gateway(self, gateway: NotificationGateway | None) -> None:
        self._gateway = gateway

    def on_deduction(self, fuel_type: FuelType, allocated: float, before: float, after: float) -> ThresholdAlert:
        if allocated <= 0:
            return ThresholdAlert()
        remaining_pct = after / allocated * 100
        if crossed(before, after, allocated, self._critical_pct):
            level, threshold = AlertLevel.CRITICAL, self._critical_pct
        elif crossed(before, after, allocated, self._low_pct):
            level, threshold = AlertLevel.LOW, self._low_pct
        else:
            return ThresholdAlert(remaining_pct=remaining_pct)
        _logger.debug(
            "%s balance crossed %.0f%% threshold (%.2f -> %.2f of %.2f L)",
            fuel_type,
            threshold,
            before,
            after,
            allocated,
        )
        return ThresholdAlert(level=level, threshold_pct=threshold, remaining_pct=remaining_pct)

    async def notify_owner(self, vehicle: Vehicle, fuel_type: FuelType, alert: ThresholdAlert, remaining: float) -> bool:
        """Send the warning for *alert* to the owner; never raises."""
        if not alert.fired or self._gateway is None:
            return False
        kind = NotificationKind.CRITICAL_BALANCE if alert.level == AlertLevel.CRITICAL else NotificationKind.LOW_BALANCE
        return await dispatch_best_effort(
            self._gateway,
            vehicle,
            kind,
            {
                "vehicle_id": vehicle.vehicle_id,
                "fuel_type": str(fuel_type),
                "remaining": remaining,
                "threshold_pct": alert.threshold_pct,
            },
        )

"""Owner notification kinds."""

from __future__ import annotations

from fuelquota.models._base import QuotaEnum


class NotificationKind(QuotaEnum):
    ALLOCATION_GRANTED = "allocation_granted"
    LOW_BALANCE = "low_balance"
    CRITICAL_BALANCE = "critical_balance"
    DISPENSE_RECEIPT = "dispense_receipt"
    EXPIRY_REMINDER = "expiry_reminder"

"""Owner notifications.

The engine only decides *that* an owner should hear something and *what*
to say.  Delivery is best-effort: a failed message is logged and reported
as not delivered, and never undoes a ledger change.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from fuelquota._redact import mask_phone
from fuelquota._transport import SmsTransport
from fuelquota.config import NotificationSettings
from fuelquota.exceptions import NotificationDeliveryError
from fuelquota.models.notification import NotificationKind
from fuelquota.models.vehicle import Vehicle

_logger = logging.getLogger(__name__)

_PHONE_SEPARATORS = re.compile(r"[\s()\-]")


class NotificationGateway(Protocol):
    """Delivers one message to an owner; ``True`` when delivered."""

    async def notify(
        self,
        phone: str | None,
        email: str | None,
        kind: NotificationKind,
        args: Mapping[str, Any],
    ) -> bool: ...


def _allocation_granted(args: Mapping[str, Any]) -> str:
    return (
        f"New Fuel Quota: Your {args['vehicle_id']} has been allocated {args['allocated']:.1f}L "
        f"{args['fuel_type']} quota for {args['period_label']}. Happy driving!"
    )


def _low_balance(args: Mapping[str, Any]) -> str:
    return (
        f"Low Fuel Quota Alert: {args['vehicle_id']} has only {args['remaining']:.1f}L {args['fuel_type']} "
        f"remaining ({args['threshold_pct']:.0f}% of this month's quota or less). Please plan your refills."
    )


def _critical_balance(args: Mapping[str, Any]) -> str:
    return (
        f"Critical Fuel Quota Alert: {args['vehicle_id']} has only {args['remaining']:.1f}L {args['fuel_type']} "
        f"remaining ({args['threshold_pct']:.0f}% of this month's quota or less)."
    )


def _dispense_receipt(args: Mapping[str, Any]) -> str:
    station = args.get("station")
    where = f" at {station}" if station else ""
    return (
        f"Fuel Alert: {args['amount']:.1f}L {args['fuel_type']} pumped{where} for {args['vehicle_id']}. "
        f"Remaining: {args['remaining']:.1f}L."
    )


def _expiry_reminder(args: Mapping[str, Any]) -> str:
    return (
        f"Fuel Quota Alert: Your {args['vehicle_id']} has {args['remaining']:.1f}L remaining quota "
        f"expiring on {args['expires_on']}. Please use before expiry."
    )


_TEMPLATES: dict[NotificationKind, Callable[[Mapping[str, Any]], str]] = {
    NotificationKind.ALLOCATION_GRANTED: _allocation_granted,
    NotificationKind.LOW_BALANCE: _low_balance,
    NotificationKind.CRITICAL_BALANCE: _critical_balance,
    NotificationKind.DISPENSE_RECEIPT: _dispense_receipt,
    NotificationKind.EXPIRY_REMINDER: _expiry_reminder,
}


def render_message(kind: NotificationKind, args: Mapping[str, Any]) -> str:
    """Render the owner-facing text for *kind*.

    Raises :class:`ValueError` when *args* lacks a field the template needs.
    """
    try:
        return _TEMPLATES[kind](args)
    except KeyError as exc:
        raise ValueError(f"{kind} message needs argument {exc.args[0]!r}") from exc


def format_phone_number(phone: str, calling_code: str = "+94") -> str:
    """Normalise a local or national number to international form.

    ``0771234567``, ``94771234567`` and ``771234567`` all become
    ``+94771234567`` with the default calling code.  Numbers that match
    none of these shapes are returned unchanged.
    """
    cleaned = _PHONE_SEPARATORS.sub("", phone)
    digits = calling_code.lstrip("+")
    if cleaned.startswith("+"):
        return cleaned
    if cleaned.startswith("0"):
        return f"+{digits}{cleaned[1:]}"
    if cleaned.startswith(digits) and len(cleaned) > 9:
        return f"+{cleaned}"
    if len(cleaned) == 9:
        return f"+{digits}{cleaned}"
    return phone


class SmsNotificationGateway:
    """Delivers notifications by SMS.

    Email addresses are accepted for interface compatibility but there is
    no email channel; owners without a phone number are not notified.
    """

    def __init__(self, settings: NotificationSettings, transport: SmsTransport | None = None) -> None:
        self._settings = settings
        self._transport = transport

    async def notify(
        self,
        phone: str | None,
        email: str | None,
        kind: NotificationKind,
        args: Mapping[str, Any],
    ) -> bool:
        if not phone:
            _logger.debug("No phone number for %s notification", kind)
            return False

        message = render_message(kind, args)
        settings = self._settings
        if not settings.sms_enabled:
            _logger.debug("SMS disabled; dropping %s notification", kind)
            return False

        to = format_phone_number(phone, settings.country_calling_code)
        if settings.mock_mode:
            _logger.info("Mock SMS to %s: %s", mask_phone(to), message)
            return True

        if self._transport is None or not settings.provider_configured:
            _logger.warning("SMS provider not configured; %s notification to %s not sent", kind, mask_phone(to))
            return False

        try:
            sid = await self._transport.send_sms(to, message)
        except NotificationDeliveryError as exc:
            _logger.warning(
                "SMS %s to %s failed (status=%s)",
                kind,
                mask_phone(to),
                exc.status_code,
                exc_info=True,
            )
            return False
        _logger.debug("SMS %s to %s accepted sid=%s", kind, mask_phone(to), sid)
        return True


async def dispatch_best_effort(
    gateway: NotificationGateway,
    vehicle: Vehicle,
    kind: NotificationKind,
    args: Mapping[str, Any],
) -> bool:
    """Notify *vehicle*'s owner, absorbing any gateway failure."""
    try:
        delivered = await gateway.notify(vehicle.owner.phone, vehicle.owner.email, kind, args)
    except Exception:
        _logger.warning("Notification %s for %s failed", kind, vehicle.vehicle_id, exc_info=True)
        return False
    if not delivered:
        _logger.debug("Notification %s for %s not delivered", kind, vehicle.vehicle_id)
    return bool(delivered)

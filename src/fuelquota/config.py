"""Engine configuration for fuelquota."""

from __future__ import annotations

import dataclasses
import os
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fuelquota._constants import (
    CRITICAL_THRESHOLD_PCT,
    DEFAULT_EXPIRING_SOON_DAYS,
    DEFAULT_MAX_DISPENSE_LITERS,
    DEFAULT_SWEEP_CONCURRENCY,
    DEFAULT_TIME_ZONE,
    LOW_THRESHOLD_PCT,
    TWILIO_BASE_URL,
)
from fuelquota.exceptions import FuelQuotaConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class NotificationSettings:
    """SMS delivery settings.

    With ``sms_enabled`` off nothing is sent and every message counts as
    not delivered.  ``mock_mode`` logs the rendered message instead of
    calling the provider and counts it as delivered.
    """

    sms_enabled: bool = False
    mock_mode: bool = True
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    from_number: str = ""
    base_url: str = TWILIO_BASE_URL
    country_calling_code: str = "+94"
    request_timeout: float = 10.0

    @property
    def provider_configured(self) -> bool:
        return all(
            value.strip()
            for value in (self.twilio_account_sid, self.twilio_auth_token, self.from_number)
        )


@dataclasses.dataclass(frozen=True)
class QuotaConfig:
    """Quota engine configuration.

    Parameters
    ----------
    time_zone : str
        IANA time zone used to align periods to calendar months.
    low_threshold_pct : float
        Remaining-balance percentage at or below which a low-balance
        warning fires (once per crossing).
    critical_threshold_pct : float
        Remaining-balance percentage at or below which a critical warning
        fires.  Must be lower than ``low_threshold_pct``.
    expiring_soon_days : int
        A period is reported as expiring soon when its end is at most this
        many days away.
    max_dispense_liters : float
        Station per-transaction ceiling, checked at the service boundary.
    sweep_concurrency : int
        Number of vehicles the monthly sweep resets at the same time.
    notify_on_dispense : bool
        Send a receipt message to the owner after each successful dispense.
    notifications : NotificationSettings
        SMS delivery settings.
    """

    time_zone: str = DEFAULT_TIME_ZONE
    low_threshold_pct: float = LOW_THRESHOLD_PCT
    critical_threshold_pct: float = CRITICAL_THRESHOLD_PCT
    expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS
    max_dispense_liters: float = DEFAULT_MAX_DISPENSE_LITERS
    sweep_concurrency: int = DEFAULT_SWEEP_CONCURRENCY
    notify_on_dispense: bool = True
    notifications: NotificationSettings = dataclasses.field(default_factory=NotificationSettings)

    def __post_init__(self) -> None:
        if not 0 < self.critical_threshold_pct < self.low_threshold_pct <= 100:
            raise FuelQuotaConfigError(
                "thresholds must satisfy 0 < critical < low <= 100, "
                f"got critical={self.critical_threshold_pct} low={self.low_threshold_pct}"
            )
        if self.max_dispense_liters <= 0:
            raise FuelQuotaConfigError(f"max_dispense_liters must be positive, got {self.max_dispense_liters}")
        if self.sweep_concurrency < 1:
            raise FuelQuotaConfigError(f"sweep_concurrency must be at least 1, got {self.sweep_concurrency}")
        if self.expiring_soon_days < 0:
            raise FuelQuotaConfigError(f"expiring_soon_days must not be negative, got {self.expiring_soon_days}")
        try:
            ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise FuelQuotaConfigError(f"Unknown time zone: {self.time_zone!r}") from exc

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)

    @classmethod
    def from_env(cls, **overrides: Any) -> QuotaConfig:
        """Create configuration from environment variables.

        Reads optional ``FUELQUOTA_*`` variables.  Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        QuotaConfig
            Populated configuration.
        """
        env = os.environ

        notification_kwargs: dict[str, Any] = {}
        _ENV_NOTIFICATION_MAP = {
            "FUELQUOTA_TWILIO_ACCOUNT_SID": "twilio_account_sid",
            "FUELQUOTA_TWILIO_AUTH_TOKEN": "twilio_auth_token",
            "FUELQUOTA_TWILIO_FROM_NUMBER": "from_number",
            "FUELQUOTA_SMS_BASE_URL": "base_url",
            "FUELQUOTA_COUNTRY_CALLING_CODE": "country_calling_code",
        }
        for env_key, field_name in _ENV_NOTIFICATION_MAP.items():
            val = env.get(env_key)
            if val is not None:
                notification_kwargs[field_name] = val

        sms_enabled_env = env.get("FUELQUOTA_SMS_ENABLED")
        if sms_enabled_env is not None:
            notification_kwargs["sms_enabled"] = _env_bool(sms_enabled_env, False)
        mock_env = env.get("FUELQUOTA_SMS_MOCK_MODE")
        if mock_env is not None:
            notification_kwargs["mock_mode"] = _env_bool(mock_env, True)
        timeout_env = env.get("FUELQUOTA_SMS_TIMEOUT")
        if timeout_env is not None:
            notification_kwargs["request_timeout"] = float(timeout_env)

        # Allow overriding notification fields via a nested dict
        notification_overrides = overrides.pop("notifications", None)
        if isinstance(notification_overrides, dict):
            notification_kwargs.update(notification_overrides)
        elif isinstance(notification_overrides, NotificationSettings):
            notification_kwargs = dataclasses.asdict(notification_overrides)

        config_kwargs: dict[str, Any] = {"notifications": NotificationSettings(**notification_kwargs)}

        time_zone = env.get("FUELQUOTA_TIME_ZONE")
        if time_zone is not None:
            config_kwargs["time_zone"] = time_zone

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "FUELQUOTA_LOW_THRESHOLD_PCT": ("low_threshold_pct", float),
            "FUELQUOTA_CRITICAL_THRESHOLD_PCT": ("critical_threshold_pct", float),
            "FUELQUOTA_EXPIRING_SOON_DAYS": ("expiring_soon_days", int),
            "FUELQUOTA_MAX_DISPENSE_LITERS": ("max_dispense_liters", float),
            "FUELQUOTA_SWEEP_CONCURRENCY": ("sweep_concurrency", int),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = cast(val)
            except ValueError as exc:
                raise FuelQuotaConfigError(f"{env_key} is not a valid {cast.__name__}: {val!r}") from exc

        if "notify_on_dispense" not in overrides:
            config_kwargs["notify_on_dispense"] = _env_bool(env.get("FUELQUOTA_NOTIFY_ON_DISPENSE"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)

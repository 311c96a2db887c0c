"""SMS provider transport (Twilio REST API over aiohttp)."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import aiohttp

from fuelquota._constants import TWILIO_MESSAGES_PATH, USER_AGENT
from fuelquota._redact import redact_for_log
from fuelquota.config import NotificationSettings
from fuelquota.exceptions import NotificationDeliveryError

_logger = logging.getLogger(__name__)


class SmsTransport(Protocol):
    """Structural transport interface used by the SMS gateway.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`TwilioTransport`) concrete.
    """

    async def send_sms(self, to: str, body: str) -> str:
        ...


class TwilioTransport:
    """Posts messages to the Twilio Messages endpoint."""

    def __init__(
        self,
        settings: NotificationSettings,
        http_session: aiohttp.ClientSession,
    ) -> None:
        self._settings = settings
        self._http = http_session

    async def send_sms(self, to: str, body: str) -> str:
        """Submit one message and return the provider's message SID.

        Raises :class:`NotificationDeliveryError` when the request fails or
        the provider does not answer ``201 Created``.
        """
        settings = self._settings
        endpoint = TWILIO_MESSAGES_PATH.format(account_sid=settings.twilio_account_sid)
        url = f"{settings.base_url.rstrip('/')}{endpoint}"
        form: dict[str, str] = {"From": settings.from_number, "To": to, "Body": body}

        _logger.debug("POST %s %s", url, redact_for_log({"to": to, "from": settings.from_number}))

        try:
            async with self._http.post(
                url,
                data=form,
                auth=aiohttp.BasicAuth(settings.twilio_account_sid, settings.twilio_auth_token),
                headers={"user-agent": USER_AGENT},
                timeout=aiohttp.ClientTimeout(total=settings.request_timeout),
            ) as resp:
                text = await resp.text()
                if resp.status != 201:
                    raise NotificationDeliveryError(
                        f"HTTP {resp.status} from SMS provider: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except NotificationDeliveryError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise NotificationDeliveryError(
                f"Request to SMS provider failed: {exc}",
                endpoint=endpoint,
            ) from exc

        try:
            payload: Any = json.loads(text)
        except json.JSONDecodeError:
            # Accepted; the body is informational only.
            return ""
        if isinstance(payload, dict):
            return str(payload.get("sid") or "")
        return ""

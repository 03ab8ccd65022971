"""
SMS delivery over the Twilio REST API and email delivery through the Resend SDK.

Delivery failures are reported in the returned ``DeliveryResult``. They
are never raised, so callers decide what an undelivered message means.
"""

import logging
from typing import Optional

import httpx
import requests
import resend

from detail_scheduler.clients.base import DeliveryResult
from detail_scheduler.config import NotificationConfig
from detail_scheduler.utils import to_e164

logger = logging.getLogger(__name__)


class TwilioResendDispatcher:
    """Notification dispatcher sending SMS via Twilio and email via Resend."""

    def __init__(
        self,
        config: NotificationConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._client = httpx.Client(timeout=config.timeout_sec, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "TwilioResendDispatcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def sms_enabled(self) -> bool:
        config = self._config
        return bool(
            config.twilio_account_sid and config.twilio_auth_token and config.twilio_from_number
        )

    @property
    def email_enabled(self) -> bool:
        return bool(self._config.resend_api_key)

    def send_sms(self, phone: str, body: str) -> DeliveryResult:
        if not self.sms_enabled:
            logger.warning("SMS not sent: Twilio credentials not configured")
            return DeliveryResult(delivered=False, error="SMS not configured")
        if not phone:
            return DeliveryResult(delivered=False, error="No phone number provided")

        to_phone = to_e164(phone)
        sid = self._config.twilio_account_sid
        try:
            response = self._client.post(
                f"{self._config.twilio_api_base}/Accounts/{sid}/Messages.json",
                auth=(sid, self._config.twilio_auth_token),
                data={
                    "To": to_phone,
                    "From": self._config.twilio_from_number,
                    "Body": body,
                },
            )
        except httpx.HTTPError as exc:
            logger.error("SMS to %s failed: %s", to_phone, exc)
            return DeliveryResult(delivered=False, error=f"Twilio request failed: {exc}")

        if response.status_code in (200, 201):
            logger.info("SMS sent to %s", to_phone)
            return DeliveryResult(delivered=True)

        error = _error_message(response)
        logger.error("Twilio rejected SMS to %s: %s", to_phone, error)
        return DeliveryResult(delivered=False, error=error)

    def send_email(self, address: str, subject: str, body: str) -> DeliveryResult:
        if not self.email_enabled:
            logger.warning("Email not sent: Resend API key not configured")
            return DeliveryResult(delivered=False, error="Email not configured")
        if not address:
            return DeliveryResult(delivered=False, error="No email address provided")

        resend.api_key = self._config.resend_api_key
        try:
            response = resend.Emails.send(
                {
                    "from": self._config.email_from,
                    "to": [address],
                    "subject": subject,
                    "html": body,
                }
            )
        except resend.exceptions.ResendError as exc:
            logger.error("Resend rejected email to %s: %s", address, exc)
            return DeliveryResult(delivered=False, error=str(exc))
        except requests.RequestException as exc:
            logger.error("Email to %s failed: %s", address, exc)
            return DeliveryResult(delivered=False, error=f"Resend request failed: {exc}")

        logger.info("Email sent to %s: %s", address, response.get("id"))
        return DeliveryResult(delivered=True)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    message = payload.get("message") if isinstance(payload, dict) else None
    return f"HTTP {response.status_code}: {message}" if message else f"HTTP {response.status_code}"

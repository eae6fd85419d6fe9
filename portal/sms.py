import logging
from dataclasses import dataclass

import requests
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from .config import settings
from .errors import get_error_message


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SmsResult:
    ok: bool
    provider: str | None = None
    id: str | None = None
    error: str | None = None


def has_twilio_config() -> bool:
    return bool(settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_from)


def send_via_twilio(to: str, message: str) -> SmsResult:
    try:
        client = Client(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            http_client=TwilioHttpClient(timeout=settings.http_timeout_seconds),
        )
        sent = client.messages.create(from_=settings.twilio_from, to=to, body=message)
    except TwilioRestException as exc:
        return SmsResult(ok=False, error=exc.msg or f"Twilio error {exc.status}")
    except (TwilioException, requests.RequestException) as exc:
        return SmsResult(ok=False, error=get_error_message(exc, "Twilio request failed"))
    return SmsResult(ok=True, provider="twilio", id=sent.sid)


def send_via_zapier(to: str, message: str) -> SmsResult:
    if not settings.zapier_sms_webhook:
        return SmsResult(ok=False, error="ZAPIER_SMS_WEBHOOK not configured")
    try:
        response = requests.post(
            settings.zapier_sms_webhook,
            json={"to": to, "message": message},
            timeout=settings.http_timeout_seconds,
        )
    except requests.RequestException as exc:
        return SmsResult(ok=False, error=get_error_message(exc, "Zapier request failed"))

    if not response.ok:
        return SmsResult(ok=False, error=response.text or f"Zapier webhook error {response.status_code}")
    return SmsResult(ok=True, provider="zapier")


def send_sms(to: str, message: str) -> SmsResult:
    """Send one SMS through the configured provider; never raises."""
    provider = settings.sms_provider or "auto"
    if provider == "twilio" or (provider == "auto" and has_twilio_config()):
        result = send_via_twilio(to, message)
    elif provider in ("zapier", "auto"):
        result = send_via_zapier(to, message)
    else:
        result = SmsResult(ok=False, error=f"Unknown SMS provider: {provider}")

    if not result.ok and provider == "auto" and not has_twilio_config() and not settings.zapier_sms_webhook:
        result = SmsResult(ok=False, error="No SMS provider configured (set Twilio envs or ZAPIER_SMS_WEBHOOK)")
    if not result.ok:
        logger.warning(f"SMS to {to} failed: {result.error}")
    return result

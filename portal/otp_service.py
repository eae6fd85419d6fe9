import hashlib
import hmac
import secrets
from datetime import datetime, timedelta

from .config import settings
from .models import utcnow


def generate_otp(length: int = 6) -> str:
    return str(secrets.randbelow(10**length)).zfill(length)


def otp_expiration(now: datetime | None = None) -> datetime:
    return (now or utcnow()) + timedelta(minutes=settings.otp_ttl_minutes)


def hash_otp(phone: str, code: str) -> str:
    # Keyed by phone so the same code for two numbers never shares a digest.
    return hashlib.sha256(f"{phone}:{code}".encode("utf-8")).hexdigest()


def verify_otp(phone: str, code: str, code_hash: str) -> bool:
    return hmac.compare_digest(hash_otp(phone, code), code_hash)


def attempts_exhausted(attempts: int) -> bool:
    return attempts >= settings.otp_max_attempts


def otp_message(code: str) -> str:
    return (
        f"Your {settings.school_name} verification code is {code}. "
        f"It expires in {settings.otp_ttl_minutes} minutes."
    )

import hashlib
import hmac
import logging
from typing import Any

import requests

from .config import settings
from .errors import get_error_message


logger = logging.getLogger(__name__)


class PaystackError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def to_kobo(amount: float) -> int:
    return int(round(amount * 100))


def from_kobo(amount: int | float) -> float:
    return amount / 100


def compute_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha512).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """Check the ``x-paystack-signature`` header against the raw webhook body."""
    if not signature or not secret:
        return False
    return hmac.compare_digest(compute_signature(body, secret), signature.strip())


class PaystackClient:
    def __init__(self, secret_key: str | None = None, base_url: str | None = None):
        self.secret_key = secret_key if secret_key is not None else settings.paystack_secret_key
        self.base_url = (base_url if base_url is not None else settings.paystack_base_url).rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        if not self.configured:
            raise PaystackError("Paystack configuration is missing", status_code=500)
        try:
            response = requests.request(
                method,
                f"{self.base_url}{path}",
                headers={"Authorization": f"Bearer {self.secret_key}", "Content-Type": "application/json"},
                timeout=settings.http_timeout_seconds,
                **kwargs,
            )
        except requests.RequestException as exc:
            logger.error(f"Paystack request to {path} failed: {exc}")
            raise PaystackError(f"Paystack unreachable: {exc}", status_code=502) from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not response.ok or data.get("status") is False:
            raise PaystackError(get_error_message(data, "Paystack request failed"))
        return data.get("data") or {}

    def initialize_transaction(self, *, email: str, amount: float, metadata: dict[str, Any]) -> dict[str, Any]:
        return self._request(
            "POST",
            "/transaction/initialize",
            json={"email": email, "amount": to_kobo(amount), "metadata": metadata},
        )

    def verify_transaction(self, reference: str) -> dict[str, Any]:
        return self._request("GET", f"/transaction/verify/{reference}")


paystack_client = PaystackClient()


def get_paystack_client() -> PaystackClient:
    return paystack_client

import logging
from dataclasses import dataclass, field
from typing import Any

import requests

from .config import settings
from .errors import get_error_message


logger = logging.getLogger(__name__)


class IdentityError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class IdentityUser:
    id: str
    email: str
    metadata: dict[str, Any] = field(default_factory=dict)


def _to_identity_user(data: dict[str, Any]) -> IdentityUser:
    return IdentityUser(
        id=str(data.get("id", "")),
        email=(data.get("email") or "").lower(),
        metadata=data.get("user_metadata") or {},
    )


class IdentityClient:
    """Thin client for the hosted identity provider (Supabase Auth REST API)."""

    def __init__(self, base_url: str | None = None, anon_key: str | None = None, service_key: str | None = None):
        self.base_url = (base_url if base_url is not None else settings.supabase_url).rstrip("/")
        self.anon_key = anon_key if anon_key is not None else settings.supabase_anon_key
        self.service_key = service_key if service_key is not None else settings.supabase_service_role_key

    def _headers(self, bearer: str | None = None, admin: bool = False) -> dict[str, str]:
        key = self.service_key if admin else (self.anon_key or self.service_key)
        return {
            "apikey": key,
            "Authorization": f"Bearer {bearer or key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        if not self.base_url:
            raise IdentityError("Identity provider is not configured", status_code=500)
        try:
            response = requests.request(
                method,
                f"{self.base_url}/auth/v1{path}",
                timeout=settings.http_timeout_seconds,
                **kwargs,
            )
        except requests.RequestException as exc:
            logger.error(f"Identity provider request failed: {exc}")
            raise IdentityError(f"Identity provider unreachable: {exc}", status_code=502) from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not response.ok:
            raise IdentityError(get_error_message(data, "Identity provider error"), status_code=response.status_code)
        return data

    def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> IdentityUser:
        data = self._request(
            "POST",
            "/signup",
            headers=self._headers(),
            json={"email": email, "password": password, "data": metadata},
        )
        return _to_identity_user(data.get("user") or data)

    def sign_in(self, email: str, password: str) -> tuple[IdentityUser, dict[str, Any]]:
        data = self._request(
            "POST",
            "/token?grant_type=password",
            headers=self._headers(),
            json={"email": email, "password": password},
        )
        session = {key: data.get(key) for key in ("access_token", "refresh_token", "expires_in", "token_type")}
        return _to_identity_user(data.get("user") or {}), session

    def get_user(self, access_token: str) -> IdentityUser:
        data = self._request("GET", "/user", headers=self._headers(bearer=access_token))
        return _to_identity_user(data)

    def admin_create_user(self, email: str, password: str, metadata: dict[str, Any]) -> IdentityUser:
        data = self._request(
            "POST",
            "/admin/users",
            headers=self._headers(admin=True),
            json={"email": email, "password": password, "email_confirm": True, "user_metadata": metadata},
        )
        return _to_identity_user(data)


identity_client = IdentityClient()


def get_identity_client() -> IdentityClient:
    return identity_client

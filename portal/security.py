from typing import Any

import jwt

from .config import settings


class AuthError(Exception):
    pass


def parse_bearer_token(auth_header: str | None) -> str:
    if not auth_header:
        raise AuthError("Unauthorized")
    parts = auth_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthError("Invalid auth scheme")
    return parts[1].strip()


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify an identity-provider access token signed with the project JWT secret."""
    if not settings.supabase_jwt_secret:
        raise AuthError("JWT secret is not configured")
    try:
        payload = jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthError("Invalid token") from exc
    if "sub" not in payload:
        raise AuthError("Invalid token payload")
    return payload

import json
from typing import Any


DEFAULT_ERROR_MESSAGE = "An unexpected error occurred"

_FALLBACK_FIELDS = ("code", "status", "title", "description", "detail")


def get_error_message(value: Any, fallback: str = DEFAULT_ERROR_MESSAGE) -> str:
    """Reduce whatever an external service or handler produced to one readable message.

    Accepts plain strings, exceptions, and the nested dict shapes returned by
    the identity provider, Paystack and Twilio (``{"message": ...}``,
    ``{"error": {...}}``, ``{"data": {...}}``, ``{"details": ...}``).
    """
    if not value:
        return fallback

    if isinstance(value, str):
        return value.strip() or fallback

    if isinstance(value, BaseException):
        detail = getattr(value, "detail", None)
        if isinstance(detail, str) and detail:
            return detail
        return str(value) or fallback

    if isinstance(value, dict):
        for key in ("message", "msg", "error_description"):
            if isinstance(value.get(key), str) and value[key]:
                return value[key]
        if value.get("error"):
            return get_error_message(value["error"], fallback)
        if value.get("data"):
            return get_error_message(value["data"], fallback)
        for key in ("details", "hint", *_FALLBACK_FIELDS):
            if isinstance(value.get(key), str) and value[key]:
                return value[key]
        try:
            serialized = json.dumps(value, default=str)
        except (TypeError, ValueError):
            return fallback
        return serialized if serialized not in ("{}", "[]") else fallback

    return str(value) or fallback

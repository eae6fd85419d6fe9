from fastapi import HTTPException

from portal.errors import DEFAULT_ERROR_MESSAGE, get_error_message


def test_plain_values():
    assert get_error_message("  boom ") == "boom"
    assert get_error_message("") == DEFAULT_ERROR_MESSAGE
    assert get_error_message(None, "fallback") == "fallback"
    assert get_error_message(ValueError("bad value")) == "bad value"
    assert get_error_message(HTTPException(status_code=404, detail="Missing")) == "Missing"


def test_nested_provider_payloads():
    assert get_error_message({"message": "Invalid key"}) == "Invalid key"
    assert get_error_message({"error": {"msg": "User already registered"}}) == "User already registered"
    assert get_error_message({"data": {"error_description": "expired"}}) == "expired"
    assert get_error_message({"details": "constraint", "hint": "ignored"}) == "constraint"
    assert get_error_message({"code": "23505"}) == "23505"


def test_unreadable_dicts_serialize_or_fall_back():
    assert get_error_message({"foo": 1}) == '{"foo": 1}'
    assert get_error_message({}, "fallback") == "fallback"

import re

from portal.models import OtpCode, Student, User, UserRole


def signup(client, **overrides):
    body = {
        "email": "Ada@ElBethel.test",
        "password": "secret123",
        "full_name": "Ada Obi",
        "role": "teacher",
        "phone": "+2348011111111",
    }
    body.update(overrides)
    return client.post("/api/auth/signup", json=body)


def test_signup_creates_user_with_provider_id(client, identity, db):
    response = signup(client)

    assert response.status_code == 201
    payload = response.json()
    assert payload["message"] == "User created successfully"
    assert payload["user"]["email"] == "ada@elbethel.test"
    assert payload["user"]["role"] == "teacher"
    assert payload["user"]["is_approved"] is False

    provider_id = identity.accounts["ada@elbethel.test"][0]
    user = db.get(User, provider_id)
    assert user.auth_id == provider_id


def test_student_signup_adds_student_row(client, db):
    response = signup(client, email="kid@elbethel.test", role="student")
    user_id = response.json()["user"]["id"]
    assert db.query(Student).filter(Student.user_id == user_id).count() == 1


def test_signup_rejects_duplicates_and_bad_input(client, identity):
    assert signup(client).status_code == 201
    duplicate = signup(client)
    assert duplicate.status_code == 409
    assert duplicate.json() == {"error": "Email already registered"}

    assert signup(client, email="not-an-email").json()["error"] == "Invalid email format"

    missing = client.post("/api/auth/signup", json={"password": "secret123", "full_name": "X Y", "role": "admin"})
    assert missing.status_code == 400
    assert missing.json()["error"] == "email is required"

    identity.fail_with = "Password should be at least 6 characters"
    failed = signup(client, email="other@elbethel.test")
    assert failed.status_code == 400
    assert failed.json()["error"] == "Password should be at least 6 characters"


def test_login_returns_session(client):
    signup(client)
    response = client.post("/api/auth/login", json={"email": "ada@elbethel.test", "password": "secret123"})

    assert response.status_code == 200
    assert response.json()["message"] == "Login successful"
    assert response.json()["session"]["access_token"] == "token"


def test_login_failures(client, identity):
    bad = client.post("/api/auth/login", json={"email": "ada@elbethel.test", "password": "nope"})
    assert bad.status_code == 401

    identity.accounts["ghost@elbethel.test"] = ("ghost-id", "secret123")
    orphan = client.post("/api/auth/login", json={"email": "ghost@elbethel.test", "password": "secret123"})
    assert orphan.status_code == 404
    assert orphan.json()["error"] == "User not found in database"


def test_me_requires_valid_bearer_token(client, teacher, headers):
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401

    response = client.get("/api/auth/me", headers=headers(teacher))
    assert response.status_code == 200
    assert response.json()["email"] == "teacher@elbethel.test"


def test_me_matches_by_email_when_ids_differ(client, teacher):
    from conftest import make_token

    token = make_token("someone-else", teacher.email)
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.json()["id"] == teacher.id


def _sent_code(sent_sms):
    return re.search(r"\b(\d{6})\b", sent_sms[-1][1]).group(1)


def test_phone_otp_flow(client, sent_sms, db):
    response = client.post("/api/auth/otp/request", json={"phone": "+2348000000001"})
    assert response.json() == {"ok": True, "provider": "zapier"}
    code = _sent_code(sent_sms)

    wrong = "000000" if code != "000000" else "111111"
    assert client.post("/api/auth/otp/verify", json={"phone": "+2348000000001", "code": wrong}).status_code == 401
    assert db.query(OtpCode).one().attempts == 1

    ok = client.post("/api/auth/otp/verify", json={"phone": "+2348000000001", "code": code})
    assert ok.json() == {"ok": True}
    db.expire_all()
    assert db.query(OtpCode).count() == 0

    again = client.post("/api/auth/otp/verify", json={"phone": "+2348000000001", "code": code})
    assert again.status_code == 400
    assert again.json()["error"] == "No valid code. Request a new one."


def test_phone_otp_locks_after_max_attempts(client, sent_sms, db):
    client.post("/api/auth/otp/request", json={"phone": "+2348000000002"})
    record = db.query(OtpCode).one()
    record.attempts = 5
    db.commit()

    response = client.post("/api/auth/otp/verify", json={"phone": "+2348000000002", "code": _sent_code(sent_sms)})
    assert response.status_code == 429


def test_otp_request_reports_sms_failure(client, monkeypatch):
    from portal.sms import SmsResult

    monkeypatch.setattr("portal.services.auth.send_sms", lambda to, message: SmsResult(ok=False, error="gateway down"))
    response = client.post("/api/auth/otp/request", json={"phone": "+2348000000003"})
    assert response.status_code == 502
    assert response.json() == {"error": "gateway down"}


def test_me_reports_role(client, make_user, headers):
    parent = make_user(UserRole.PARENT)
    assert client.get("/api/auth/me", headers=headers(parent)).json()["role"] == "parent"

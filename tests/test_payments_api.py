import csv
import io
import json

from portal.models import FeeStructure, Payment, PaymentRecord, PaymentStatus, SchoolAccount, UserRole
from portal.paystack import compute_signature


def submit(client, user, headers, **overrides):
    body = {"email": user.email, "amount": 45000, "receipt": "TELLER-001", "class": "JSS1"}
    body.update(overrides)
    return client.post("/api/payments/submit", json=body, headers=headers(user))


def test_submit_payment_links_class(client, make_student, headers, db, school_class):
    user, _ = make_student()
    response = submit(client, user, headers)

    assert response.json()["ok"] is True
    payment = db.get(Payment, response.json()["id"])
    assert payment.status == PaymentStatus.PENDING
    assert payment.class_id == school_class.id


def test_submit_payment_errors(client, make_student, headers):
    user, _ = make_student()
    assert submit(client, user, headers, amount=0).json() == {"error": "email and amount required"}
    unknown = submit(client, user, headers, email="nobody@elbethel.test")
    assert unknown.status_code == 404
    assert unknown.json() == {"error": "student not found"}


def test_bursar_approves_and_student_is_texted(client, bursar, make_student, headers, sent_sms):
    user, _ = make_student(phone="+2348044444444")
    payment_id = submit(client, user, headers).json()["id"]

    response = client.post("/api/payments/status", json={"id": payment_id, "status": "approved"}, headers=headers(bursar))

    assert response.json() == {"ok": True, "id": payment_id, "status": "approved"}
    assert sent_sms == [("+2348044444444", "Hi Test, your payment of ₦45,000 has been approved. Thank you.")]


def test_payment_desk_is_bursar_or_admin(client, admin, teacher, bursar, headers):
    assert client.get("/api/payments", headers=headers(teacher)).status_code == 403
    assert client.get("/api/payments", headers=headers(bursar)).status_code == 200
    assert client.get("/api/payments", headers=headers(admin)).status_code == 200


def test_payment_list_is_newest_first(client, bursar, make_student, headers):
    user, _ = make_student()
    submit(client, user, headers, receipt="old", paid_at="2025-01-01T10:00:00")
    submit(client, user, headers, receipt="new", paid_at="2025-02-01T10:00:00")

    rows = client.get("/api/payments", headers=headers(bursar)).json()
    assert [row["receipt"] for row in rows] == ["new", "old"]


def test_export_csv(client, bursar, make_student, headers):
    user, _ = make_student()
    submit(client, user, headers, receipt="TELLER,42")

    response = client.get("/api/payments/export", headers=headers(bursar))

    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=payments.csv" in response.headers["content-disposition"]
    header, row = csv.reader(io.StringIO(response.text))
    assert header == ["id", "student", "class", "amount", "status", "receipt", "paid_at"]
    assert row[1:6] == ["Test Student", "JSS1", "45000.0", "pending", "TELLER,42"]
    assert '"TELLER,42"' in response.text


def test_teller_escapes_values(client, make_student, headers, db):
    user, _ = make_student(email="teller@elbethel.test")
    user.full_name = "<script>alert(1)</script>"
    db.add(SchoolAccount(bank_name="First Bank", account_name="El Bethel Academy", account_number="0123456789"))
    db.commit()

    response = client.get("/api/teller", params={"email": "teller@elbethel.test"}, headers=headers(user))

    assert response.headers["content-type"].startswith("text/html")
    assert "&lt;script&gt;" in response.text
    assert "<script>" not in response.text
    assert "0123456789" in response.text
    assert client.get("/api/teller", headers=headers(user)).status_code == 400


def test_fees_and_class_summary(client, bursar, make_student, headers, school_class):
    saved = client.post("/api/fees", json={"class_id": school_class.id, "amount": 50000}, headers=headers(bursar))
    assert saved.json()["amount"] == 50000.0

    first, _ = make_student()
    make_student()
    approved_id = submit(client, first, headers, amount=30000).json()["id"]
    client.post("/api/payments/status", json={"id": approved_id, "status": "approved"}, headers=headers(bursar))
    submit(client, first, headers, amount=20000)

    fees = client.get("/api/fees", headers=headers(bursar)).json()
    jss1 = next(item for item in fees if item["class_id"] == school_class.id)
    assert jss1 == {"class_id": school_class.id, "class": "JSS1", "amount": 50000.0, "currency": "NGN"}

    summary = client.get("/api/class-summary", headers=headers(bursar)).json()["data"]
    row = next(item for item in summary if item["class_id"] == school_class.id)
    assert row["students"] == 2
    assert row["expected"] == 100000.0
    assert row["collected"] == 30000.0
    assert row["pending"] == 20000.0
    assert row["outstanding"] == 70000.0


def test_term_records(client, bursar, make_student, headers, db):
    user, student = make_student()
    other_user, other = make_student()

    created = client.post(
        "/api/payments/records",
        json={"studentId": other.id, "amountDue": 60000, "receiptUrl": "https://files.test/r.png"},
        headers=headers(user),
    )
    assert created.status_code == 201
    record = created.json()["data"]
    # A student can only file for themselves.
    assert record["student_id"] == student.id
    assert record["term"] == "First Term"
    assert record["payment_status"] == "pending"

    duplicate = client.post("/api/payments/records", json={"studentId": student.id, "amountDue": 60000}, headers=headers(user))
    assert duplicate.status_code == 400
    assert duplicate.json()["error"] == "Payment record already exists for this term"

    online = client.post(
        "/api/payments/records",
        json={"studentId": other.id, "amountDue": 60000, "paymentMethod": "online"},
        headers=headers(bursar),
    ).json()["data"]
    assert online["payment_status"] == "pending"
    assert online["amount_paid"] == 0.0

    mine = client.get("/api/payments/records", headers=headers(user)).json()["data"]
    assert [item["id"] for item in mine] == [record["id"]]

    verified = client.put(
        "/api/payments/records",
        json={"recordId": record["id"], "paymentStatus": "verified", "amountPaid": 60000},
        headers=headers(bursar),
    ).json()["data"]
    assert verified["verified_by"] == bursar.id
    assert verified["verified_at"] is not None

    assert client.put("/api/payments/records", json={"recordId": record["id"]}, headers=headers(user)).status_code == 403


def test_paystack_initialize_and_verify(client, make_student, headers, paystack, db):
    user, student = make_student()

    init = client.post(
        "/api/payments/paystack/initialize",
        json={"studentId": student.id, "amount": 45000, "email": user.email, "term": "Second Term"},
        headers=headers(user),
    )
    assert init.json()["data"]["reference"] == "ref-1"
    metadata = paystack.initialized[0]["metadata"]
    assert metadata["student_id"] == student.id
    assert metadata["term"] == "Second Term"
    assert metadata["payment_type"] == "school_fees"

    paystack.transactions["ref-1"] = {"status": "success", "amount": 4500000, "metadata": metadata}
    verified = client.post("/api/payments/paystack/verify", json={"reference": "ref-1"}, headers=headers(user))
    assert verified.json() == {
        "success": True,
        "message": "Payment verified successfully",
        "data": {"reference": "ref-1", "amount": 45000.0, "status": "verified"},
    }

    record = db.query(PaymentRecord).one()
    assert (record.payment_status, record.amount_paid, record.term) == ("verified", 45000.0, "Second Term")

    paystack.transactions["ref-2"] = {"status": "abandoned", "amount": 100, "metadata": metadata}
    failed = client.post("/api/payments/paystack/verify", json={"reference": "ref-2"}, headers=headers(user))
    assert failed.status_code == 400


def test_paystack_unconfigured(client, make_student, headers, paystack):
    user, student = make_student()
    paystack.secret_key = ""
    response = client.post(
        "/api/payments/paystack/initialize",
        json={"studentId": student.id, "amount": 100, "email": user.email},
        headers=headers(user),
    )
    assert response.status_code == 500


def _webhook(client, payload, secret="sk_test_secret", signature=None):
    body = json.dumps(payload).encode()
    sig = signature if signature is not None else compute_signature(body, secret)
    return client.post(
        "/api/payments/paystack/webhook",
        content=body,
        headers={"x-paystack-signature": sig, "content-type": "application/json"},
    )


def test_webhook_settles_existing_term_record(client, make_student, db):
    _, student = make_student()
    db.add(PaymentRecord(student_id=student.id, term="First Term", session="2024/2025", amount_due=60000))
    db.commit()

    event = {
        "event": "charge.success",
        "data": {"reference": "PS-77", "amount": 6000000, "metadata": {"student_id": student.id}},
    }
    assert _webhook(client, event).json() == {"success": True}

    db.expire_all()
    record = db.query(PaymentRecord).one()
    assert record.paystack_reference == "PS-77"
    assert record.payment_status == "verified"
    assert record.amount_paid == 60000.0


def test_webhook_rejects_bad_signatures_and_ignores_other_events(client, db):
    assert _webhook(client, {"event": "charge.success"}, secret="wrong").status_code == 401
    assert _webhook(client, {"event": "charge.success"}, signature="").status_code == 400
    assert _webhook(client, {"event": "transfer.success", "data": {}}).json() == {"success": True}
    unknown = {"event": "charge.success", "data": {"reference": "PS-1", "amount": 100, "metadata": {"student_id": "ghost"}}}
    assert _webhook(client, unknown).json() == {"success": True}
    assert db.query(PaymentRecord).count() == 0


def test_fee_upsert_requires_known_class(client, bursar, headers, db):
    assert client.post("/api/fees", json={"class_id": "nope", "amount": 1}, headers=headers(bursar)).status_code == 404
    assert db.query(FeeStructure).count() == 0


def test_parent_cannot_change_payment_status(client, make_user, headers):
    parent = make_user(UserRole.PARENT)
    assert client.post("/api/payments/status", json={"id": "x", "status": "approved"}, headers=headers(parent)).status_code == 403


def test_online_records_stay_pending_until_the_gateway_confirms(client, make_student, headers, db):
    user, student = make_student()

    created = client.post(
        "/api/payments/records",
        json={"studentId": student.id, "amountDue": 50000, "paymentMethod": "online", "paystackReference": "PS-FAKE"},
        headers=headers(user),
    )
    assert created.status_code == 201
    record = created.json()["data"]
    assert (record["payment_status"], record["amount_paid"]) == ("pending", 0.0)
    assert record["paystack_reference"] is None
    assert record["payment_completed_at"] is None

    event = {
        "event": "charge.success",
        "data": {"reference": "PS-REAL", "amount": 5000000, "metadata": {"student_id": student.id}},
    }
    assert _webhook(client, event).json() == {"success": True}

    db.expire_all()
    settled = db.query(PaymentRecord).one()
    assert (settled.payment_status, settled.amount_paid, settled.paystack_reference) == ("verified", 50000.0, "PS-REAL")


def test_webhook_rejects_payloads_that_are_not_objects(client, make_student, db):
    assert _webhook(client, []).status_code == 400
    assert _webhook(client, {"event": "charge.success", "data": ["PS-9"]}).status_code == 400

    _, student = make_student()
    encoded = {
        "event": "charge.success",
        "data": {"reference": "PS-10", "amount": 100000, "metadata": json.dumps({"student_id": student.id})},
    }
    assert _webhook(client, encoded).json() == {"success": True}
    garbled = {"event": "charge.success", "data": {"reference": "PS-11", "amount": 100, "metadata": "not json"}}
    assert _webhook(client, garbled).json() == {"success": True}

    db.expire_all()
    assert [record.paystack_reference for record in db.query(PaymentRecord).all()] == ["PS-10"]

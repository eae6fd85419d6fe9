import json
import logging
from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..config import settings
from ..models import PaymentRecord, Student, utcnow
from ..paystack import PaystackClient, PaystackError, from_kobo, verify_signature
from . import get_or_404
from .payments import find_term_record


logger = logging.getLogger(__name__)


def _gateway_call(func, *args, **kwargs) -> dict[str, Any]:
    try:
        return func(*args, **kwargs)
    except PaystackError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc


def _metadata(value: Any) -> dict[str, Any]:
    """Paystack may send metadata as an object or as a JSON-encoded string."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return {}
    return value if isinstance(value, dict) else {}


def initialize_online_payment(
    db: Session,
    client: PaystackClient,
    *,
    student_id: str,
    amount: float,
    email: str,
    term: str | None = None,
    session: str | None = None,
) -> dict[str, Any]:
    if not client.configured:
        raise HTTPException(status_code=500, detail="Paystack configuration is missing")
    student = get_or_404(db, Student, student_id, "Student")
    metadata = {
        "student_id": student.id,
        "admission_number": student.admission_number,
        "full_name": student.user.full_name if student.user else None,
        "term": term or settings.default_term,
        "session": session or settings.default_session,
        "payment_type": "school_fees",
    }
    data = _gateway_call(client.initialize_transaction, email=email, amount=amount, metadata=metadata)
    return {
        "authorization_url": data.get("authorization_url"),
        "access_code": data.get("access_code"),
        "reference": data.get("reference"),
    }


def settle_transaction(db: Session, *, reference: str, amount: float, metadata: dict[str, Any]) -> PaymentRecord | None:
    """Mark the term record for a successful charge as verified, creating it if needed.

    Returns ``None`` when the charge names no known student.
    """
    now = utcnow()
    record = db.query(PaymentRecord).filter(PaymentRecord.paystack_reference == reference).first()
    student_id = metadata.get("student_id")
    term = metadata.get("term") or settings.default_term
    session = metadata.get("session") or settings.default_session

    if record is None and student_id:
        record = find_term_record(db, student_id=student_id, term=term, session=session)

    if record is None:
        if not student_id or db.get(Student, student_id) is None:
            return None
        record = PaymentRecord(
            student_id=student_id,
            term=term,
            session=session,
            amount_due=amount,
            payment_method="online",
        )
        db.add(record)

    record.amount_paid = amount
    record.payment_status = "verified"
    record.paystack_reference = reference
    record.payment_completed_at = now
    record.verified_at = now
    db.commit()
    db.refresh(record)
    return record


def verify_online_payment(db: Session, client: PaystackClient, *, reference: str) -> dict[str, Any]:
    if not client.configured:
        raise HTTPException(status_code=500, detail="Paystack configuration is missing")
    transaction = _gateway_call(client.verify_transaction, reference)
    if transaction.get("status") != "success":
        raise HTTPException(status_code=400, detail=f"Payment was not successful ({transaction.get('status')})")

    amount = from_kobo(transaction.get("amount") or 0)
    record = settle_transaction(db, reference=reference, amount=amount, metadata=_metadata(transaction.get("metadata")))
    if record is None:
        raise HTTPException(status_code=404, detail="Student not found")
    logger.info(f"Payment verified: {reference}")
    return {"reference": reference, "amount": amount, "status": "verified"}


def handle_paystack_webhook(db: Session, client: PaystackClient, *, body: bytes, signature: str | None) -> None:
    if not client.secret_key:
        raise HTTPException(status_code=500, detail="Paystack secret key not configured")
    if not signature:
        raise HTTPException(status_code=400, detail="No signature provided")
    if not verify_signature(body, signature, client.secret_key):
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        event = json.loads(body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid webhook payload") from exc
    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    if event.get("event") != "charge.success":
        logger.info(f"Ignoring Paystack event {event.get('event')}")
        return

    transaction = event.get("data") or {}
    if not isinstance(transaction, dict):
        raise HTTPException(status_code=400, detail="Invalid webhook payload")
    reference = transaction.get("reference")
    if not reference:
        raise HTTPException(status_code=400, detail="Missing transaction reference")

    record = settle_transaction(
        db,
        reference=reference,
        amount=from_kobo(transaction.get("amount") or 0),
        metadata=_metadata(transaction.get("metadata")),
    )
    if record is None:
        logger.warning(f"Paystack charge {reference} names no known student; acknowledged without a record")
        return
    logger.info(f"Payment verified: {reference}")

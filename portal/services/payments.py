import csv
import html
import io
import logging
from datetime import datetime
from typing import Any

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..models import (
    FeeStructure,
    Payment,
    PaymentRecord,
    PaymentStatus,
    SchoolAccount,
    SchoolClass,
    Student,
    User,
    utcnow,
)
from ..sms import send_sms
from . import get_or_404


logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ("id", "student", "class", "amount", "status", "receipt", "paid_at")


def _newest_first(query):
    return query.order_by(Payment.paid_at.is_(None), Payment.paid_at.desc(), Payment.created_at.desc())


def payment_summary(payment: Payment) -> dict[str, Any]:
    return {
        "id": payment.id,
        "amount": payment.amount,
        "status": payment.status.value,
        "receipt": payment.receipt,
        "paid_at": payment.paid_at,
        "student": {"full_name": payment.student.full_name if payment.student else None},
        "class": {"name": payment.school_class.name if payment.school_class else None},
    }


def list_payments(db: Session, *, limit: int = 50) -> list[dict[str, Any]]:
    return [payment_summary(payment) for payment in _newest_first(db.query(Payment)).limit(limit).all()]


def submit_payment(
    db: Session,
    *,
    email: str,
    amount: float,
    receipt: str = "",
    paid_at: datetime | None = None,
    class_name: str | None = None,
) -> Payment:
    if not email or not amount:
        raise HTTPException(status_code=400, detail="email and amount required")
    student = db.query(User).filter(User.email == email.strip().lower()).first()
    if not student:
        raise HTTPException(status_code=404, detail="student not found")

    class_id = None
    if class_name:
        school_class = db.query(SchoolClass).filter(SchoolClass.name == class_name).first()
        class_id = school_class.id if school_class else None

    payment = Payment(
        student_id=student.id,
        class_id=class_id,
        amount=float(amount),
        status=PaymentStatus.PENDING,
        receipt=receipt or "",
        paid_at=paid_at,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def status_message(first_name: str, amount: float, status: PaymentStatus) -> str:
    if status == PaymentStatus.APPROVED:
        return f"Hi {first_name}, your payment of ₦{amount:,.0f} has been approved. Thank you."
    return f"Hi {first_name}, your payment of ₦{amount:,.0f} was rejected. Please contact the bursar."


def update_payment_status(db: Session, *, payment_id: str, status: PaymentStatus) -> Payment:
    payment = get_or_404(db, Payment, payment_id, "Payment")
    payment.status = status
    db.commit()
    db.refresh(payment)

    student = payment.student
    if status != PaymentStatus.PENDING and student and student.phone:
        first_name = (student.full_name or "").split(" ")[0] or "Student"
        # Delivery failures are logged by send_sms and never undo the status change.
        send_sms(student.phone, status_message(first_name, payment.amount, status))
    return payment


def _csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def export_payments_csv(db: Session) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for payment in _newest_first(db.query(Payment)).all():
        writer.writerow(
            [
                _csv_value(payment.id),
                _csv_value(payment.student.full_name if payment.student else ""),
                _csv_value(payment.school_class.name if payment.school_class else ""),
                _csv_value(float(payment.amount or 0)),
                _csv_value(payment.status.value),
                _csv_value(payment.receipt),
                _csv_value(payment.paid_at),
            ]
        )
    return output.getvalue()


TELLER_TEMPLATE = """<!doctype html>
<html>
<head>
<meta charset="utf-8">
<title>Payment Teller</title>
<style>body{{font-family:Arial;padding:24px}} .box{{border:1px solid #ddd;padding:16px;border-radius:8px}} .row{{display:flex;justify-content:space-between;margin:8px 0}}</style>
</head>
<body>
<h2>{school} - Payment Teller</h2>
<div class="box">
<div class="row"><strong>Student</strong><span>{student}</span></div>
<div class="row"><strong>Class</strong><span>{klass}</span></div>
<div class="row"><strong>Bank</strong><span>{bank}</span></div>
<div class="row"><strong>Account Name</strong><span>{account_name}</span></div>
<div class="row"><strong>Account Number</strong><span>{account_number}</span></div>
<div class="row"><strong>Date</strong><span>{date}</span></div>
</div>
<p style="margin-top:16px;color:#666">Present this teller at the bank or use for transfer reference.</p>
</body>
</html>"""


def render_teller(db: Session, *, email: str) -> str:
    """Printable bank slip for a student; every interpolated value is escaped."""
    if not email:
        raise HTTPException(status_code=400, detail="email required")
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    class_name = ""
    if user:
        student = db.query(Student).filter(Student.user_id == user.id).first()
        if student and student.school_class:
            class_name = student.school_class.name
    account = db.query(SchoolAccount).order_by(SchoolAccount.updated_at.desc()).first()

    return TELLER_TEMPLATE.format(
        school=html.escape(settings.school_name),
        student=html.escape(user.full_name if user else ""),
        klass=html.escape(class_name),
        bank=html.escape(account.bank_name if account else "-"),
        account_name=html.escape(account.account_name if account else "-"),
        account_number=html.escape(account.account_number if account else "-"),
        date=html.escape(utcnow().strftime("%Y-%m-%d %H:%M")),
    )


def list_fees(db: Session) -> list[dict[str, Any]]:
    fees = {fee.class_id: fee for fee in db.query(FeeStructure).all()}
    payload = []
    for school_class in db.query(SchoolClass).order_by(SchoolClass.name).all():
        fee = fees.get(school_class.id)
        payload.append(
            {
                "class_id": school_class.id,
                "class": school_class.name,
                "amount": float(fee.amount) if fee else 0.0,
                "currency": fee.currency if fee else "NGN",
            }
        )
    return payload


def upsert_fee(db: Session, *, class_id: str, amount: float, currency: str = "NGN") -> FeeStructure:
    get_or_404(db, SchoolClass, class_id, "Class")
    fee = db.get(FeeStructure, class_id)
    if fee is None:
        fee = FeeStructure(class_id=class_id)
        db.add(fee)
    fee.amount = float(amount)
    fee.currency = currency or "NGN"
    db.commit()
    db.refresh(fee)
    return fee


def class_payment_summary(db: Session) -> list[dict[str, Any]]:
    """Per-class totals: expected fees, approved and pending payments."""
    fees = {fee.class_id: float(fee.amount) for fee in db.query(FeeStructure).all()}
    enrolled = dict(
        db.query(Student.class_id, func.count(Student.id)).filter(Student.class_id.isnot(None)).group_by(Student.class_id).all()
    )
    totals: dict[tuple[str, PaymentStatus], tuple[float, int]] = {
        (class_id, status): (float(amount or 0), count)
        for class_id, status, amount, count in db.query(
            Payment.class_id, Payment.status, func.sum(Payment.amount), func.count(Payment.id)
        )
        .filter(Payment.class_id.isnot(None))
        .group_by(Payment.class_id, Payment.status)
        .all()
    }

    summary = []
    for school_class in db.query(SchoolClass).order_by(SchoolClass.name).all():
        students = enrolled.get(school_class.id, 0)
        collected, approved_count = totals.get((school_class.id, PaymentStatus.APPROVED), (0.0, 0))
        pending, pending_count = totals.get((school_class.id, PaymentStatus.PENDING), (0.0, 0))
        expected = fees.get(school_class.id, 0.0) * students
        summary.append(
            {
                "class_id": school_class.id,
                "class": school_class.name,
                "students": students,
                "expected": expected,
                "collected": collected,
                "pending": pending,
                "outstanding": max(expected - collected, 0.0),
                "approved_payments": approved_count,
                "pending_payments": pending_count,
            }
        )
    return summary


# --- term payment records ---------------------------------------------------


def list_payment_records(
    db: Session,
    *,
    student_id: str | None = None,
    status: str | None = None,
    term: str | None = None,
) -> list[PaymentRecord]:
    query = db.query(PaymentRecord)
    if student_id:
        query = query.filter(PaymentRecord.student_id == student_id)
    if status:
        query = query.filter(PaymentRecord.payment_status == status)
    if term:
        query = query.filter(PaymentRecord.term == term)
    return query.order_by(PaymentRecord.created_at.desc()).all()


def find_term_record(db: Session, *, student_id: str, term: str, session: str) -> PaymentRecord | None:
    return (
        db.query(PaymentRecord)
        .filter(
            PaymentRecord.student_id == student_id,
            PaymentRecord.term == term,
            PaymentRecord.session == session,
        )
        .first()
    )


def create_payment_record(
    db: Session,
    *,
    student_id: str,
    amount_due: float,
    term: str | None = None,
    session: str | None = None,
    payment_method: str | None = None,
    receipt_url: str | None = None,
    paystack_reference: str | None = None,
) -> PaymentRecord:
    if not amount_due:
        raise HTTPException(status_code=400, detail="Missing required fields")
    get_or_404(db, Student, student_id, "Student")
    term = term or settings.default_term
    session = session or settings.default_session
    if find_term_record(db, student_id=student_id, term=term, session=session):
        raise HTTPException(status_code=400, detail="Payment record already exists for this term")

    method = payment_method or "proof_upload"
    # Records start pending; online ones are completed only by settle_transaction.
    record = PaymentRecord(
        student_id=student_id,
        term=term,
        session=session,
        amount_due=amount_due,
        amount_paid=0,
        payment_method=method,
        payment_status="pending",
        receipt_url=receipt_url,
        paystack_reference=paystack_reference,
        proof_uploaded_at=utcnow() if method == "proof_upload" else None,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def update_payment_record(
    db: Session,
    *,
    record_id: str,
    amount_paid: float | None = None,
    payment_status: str | None = None,
    verified_by: str | None = None,
    remarks: str | None = None,
) -> PaymentRecord:
    record = get_or_404(db, PaymentRecord, record_id, "Payment record")
    if amount_paid is not None:
        record.amount_paid = amount_paid
    if payment_status:
        record.payment_status = payment_status
        if payment_status == "verified":
            record.verified_at = utcnow()
            record.verified_by = verified_by
    if remarks is not None:
        record.remarks = remarks
    db.commit()
    db.refresh(record)
    return record

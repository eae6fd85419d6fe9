from fastapi import APIRouter, Depends, Header, Query, Request, status
from fastapi.responses import HTMLResponse, StreamingResponse
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..middleware import get_current_user, require_roles
from ..models import User, UserRole
from ..paystack import PaystackClient, get_paystack_client
from ..schemas import (
    FeeOut,
    FeeUpsertRequest,
    PaymentRecordCreateRequest,
    PaymentRecordOut,
    PaymentRecordUpdateRequest,
    PaymentStatusRequest,
    PaymentSubmitRequest,
    PaystackInitializeRequest,
    PaystackVerifyRequest,
)
from ..services import student_for_user
from ..services.online_payments import handle_paystack_webhook, initialize_online_payment, verify_online_payment
from ..services.payments import (
    class_payment_summary,
    create_payment_record,
    export_payments_csv,
    list_fees,
    list_payment_records,
    list_payments,
    render_teller,
    submit_payment,
    update_payment_record,
    update_payment_status,
    upsert_fee,
)

router = APIRouter(prefix="/api", tags=["Payments"])

require_bursar = require_roles(UserRole.BURSAR)


@router.get("/payments")
def payments_index(db: Session = Depends(get_db_session), _: User = Depends(require_bursar)):
    return list_payments(db)


@router.post("/payments/submit")
def payments_submit(
    payload: PaymentSubmitRequest,
    db: Session = Depends(get_db_session),
    _: User = Depends(get_current_user),
):
    payment = submit_payment(
        db,
        email=payload.email,
        amount=payload.amount,
        receipt=payload.receipt,
        paid_at=payload.paid_at,
        class_name=payload.class_name,
    )
    return {"ok": True, "id": payment.id}


@router.post("/payments/status")
def payments_status(
    payload: PaymentStatusRequest,
    db: Session = Depends(get_db_session),
    _: User = Depends(require_bursar),
):
    payment = update_payment_status(db, payment_id=payload.id, status=payload.status)
    return {"ok": True, "id": payment.id, "status": payment.status}


@router.get("/payments/export")
def payments_export(db: Session = Depends(get_db_session), _: User = Depends(require_bursar)):
    content = export_payments_csv(db)
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=payments.csv"},
    )


@router.get("/teller", response_class=HTMLResponse)
def payments_teller(
    email: str = Query(default=""),
    db: Session = Depends(get_db_session),
    _: User = Depends(get_current_user),
):
    return HTMLResponse(render_teller(db, email=email))


@router.get("/fees", response_model=list[FeeOut])
def fees_index(db: Session = Depends(get_db_session), _: User = Depends(get_current_user)):
    return list_fees(db)


@router.post("/fees", response_model=FeeOut)
def fees_upsert(
    payload: FeeUpsertRequest,
    db: Session = Depends(get_db_session),
    _: User = Depends(require_bursar),
):
    fee = upsert_fee(db, class_id=payload.class_id, amount=payload.amount, currency=payload.currency)
    return FeeOut(class_id=fee.class_id, amount=fee.amount, currency=fee.currency)


@router.get("/class-summary")
def payments_class_summary(db: Session = Depends(get_db_session), _: User = Depends(require_bursar)):
    return {"data": class_payment_summary(db)}


@router.get("/payments/records")
def payment_records_index(
    student_id: str | None = Query(default=None, alias="studentId"),
    payment_status: str | None = Query(default=None, alias="status"),
    term: str | None = Query(default=None),
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    if current_user.role == UserRole.STUDENT:
        student_id = student_for_user(db, current_user.id).id
    records = list_payment_records(db, student_id=student_id, status=payment_status, term=term)
    return {"data": [PaymentRecordOut.model_validate(record) for record in records]}


@router.post("/payments/records", status_code=status.HTTP_201_CREATED)
def payment_records_create(
    payload: PaymentRecordCreateRequest,
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    values = payload.model_dump()
    if current_user.role == UserRole.STUDENT:
        values["student_id"] = student_for_user(db, current_user.id).id
        values["paystack_reference"] = None
    record = create_payment_record(db, **values)
    return {"data": PaymentRecordOut.model_validate(record)}


@router.put("/payments/records")
def payment_records_update(
    payload: PaymentRecordUpdateRequest,
    db: Session = Depends(get_db_session),
    current_user: User = Depends(require_bursar),
):
    record = update_payment_record(
        db,
        record_id=payload.record_id,
        amount_paid=payload.amount_paid,
        payment_status=payload.payment_status,
        verified_by=payload.verified_by or current_user.id,
        remarks=payload.remarks,
    )
    return {"data": PaymentRecordOut.model_validate(record)}


@router.post("/payments/paystack/initialize")
def paystack_initialize(
    payload: PaystackInitializeRequest,
    db: Session = Depends(get_db_session),
    client: PaystackClient = Depends(get_paystack_client),
    _: User = Depends(get_current_user),
):
    data = initialize_online_payment(db, client, **payload.model_dump())
    return {"data": data}


@router.post("/payments/paystack/verify")
def paystack_verify(
    payload: PaystackVerifyRequest,
    db: Session = Depends(get_db_session),
    client: PaystackClient = Depends(get_paystack_client),
    _: User = Depends(get_current_user),
):
    data = verify_online_payment(db, client, reference=payload.reference)
    return {"success": True, "message": "Payment verified successfully", "data": data}


@router.post("/payments/paystack/webhook")
async def paystack_webhook(
    request: Request,
    x_paystack_signature: str | None = Header(default=None),
    db: Session = Depends(get_db_session),
    client: PaystackClient = Depends(get_paystack_client),
):
    body = await request.body()
    handle_paystack_webhook(db, client, body=body, signature=x_paystack_signature)
    return {"success": True}

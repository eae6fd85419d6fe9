import logging
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ..identity import IdentityClient, IdentityError
from ..middleware import find_portal_user
from ..models import OtpCode, Student, User, UserRole, utcnow
from ..otp_service import attempts_exhausted, generate_otp, hash_otp, otp_expiration, otp_message, verify_otp
from ..sms import send_sms
from . import normalize_email


logger = logging.getLogger(__name__)


def signup_user(
    db: Session,
    identity: IdentityClient,
    *,
    email: str,
    password: str,
    full_name: str,
    role: UserRole,
    phone: str | None = None,
) -> User:
    email = normalize_email(email)
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="Email already registered")

    try:
        identity_user = identity.sign_up(email, password, {"full_name": full_name, "role": role.value})
    except IdentityError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    user = User(
        auth_id=identity_user.id or None,
        email=email,
        full_name=full_name.strip(),
        role=role,
        phone=phone,
    )
    if identity_user.id:
        user.id = identity_user.id
    db.add(user)
    db.flush()

    if role == UserRole.STUDENT:
        db.add(Student(user_id=user.id))

    db.commit()
    db.refresh(user)
    logger.info(f"Registered {role.value} account {email}")
    return user


def login_user(db: Session, identity: IdentityClient, *, email: str, password: str) -> tuple[User, dict[str, Any]]:
    try:
        identity_user, session = identity.sign_in(normalize_email(email), password)
    except IdentityError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc

    user = find_portal_user(db, identity_user)
    if not user:
        raise HTTPException(status_code=404, detail="User not found in database")
    return user, session


def request_phone_otp(db: Session, *, phone: str) -> str | None:
    phone = phone.strip()
    if not phone:
        raise HTTPException(status_code=400, detail="phone is required")

    code = generate_otp()
    db.add(OtpCode(phone=phone, code_hash=hash_otp(phone, code), expires_at=otp_expiration()))
    db.commit()

    result = send_sms(phone, otp_message(code))
    if not result.ok:
        raise HTTPException(status_code=502, detail=result.error or "SMS delivery failed")
    return result.provider


def verify_phone_otp(db: Session, *, phone: str, code: str) -> None:
    phone = phone.strip()
    code = code.strip()
    if not phone or not code:
        raise HTTPException(status_code=400, detail="phone and code are required")

    record = (
        db.query(OtpCode)
        .filter(OtpCode.phone == phone, OtpCode.expires_at > utcnow())
        .order_by(OtpCode.created_at.desc())
        .first()
    )
    if not record:
        raise HTTPException(status_code=400, detail="No valid code. Request a new one.")
    if attempts_exhausted(record.attempts):
        raise HTTPException(status_code=429, detail="Too many attempts. Request a new code.")

    if not verify_otp(phone, code, record.code_hash):
        record.attempts += 1
        db.commit()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid code")

    db.delete(record)
    db.commit()

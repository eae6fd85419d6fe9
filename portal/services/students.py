import logging
from typing import Any

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..admission import CLASS_OPTIONS, DEPARTMENTS, AdmissionNumber, next_admission_number
from ..identity import IdentityClient, IdentityError
from ..models import SchoolClass, SchoolSettings, Student, User, UserRole
from . import normalize_email


logger = logging.getLogger(__name__)

ADMISSION_RETRIES = 3


def _validate_placement(class_level: str, department: str) -> None:
    if class_level not in CLASS_OPTIONS:
        raise HTTPException(status_code=400, detail=f"Unknown class level: {class_level}")
    if department not in DEPARTMENTS:
        raise HTTPException(status_code=400, detail=f"Unknown department: {department}")


def generate_admission(db: Session, *, class_level: str, department: str) -> AdmissionNumber:
    try:
        return next_admission_number(db, class_level, department)
    except RuntimeError as exc:
        logger.error(f"Admission number allocation failed: {exc}")
        raise HTTPException(status_code=500, detail="Failed to generate admission number") from exc


def admission_details(number: AdmissionNumber) -> dict[str, Any]:
    return {
        "schoolCode": number.school_code,
        "year": number.year,
        "classCode": number.class_code,
        "departmentCode": number.department_code,
        "sequenceNumber": f"{number.sequence:03d}",
    }


def register_student(
    db: Session,
    identity: IdentityClient,
    *,
    email: str,
    password: str,
    full_name: str,
    class_level: str,
    department: str,
    phone: str | None = None,
    guardian_name: str | None = None,
    guardian_phone: str | None = None,
    guardian_email: str | None = None,
) -> Student:
    """Create the identity account, portal user and pending student row.

    The admission number is allocated by counting, so a concurrent
    registration can take the same number; the unique column rejects the
    second insert and allocation is retried.
    """
    school_settings = db.query(SchoolSettings).first()
    if school_settings and not school_settings.student_registration_open:
        raise HTTPException(status_code=403, detail="Student registration is closed")

    _validate_placement(class_level, department)
    email = normalize_email(email)
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="This email is already registered")

    school_class = (
        db.query(SchoolClass)
        .filter(or_(SchoolClass.form_level == class_level, SchoolClass.name == class_level))
        .first()
    )

    try:
        identity_user = identity.sign_up(email, password, {"full_name": full_name, "role": UserRole.STUDENT.value})
    except IdentityError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    for attempt in range(1, ADMISSION_RETRIES + 1):
        number = generate_admission(db, class_level=class_level, department=department)
        user = User(
            auth_id=identity_user.id or None,
            email=email,
            full_name=full_name.strip(),
            role=UserRole.STUDENT,
            phone=phone,
        )
        if identity_user.id:
            user.id = identity_user.id
        student = Student(
            user=user,
            admission_number=str(number),
            class_id=school_class.id if school_class else None,
            department=department,
            guardian_name=guardian_name,
            guardian_phone=guardian_phone,
            guardian_email=guardian_email,
        )
        db.add(student)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(f"Admission number {number} taken, retrying ({attempt}/{ADMISSION_RETRIES})")
            continue
        db.refresh(student)
        logger.info(f"Registered student {email} as {number}")
        return student

    raise HTTPException(status_code=409, detail="Could not allocate a unique admission number")

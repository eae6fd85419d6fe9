import logging
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models import (
    Announcement,
    ExamSession,
    Payment,
    PaymentStatus,
    SchoolSettings,
    Student,
    StudentApprovalLog,
    User,
    UserRole,
    utcnow,
)
from . import get_or_404


logger = logging.getLogger(__name__)


def admin_overview(db: Session) -> dict[str, Any]:
    now = utcnow()
    total_students = db.query(func.count(User.id)).filter(User.role == UserRole.STUDENT).scalar() or 0
    total_teachers = db.query(func.count(User.id)).filter(User.role == UserRole.TEACHER).scalar() or 0
    total_revenue = (
        db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(Payment.status == PaymentStatus.APPROVED).scalar()
    )
    pending_payments = db.query(func.count(Payment.id)).filter(Payment.status == PaymentStatus.PENDING).scalar() or 0
    active_exams = (
        db.query(func.count(ExamSession.id))
        .filter(ExamSession.status != "closed", ExamSession.end_time >= now)
        .scalar()
        or 0
    )
    pending_students = db.query(func.count(Student.id)).filter(Student.approved.is_(False)).scalar() or 0
    announcements = db.query(Announcement).order_by(Announcement.created_at.desc()).limit(5).all()

    return {
        "stats": {
            "totalStudents": total_students,
            "totalTeachers": total_teachers,
            "totalRevenue": float(total_revenue or 0),
            "pendingPayments": pending_payments,
            "activeExams": active_exams,
            "systemAlerts": len(announcements),
        },
        "recentAnnouncements": [
            {"id": item.id, "title": item.title, "created_at": item.created_at} for item in announcements
        ],
        "pendingApprovals": pending_students,
    }


def pending_students(db: Session) -> list[dict[str, Any]]:
    rows = db.query(Student).filter(Student.approved.is_(False)).order_by(Student.created_at.desc()).all()
    return [
        {
            "id": student.id,
            "user_id": student.user_id,
            "full_name": student.user.full_name if student.user else None,
            "email": student.user.email if student.user else None,
            "phone": student.user.phone if student.user else None,
            "admission_number": student.admission_number,
            "class": student.school_class.name if student.school_class else None,
            "department": student.department,
            "guardian_name": student.guardian_name,
            "guardian_phone": student.guardian_phone,
            "approved": student.approved,
            "created_at": student.created_at,
        }
        for student in rows
    ]


def set_student_approval(
    db: Session,
    *,
    student_id: str,
    approved: bool,
    note: str | None,
    admin_user_id: str | None,
) -> Student:
    student = get_or_404(db, Student, student_id, "Student")
    student.approved = approved
    if student.user:
        student.user.is_approved = approved
    db.commit()
    db.refresh(student)

    try:
        db.add(
            StudentApprovalLog(
                student_id=student.id,
                admin_user_id=admin_user_id,
                action="approved" if approved else "rejected",
                note=note,
            )
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(f"Could not log approval for student {student_id}: {exc}")
    return student


def get_school_settings(db: Session) -> SchoolSettings | None:
    return db.query(SchoolSettings).first()


def save_school_settings(db: Session, *, changes: dict[str, Any]) -> SchoolSettings:
    record = db.query(SchoolSettings).first()
    if record is None:
        record = SchoolSettings()
        db.add(record)
    for field, value in changes.items():
        if value is not None:
            setattr(record, field, value)
    record.updated_at = utcnow()
    db.commit()
    db.refresh(record)
    return record


def ensure_school_settings(db: Session) -> None:
    if db.query(SchoolSettings.id).first():
        return
    db.add(
        SchoolSettings(
            school_name=settings.school_name,
            school_code=settings.school_code,
            current_session=settings.default_session,
            current_term=settings.default_term,
        )
    )
    db.commit()

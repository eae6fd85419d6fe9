"""Role dashboards: each overview runs a fixed set of independent queries and joins them."""
from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..grading import attendance_rate, result_grade
from ..models import (
    Attendance,
    ExamAttempt,
    ExamSession,
    FeeStructure,
    ParentChild,
    Payment,
    PaymentStatus,
    Result,
    SchoolClass,
    Student,
    Subject,
    TeacherSubject,
    User,
    utcnow,
)
from ..schemas import ClassOut, UserOut


def _class_info(school_class: SchoolClass | None) -> dict[str, Any] | None:
    return ClassOut.model_validate(school_class).model_dump() if school_class else None


def _upcoming_exams(db: Session, class_ids: list[str]) -> list[dict[str, Any]]:
    if not class_ids:
        return []
    sessions = (
        db.query(ExamSession)
        .filter(
            ExamSession.class_id.in_(class_ids),
            ExamSession.start_time > utcnow(),
            ExamSession.status != "closed",
        )
        .order_by(ExamSession.start_time.asc())
        .all()
    )
    return [
        {
            "id": exam.id,
            "title": exam.title,
            "class": exam.school_class.name if exam.school_class else None,
            "subject": exam.subject.name if exam.subject else None,
            "date": exam.start_time,
            "duration": f"{exam.duration_minutes} min",
            "status": exam.status,
        }
        for exam in sessions
    ]


def payment_overview(db: Session, *, user_id: str, class_id: str | None) -> dict[str, Any]:
    history = (
        db.query(Payment)
        .filter(Payment.student_id == user_id)
        .order_by(Payment.paid_at.is_(None), Payment.paid_at.desc(), Payment.created_at.desc())
        .all()
    )
    paid = sum(payment.amount for payment in history if payment.status == PaymentStatus.APPROVED)
    fee = db.get(FeeStructure, class_id) if class_id else None
    total_fees = float(fee.amount) if fee else paid
    balance = max(total_fees - paid, 0.0)
    if balance <= 0:
        status = "Completed"
    elif paid > 0:
        status = "Partial"
    else:
        status = "Outstanding"
    return {
        "totalFees": total_fees,
        "paidAmount": paid,
        "balance": balance,
        "status": status,
        "currency": fee.currency if fee else "NGN",
        "paymentHistory": [
            {"amount": payment.amount, "status": payment.status.value, "receipt": payment.receipt, "paid_at": payment.paid_at}
            for payment in history
        ],
    }


def _subject_grades(db: Session, *, email: str, class_id: str | None) -> list[dict[str, Any]]:
    if not class_id:
        return []
    grades = []
    for subject in db.query(Subject).filter(Subject.class_id == class_id).order_by(Subject.name).all():
        latest = (
            db.query(Result)
            .filter(Result.student_email == email, Result.subject == subject.name)
            .order_by(Result.recorded_at.desc())
            .first()
        )
        grades.append(
            {
                "name": subject.name,
                "score": latest.score if latest else None,
                "grade": (latest.grade or result_grade(latest.score)) if latest else None,
                "term": latest.term if latest else None,
            }
        )
    return grades


def _attendance_summary(db: Session, student_id: str) -> dict[str, Any]:
    statuses = [status for (status,) in db.query(Attendance.status).filter(Attendance.student_id == student_id).all()]
    total, present, rate = attendance_rate(statuses)
    return {"total": total, "present": present, "percentage": rate}


def student_overview(db: Session, *, user: User) -> dict[str, Any]:
    student = db.query(Student).filter(Student.user_id == user.id).first()
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return {
        "student": UserOut.model_validate(user).model_dump(),
        "admissionNumber": student.admission_number,
        "classInfo": _class_info(student.school_class),
        "subjects": _subject_grades(db, email=user.email, class_id=student.class_id),
        "upcomingExams": _upcoming_exams(db, [student.class_id] if student.class_id else []),
        "attendance": _attendance_summary(db, student.id),
        "payment": payment_overview(db, user_id=user.id, class_id=student.class_id),
    }


def teacher_overview(db: Session, *, user: User) -> dict[str, Any]:
    assignments = db.query(TeacherSubject).filter(TeacherSubject.teacher_id == user.id).all()
    subjects = [assignment.subject for assignment in assignments if assignment.subject]
    class_ids = sorted({subject.class_id for subject in subjects if subject.class_id})
    classes = db.query(SchoolClass).filter(SchoolClass.id.in_(class_ids)).order_by(SchoolClass.name).all() if class_ids else []

    awaiting = (
        db.query(ExamAttempt)
        .join(ExamSession, ExamAttempt.exam_session_id == ExamSession.id)
        .filter(ExamSession.teacher_id == user.id, ExamAttempt.status == "submitted", ExamAttempt.graded.is_(False))
        .order_by(ExamAttempt.submitted_at.desc())
        .limit(10)
        .all()
    )
    return {
        "teacher": UserOut.model_validate(user).model_dump(),
        "subjects": [{"id": subject.id, "name": subject.name, "class_id": subject.class_id} for subject in subjects],
        "classes": [ClassOut.model_validate(item).model_dump() for item in classes],
        "upcomingExams": _upcoming_exams(db, class_ids),
        "pendingGrading": [
            {
                "attempt_id": attempt.id,
                "exam": attempt.exam_session.title,
                "student_id": attempt.student_id,
                "submitted_at": attempt.submitted_at,
            }
            for attempt in awaiting
        ],
    }


def parent_overview(db: Session, *, user: User) -> dict[str, Any]:
    link = db.query(ParentChild).filter(ParentChild.parent_id == user.id).first()
    if not link:
        raise HTTPException(status_code=404, detail="No child linked")
    student = db.get(Student, link.student_id)
    if not student or not student.user:
        raise HTTPException(status_code=404, detail="Student not found")

    teachers = []
    if student.class_id:
        rows = (
            db.query(TeacherSubject)
            .join(Subject, TeacherSubject.subject_id == Subject.id)
            .filter(Subject.class_id == student.class_id)
            .all()
        )
        teachers = [
            {"name": row.teacher.full_name, "subject": row.subject.name, "email": row.teacher.email}
            for row in rows
            if row.teacher and row.subject
        ]

    recent_attendance = (
        db.query(Attendance)
        .filter(Attendance.student_id == student.id)
        .order_by(Attendance.attendance_date.desc())
        .limit(5)
        .all()
    )
    return {
        "child": UserOut.model_validate(student.user).model_dump(),
        "admissionNumber": student.admission_number,
        "classInfo": _class_info(student.school_class),
        "teachers": teachers,
        "attendance": _attendance_summary(db, student.id),
        "payment": payment_overview(db, user_id=student.user_id, class_id=student.class_id),
        "activities": [
            {"type": "attendance", "date": row.attendance_date, "status": row.status} for row in recent_attendance
        ],
    }

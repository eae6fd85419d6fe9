import logging
from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..grading import calculate_grade, result_grade
from ..models import Result, SchoolClass, Student, Subject, utcnow
from . import get_or_404


logger = logging.getLogger(__name__)

TEACHER_RESULT_FIELDS = ("student_id", "subject_id", "class_id", "term", "session", "score")


def list_results(db: Session, *, email: str | None = None, limit: int = 100) -> list[Result]:
    query = db.query(Result)
    if email:
        query = query.filter(Result.student_email == email.strip().lower())
    return query.order_by(Result.recorded_at.desc()).limit(limit).all()


def record_result(
    db: Session,
    *,
    student_email: str,
    subject: str,
    score: float,
    term: str,
    grade: str | None = None,
) -> Result:
    result = Result(
        student_email=student_email.strip().lower(),
        subject=subject.strip(),
        score=score,
        grade=grade or result_grade(score),
        term=term,
    )
    db.add(result)
    db.commit()
    db.refresh(result)
    return result


# --- per-subject results entered by teachers --------------------------------


def result_payload(result: Result) -> dict[str, Any]:
    student = result.student
    return {
        "id": result.id,
        "student_id": result.student_id,
        "subject_id": result.subject_id,
        "class_id": result.class_id,
        "teacher_id": result.teacher_id,
        "term": result.term,
        "session": result.session,
        "score": result.score,
        "grade": result.grade,
        "recorded_at": result.recorded_at,
        "student": {
            "full_name": student.user.full_name if student and student.user else None,
            "admission_number": student.admission_number if student else None,
        },
        "subject": {
            "name": result.subject_ref.name if result.subject_ref else result.subject,
            "code": result.subject_ref.code if result.subject_ref else None,
        },
        "class": {"name": result.school_class.name if result.school_class else None},
    }


def list_class_results(
    db: Session,
    *,
    class_id: str | None = None,
    session: str | None = None,
    term: str | None = None,
    student_id: str | None = None,
) -> list[Result]:
    query = db.query(Result).filter(Result.subject_id.isnot(None))
    if class_id:
        query = query.filter(Result.class_id == class_id)
    if session:
        query = query.filter(Result.session == session)
    if term:
        query = query.filter(Result.term == term)
    if student_id:
        query = query.filter(Result.student_id == student_id)
    return query.order_by(Result.recorded_at.desc()).all()


def _upsert_subject_result(db: Session, teacher_id: str, row: dict[str, Any]) -> Result:
    student = get_or_404(db, Student, row["student_id"], "Student")
    subject = get_or_404(db, Subject, row["subject_id"], "Subject")
    get_or_404(db, SchoolClass, row["class_id"], "Class")

    result = (
        db.query(Result)
        .filter(
            Result.student_id == student.id,
            Result.subject_id == subject.id,
            Result.term == row["term"],
            Result.session == row["session"],
        )
        .first()
    )
    if result is None:
        result = Result(student_id=student.id, subject_id=subject.id, term=row["term"], session=row["session"])
        db.add(result)
    result.class_id = row["class_id"]
    result.student_email = student.user.email
    result.subject = subject.name
    result.score = row["score"]
    result.grade = calculate_grade(row["score"])
    result.teacher_id = teacher_id
    result.recorded_at = utcnow()
    # Later rows in the same batch must find this one.
    db.flush()
    return result


def save_subject_results(db: Session, *, teacher_id: str, rows: list[dict[str, Any]]) -> list[Result]:
    """Insert or update one result per student, subject, term and session.

    Grades use the exam scale. Nothing is written if any row names an unknown
    student, subject or class.
    """
    if not rows:
        raise HTTPException(status_code=400, detail="Missing required fields")
    try:
        saved = [_upsert_subject_result(db, teacher_id, row) for row in rows]
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    for result in saved:
        db.refresh(result)
    logger.info(f"Teacher {teacher_id} recorded {len(saved)} result(s)")
    return saved

from datetime import date
from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models import Assignment, SchoolClass, Student, Subject, Submission, User, utcnow
from . import get_or_404


RECENT_ASSIGNMENTS = 20


def assignment_summary(assignment: Assignment) -> dict[str, Any]:
    return {
        "id": assignment.id,
        "title": assignment.title,
        "description": assignment.description,
        "due_date": assignment.due_date,
        "max_score": assignment.max_score,
        "class_id": assignment.class_id,
        "subject_id": assignment.subject_id,
        "classes": {"name": assignment.school_class.name if assignment.school_class else None},
        "subjects": {"name": assignment.subject.name if assignment.subject else None},
    }


def create_assignment(
    db: Session,
    *,
    class_id: str,
    subject_id: str,
    title: str,
    description: str | None = None,
    due_date: date | None = None,
    max_score: int | None = None,
    created_by: str | None = None,
) -> Assignment:
    get_or_404(db, SchoolClass, class_id, "Class")
    get_or_404(db, Subject, subject_id, "Subject")
    assignment = Assignment(
        class_id=class_id,
        subject_id=subject_id,
        title=title.strip(),
        description=description,
        due_date=due_date,
        max_score=max_score or 100,
        created_by=created_by,
    )
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    return assignment


def assignments_by_teacher(db: Session, *, teacher_email: str) -> list[Assignment]:
    teacher = db.query(User).filter(User.email == teacher_email.strip().lower()).first()
    if teacher is None:
        return []
    return (
        db.query(Assignment)
        .filter(Assignment.created_by == teacher.id)
        .order_by(Assignment.created_at.desc())
        .limit(RECENT_ASSIGNMENTS)
        .all()
    )


def assignments_for_class(db: Session, *, class_id: str | None = None, class_name: str | None = None) -> list[Assignment]:
    if not class_id and class_name:
        school_class = db.query(SchoolClass).filter(SchoolClass.name == class_name).first()
        class_id = school_class.id if school_class else None
    if not class_id:
        return []
    return (
        db.query(Assignment)
        .filter(Assignment.class_id == class_id)
        .order_by(Assignment.due_date.is_(None), Assignment.due_date.asc())
        .all()
    )


def list_submissions(db: Session, *, student_id: str) -> list[Submission]:
    return (
        db.query(Submission)
        .filter(Submission.student_id == student_id)
        .order_by(Submission.submitted_at.desc())
        .all()
    )


def submit_assignment(
    db: Session,
    *,
    assignment_id: str,
    student_id: str,
    file_url: str | None = None,
    content: str | None = None,
    status: str | None = None,
) -> Submission:
    """Hand in work for an assignment; handing in again replaces the earlier submission."""
    assignment = get_or_404(db, Assignment, assignment_id, "Assignment")
    student = get_or_404(db, Student, student_id, "Student")
    if student.class_id != assignment.class_id:
        raise HTTPException(status_code=403, detail="Assignment is not for this student's class")

    submission = (
        db.query(Submission)
        .filter(Submission.assignment_id == assignment_id, Submission.student_id == student_id)
        .first()
    )
    if submission is None:
        submission = Submission(assignment_id=assignment_id, student_id=student_id)
        db.add(submission)
    submission.file_url = file_url
    submission.content = content
    submission.status = status or "submitted"
    submission.submitted_at = utcnow()
    db.commit()
    db.refresh(submission)
    return submission

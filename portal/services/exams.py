import logging
from datetime import datetime, timezone

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..grading import AnswerKey, auto_grade, calculate_grade, percentage
from ..models import (
    ExamAttempt,
    ExamQuestion,
    ExamResult,
    ExamSession,
    SchoolClass,
    Student,
    StudentAnswer,
    Subject,
    User,
    utcnow,
)
from . import get_or_404


logger = logging.getLogger(__name__)

DEFAULT_PASSING_MARK = 40


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# --- sessions ---------------------------------------------------------------


def list_exam_sessions(
    db: Session,
    *,
    status: str | None = None,
    class_id: str | None = None,
    student_user_id: str | None = None,
) -> list[ExamSession]:
    query = db.query(ExamSession)
    if status:
        query = query.filter(ExamSession.status == status)
    if class_id:
        query = query.filter(ExamSession.class_id == class_id)
    if student_user_id:
        student = db.query(Student).filter(Student.user_id == student_user_id).first()
        if not student or not student.class_id:
            return []
        query = query.filter(ExamSession.class_id == student.class_id, ExamSession.status == "active")
    return query.order_by(ExamSession.start_time.asc()).all()


def create_exam_session(
    db: Session,
    *,
    title: str,
    class_id: str,
    subject_id: str,
    teacher_id: str,
    start_time: datetime,
    end_time: datetime,
    description: str | None = None,
    term: str | None = None,
    session: str | None = None,
    duration_minutes: int | None = None,
    total_marks: int | None = None,
    passing_mark: int | None = None,
) -> ExamSession:
    start_time, end_time = _naive_utc(start_time), _naive_utc(end_time)
    if end_time <= start_time:
        raise HTTPException(status_code=400, detail="end_time must be after start_time")
    get_or_404(db, SchoolClass, class_id, "Class")
    get_or_404(db, Subject, subject_id, "Subject")
    get_or_404(db, User, teacher_id, "Teacher")

    exam = ExamSession(
        title=title.strip(),
        description=description,
        class_id=class_id,
        subject_id=subject_id,
        teacher_id=teacher_id,
        term=term or settings.default_term,
        session=session or settings.default_session,
        start_time=start_time,
        end_time=end_time,
        duration_minutes=duration_minutes or 60,
        total_marks=total_marks or 100,
        passing_mark=passing_mark or DEFAULT_PASSING_MARK,
        status="draft",
    )
    db.add(exam)
    db.commit()
    db.refresh(exam)
    return exam


def update_exam_session_status(db: Session, *, session_id: str, status: str) -> ExamSession:
    exam = get_or_404(db, ExamSession, session_id, "Exam session")
    exam.status = status
    db.commit()
    db.refresh(exam)
    return exam


# --- questions --------------------------------------------------------------


def list_exam_questions(db: Session, *, exam_session_id: str) -> list[ExamQuestion]:
    return (
        db.query(ExamQuestion)
        .filter(ExamQuestion.exam_session_id == exam_session_id)
        .order_by(ExamQuestion.question_number.asc())
        .all()
    )


def create_exam_question(
    db: Session,
    *,
    exam_session_id: str,
    question_number: int,
    question_text: str,
    correct_answer: str,
    question_type: str | None = None,
    option_a: str | None = None,
    option_b: str | None = None,
    option_c: str | None = None,
    option_d: str | None = None,
    marks: int | None = None,
    explanation: str | None = None,
) -> ExamQuestion:
    get_or_404(db, ExamSession, exam_session_id, "Exam session")
    duplicate = (
        db.query(ExamQuestion.id)
        .filter(ExamQuestion.exam_session_id == exam_session_id, ExamQuestion.question_number == question_number)
        .first()
    )
    if duplicate:
        raise HTTPException(status_code=409, detail=f"Question {question_number} already exists")

    question = ExamQuestion(
        exam_session_id=exam_session_id,
        question_number=question_number,
        question_text=question_text,
        question_type=question_type or "multiple_choice",
        option_a=option_a,
        option_b=option_b,
        option_c=option_c,
        option_d=option_d,
        correct_answer=correct_answer,
        marks=marks or 1,
        explanation=explanation,
    )
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


# --- attempts & answers -----------------------------------------------------


def list_exam_attempts(
    db: Session, *, exam_session_id: str | None = None, student_id: str | None = None
) -> list[ExamAttempt]:
    query = db.query(ExamAttempt)
    if exam_session_id:
        query = query.filter(ExamAttempt.exam_session_id == exam_session_id)
    if student_id:
        query = query.filter(ExamAttempt.student_id == student_id)
    return query.order_by(ExamAttempt.started_at.desc()).all()


def start_exam_attempt(db: Session, *, exam_session_id: str, student_id: str) -> ExamAttempt:
    exam = get_or_404(db, ExamSession, exam_session_id, "Exam session")
    get_or_404(db, Student, student_id, "Student")
    if exam.status == "closed":
        raise HTTPException(status_code=400, detail="Exam session is closed")

    existing = (
        db.query(ExamAttempt.id)
        .filter(ExamAttempt.exam_session_id == exam_session_id, ExamAttempt.student_id == student_id)
        .first()
    )
    if existing:
        raise HTTPException(status_code=400, detail="Student has already attempted this exam")

    attempt = ExamAttempt(
        exam_session_id=exam_session_id,
        student_id=student_id,
        status="in_progress",
        total_marks=exam.total_marks,
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt


def update_exam_attempt(db: Session, *, attempt_id: str, status: str) -> ExamAttempt:
    attempt = get_or_404(db, ExamAttempt, attempt_id, "Attempt")
    if attempt.status == "submitted":
        raise HTTPException(status_code=400, detail="Attempt already submitted")
    attempt.status = status
    if status == "submitted":
        attempt.submitted_at = utcnow()
    db.commit()
    db.refresh(attempt)
    return attempt


def list_student_answers(db: Session, *, attempt_id: str) -> list[StudentAnswer]:
    return (
        db.query(StudentAnswer)
        .filter(StudentAnswer.exam_attempt_id == attempt_id)
        .order_by(StudentAnswer.answered_at.asc())
        .all()
    )


def save_student_answer(
    db: Session,
    *,
    attempt_id: str,
    question_id: str,
    selected_answer: str | None,
    time_spent_seconds: int | None = None,
) -> StudentAnswer:
    attempt = get_or_404(db, ExamAttempt, attempt_id, "Attempt")
    question = get_or_404(db, ExamQuestion, question_id, "Question")
    if question.exam_session_id != attempt.exam_session_id:
        raise HTTPException(status_code=400, detail="Question does not belong to this exam")
    if attempt.status == "submitted":
        raise HTTPException(status_code=400, detail="Attempt already submitted")

    is_correct = selected_answer is not None and selected_answer == question.correct_answer
    answer = (
        db.query(StudentAnswer)
        .filter(StudentAnswer.exam_attempt_id == attempt_id, StudentAnswer.question_id == question_id)
        .first()
    )
    if answer is None:
        answer = StudentAnswer(exam_attempt_id=attempt_id, question_id=question_id)
        db.add(answer)
    answer.selected_answer = selected_answer
    answer.is_correct = is_correct
    answer.marks_obtained = question.marks if is_correct else 0
    answer.time_spent_seconds = time_spent_seconds
    answer.answered_at = utcnow()
    db.commit()
    db.refresh(answer)
    return answer


def grade_exam_attempt(db: Session, *, attempt_id: str) -> ExamAttempt:
    """Re-mark every saved answer against the key and store the attempt score."""
    attempt = get_or_404(db, ExamAttempt, attempt_id, "Attempt")
    answers = {answer.id: answer for answer in attempt.answers}
    graded, total = auto_grade(
        AnswerKey(
            answer_id=answer.id,
            selected=answer.selected_answer,
            correct=answer.question.correct_answer,
            marks=answer.question.marks,
        )
        for answer in answers.values()
    )
    for outcome in graded:
        answers[outcome.answer_id].is_correct = outcome.is_correct
        answers[outcome.answer_id].marks_obtained = outcome.marks_awarded

    available = (
        db.query(func.coalesce(func.sum(ExamQuestion.marks), 0))
        .filter(ExamQuestion.exam_session_id == attempt.exam_session_id)
        .scalar()
    )
    attempt.score = total
    attempt.total_score = total
    attempt.total_marks = int(available) or attempt.exam_session.total_marks
    attempt.auto_graded = True
    attempt.graded = True
    db.commit()
    db.refresh(attempt)
    logger.info(f"Graded attempt {attempt_id}: {total}/{attempt.total_marks}")
    return attempt


# --- results ----------------------------------------------------------------


def list_exam_results(
    db: Session,
    *,
    exam_session_id: str | None = None,
    student_id: str | None = None,
    visible_only: bool = False,
) -> list[ExamResult]:
    query = db.query(ExamResult)
    if exam_session_id:
        query = query.filter(ExamResult.exam_session_id == exam_session_id)
    if student_id:
        query = query.filter(ExamResult.student_id == student_id)
    if visible_only:
        query = query.filter(ExamResult.visible_to_student.is_(True))
    return query.order_by(ExamResult.created_at.desc()).all()


def create_exam_result(db: Session, *, attempt_id: str, exam_session_id: str, student_id: str) -> ExamResult:
    attempt = db.get(ExamAttempt, attempt_id)
    if attempt is None:
        raise HTTPException(status_code=404, detail="Attempt not found")
    if db.query(ExamResult.id).filter(ExamResult.exam_attempt_id == attempt_id).first():
        raise HTTPException(status_code=409, detail="Result already exists for this attempt")

    total_score = attempt.total_score or 0
    total_marks = attempt.total_marks or 100
    score_percentage = percentage(total_score, total_marks)
    exam = db.get(ExamSession, exam_session_id)
    passing_mark = exam.passing_mark if exam else DEFAULT_PASSING_MARK

    result = ExamResult(
        exam_attempt_id=attempt_id,
        exam_session_id=exam_session_id,
        student_id=student_id,
        total_score=total_score,
        total_marks=total_marks,
        percentage=score_percentage,
        grade=calculate_grade(score_percentage),
        passed=score_percentage >= passing_mark,
        visible_to_student=False,
        can_download_pdf=False,
    )
    db.add(result)
    db.commit()
    db.refresh(result)
    return result


def update_exam_result(
    db: Session,
    *,
    result_id: str,
    visible_to_student: bool | None = None,
    can_download_pdf: bool | None = None,
    released_by: str | None = None,
) -> ExamResult:
    result = get_or_404(db, ExamResult, result_id, "Result")
    if visible_to_student is not None:
        result.visible_to_student = visible_to_student
    if can_download_pdf is not None:
        result.can_download_pdf = can_download_pdf
    if released_by:
        result.released_by = released_by
        result.released_at = utcnow()
    db.commit()
    db.refresh(result)
    return result

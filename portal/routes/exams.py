from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..middleware import get_current_user, require_roles
from ..models import ExamAttempt, User, UserRole
from ..schemas import (
    AnswerSubmitRequest,
    AttemptCreateRequest,
    AttemptUpdateRequest,
    ExamAttemptOut,
    ExamQuestionCreateRequest,
    ExamQuestionOut,
    ExamQuestionPublic,
    ExamResultCreateRequest,
    ExamResultOut,
    ExamResultUpdateRequest,
    ExamSessionCreateRequest,
    ExamSessionOut,
    ExamSessionStatusRequest,
    GradeAttemptRequest,
    StudentAnswerOut,
    StudentAnswerPublic,
)
from ..services import get_or_404, student_for_user
from ..services.exams import (
    create_exam_question,
    create_exam_result,
    create_exam_session,
    grade_exam_attempt,
    list_exam_attempts,
    list_exam_questions,
    list_exam_results,
    list_exam_sessions,
    list_student_answers,
    save_student_answer,
    start_exam_attempt,
    update_exam_attempt,
    update_exam_result,
    update_exam_session_status,
)

router = APIRouter(prefix="/api", tags=["Exams"])

require_teacher = require_roles(UserRole.TEACHER)


def _own_attempt(db: Session, user: User, attempt_id: str) -> ExamAttempt:
    attempt = get_or_404(db, ExamAttempt, attempt_id, "Attempt")
    if user.role == UserRole.STUDENT and attempt.student_id != student_for_user(db, user.id).id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return attempt


# --- sessions ---------------------------------------------------------------


@router.get("/exams/sessions")
def sessions_index(
    session_status: str | None = Query(default=None, alias="status"),
    class_id: str | None = Query(default=None, alias="classId"),
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    student_user_id = current_user.id if current_user.role == UserRole.STUDENT else None
    sessions = list_exam_sessions(db, status=session_status, class_id=class_id, student_user_id=student_user_id)
    return {"data": [ExamSessionOut.model_validate(item) for item in sessions]}


@router.post("/exams/sessions", status_code=status.HTTP_201_CREATED)
def sessions_create(
    payload: ExamSessionCreateRequest,
    db: Session = Depends(get_db_session),
    _: User = Depends(require_teacher),
):
    exam = create_exam_session(db, **payload.model_dump())
    return {"data": ExamSessionOut.model_validate(exam)}


@router.patch("/exams/sessions")
def sessions_update_status(
    payload: ExamSessionStatusRequest,
    db: Session = Depends(get_db_session),
    _: User = Depends(require_teacher),
):
    exam = update_exam_session_status(db, session_id=payload.session_id, status=payload.status)
    return {"data": ExamSessionOut.model_validate(exam)}


# --- questions --------------------------------------------------------------


@router.get("/exams/questions")
def questions_index(
    exam_session_id: str | None = Query(default=None, alias="examSessionId"),
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    if not exam_session_id:
        raise HTTPException(status_code=400, detail="examSessionId is required")
    questions = list_exam_questions(db, exam_session_id=exam_session_id)
    schema = ExamQuestionPublic if current_user.role == UserRole.STUDENT else ExamQuestionOut
    return {"data": [schema.model_validate(question) for question in questions]}


@router.post("/exams/questions", status_code=status.HTTP_201_CREATED)
def questions_create(
    payload: ExamQuestionCreateRequest,
    db: Session = Depends(get_db_session),
    _: User = Depends(require_teacher),
):
    question = create_exam_question(db, **payload.model_dump())
    return {"data": ExamQuestionOut.model_validate(question)}


# --- attempts ---------------------------------------------------------------


@router.get("/exams/attempts")
def attempts_index(
    exam_session_id: str | None = Query(default=None, alias="examSessionId"),
    student_id: str | None = Query(default=None, alias="studentId"),
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    if current_user.role == UserRole.STUDENT:
        student_id = student_for_user(db, current_user.id).id
    attempts = list_exam_attempts(db, exam_session_id=exam_session_id, student_id=student_id)
    return {"data": [ExamAttemptOut.model_validate(attempt) for attempt in attempts]}


@router.post("/exams/attempts", status_code=status.HTTP_201_CREATED)
def attempts_create(
    payload: AttemptCreateRequest,
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    student_id = payload.student_id
    if current_user.role == UserRole.STUDENT:
        own_id = student_for_user(db, current_user.id).id
        if student_id != own_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    attempt = start_exam_attempt(db, exam_session_id=payload.exam_session_id, student_id=student_id)
    return {"data": ExamAttemptOut.model_validate(attempt)}


@router.put("/exams/attempts")
def attempts_update(
    payload: AttemptUpdateRequest,
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    _own_attempt(db, current_user, payload.attempt_id)
    attempt = update_exam_attempt(db, attempt_id=payload.attempt_id, status=payload.status)
    return {"data": ExamAttemptOut.model_validate(attempt)}


# --- answers ----------------------------------------------------------------


@router.get("/exams/answers")
def answers_index(
    attempt_id: str | None = Query(default=None, alias="attemptId"),
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    if not attempt_id:
        raise HTTPException(status_code=400, detail="attemptId is required")
    _own_attempt(db, current_user, attempt_id)
    answers = list_student_answers(db, attempt_id=attempt_id)
    schema = StudentAnswerPublic if current_user.role == UserRole.STUDENT else StudentAnswerOut
    return {"data": [schema.model_validate(answer) for answer in answers]}


@router.post("/exams/answers", status_code=status.HTTP_201_CREATED)
def answers_create(
    payload: AnswerSubmitRequest,
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    _own_attempt(db, current_user, payload.attempt_id)
    answer = save_student_answer(db, **payload.model_dump())
    schema = StudentAnswerPublic if current_user.role == UserRole.STUDENT else StudentAnswerOut
    return {"data": schema.model_validate(answer)}


@router.post("/teacher/exams/grade")
def attempts_grade(
    payload: GradeAttemptRequest,
    db: Session = Depends(get_db_session),
    _: User = Depends(require_teacher),
):
    attempt = grade_exam_attempt(db, attempt_id=payload.attempt_id)
    return {"success": True, "score": attempt.total_score, "attempt": ExamAttemptOut.model_validate(attempt)}


# --- results ----------------------------------------------------------------


@router.get("/exams/results")
def results_index(
    exam_session_id: str | None = Query(default=None, alias="examSessionId"),
    student_id: str | None = Query(default=None, alias="studentId"),
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    visible_only = False
    if current_user.role == UserRole.STUDENT:
        student_id = student_for_user(db, current_user.id).id
        visible_only = True
    results = list_exam_results(
        db, exam_session_id=exam_session_id, student_id=student_id, visible_only=visible_only
    )
    return {"data": [ExamResultOut.model_validate(result) for result in results]}


@router.post("/exams/results", status_code=status.HTTP_201_CREATED)
def results_create(
    payload: ExamResultCreateRequest,
    db: Session = Depends(get_db_session),
    _: User = Depends(require_teacher),
):
    result = create_exam_result(db, **payload.model_dump())
    return {"data": ExamResultOut.model_validate(result)}


@router.put("/exams/results")
def results_update(
    payload: ExamResultUpdateRequest,
    db: Session = Depends(get_db_session),
    current_user: User = Depends(require_teacher),
):
    released_by = payload.released_by
    if payload.visible_to_student and not released_by:
        released_by = current_user.id
    result = update_exam_result(
        db,
        result_id=payload.result_id,
        visible_to_student=payload.visible_to_student,
        can_download_pdf=payload.can_download_pdf,
        released_by=released_by,
    )
    return {"data": ExamResultOut.model_validate(result)}

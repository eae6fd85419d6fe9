from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..middleware import get_current_user, require_roles
from ..models import User, UserRole
from ..schemas import ResultCreateRequest, ResultOut, TeacherResultsRequest
from ..services import student_for_user
from ..services.results import (
    TEACHER_RESULT_FIELDS,
    list_class_results,
    list_results,
    record_result,
    result_payload,
    save_subject_results,
)

router = APIRouter(prefix="/api", tags=["Results"])

require_teacher = require_roles(UserRole.TEACHER)


@router.get("/results", response_model=list[ResultOut])
def results_index(
    email: str | None = Query(default=None),
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    if current_user.role == UserRole.STUDENT:
        email = current_user.email
    return list_results(db, email=email)


@router.post("/results", response_model=ResultOut, status_code=status.HTTP_201_CREATED)
def results_create(
    payload: ResultCreateRequest,
    db: Session = Depends(get_db_session),
    _: User = Depends(require_teacher),
):
    return record_result(db, **payload.model_dump())


@router.get("/teacher/results")
def teacher_results_index(
    class_id: str | None = Query(default=None, alias="classId"),
    session: str | None = Query(default=None),
    term: str | None = Query(default=None),
    db: Session = Depends(get_db_session),
    _: User = Depends(require_teacher),
):
    results = list_class_results(db, class_id=class_id, session=session, term=term)
    return [result_payload(result) for result in results]


@router.post("/teacher/results")
def teacher_results_save(
    payload: TeacherResultsRequest,
    db: Session = Depends(get_db_session),
    current_user: User = Depends(require_teacher),
):
    if payload.results:
        rows = [row.model_dump() for row in payload.results]
        message = "Results recorded successfully"
    else:
        single = payload.model_dump(include=set(TEACHER_RESULT_FIELDS))
        if any(value is None or value == "" for value in single.values()):
            raise HTTPException(status_code=400, detail="Missing required fields")
        rows = [single]
        message = "Result recorded successfully"
    saved = save_subject_results(db, teacher_id=current_user.id, rows=rows)
    return {"message": message, "data": [result_payload(result) for result in saved]}


@router.get("/student/results")
def student_results_index(
    session: str | None = Query(default=None),
    term: str | None = Query(default=None),
    db: Session = Depends(get_db_session),
    current_user: User = Depends(require_roles(UserRole.STUDENT)),
):
    student = student_for_user(db, current_user.id)
    results = list_class_results(db, student_id=student.id, session=session, term=term)
    return [result_payload(result) for result in results]

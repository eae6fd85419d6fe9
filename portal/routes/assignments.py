from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..middleware import get_current_user, require_roles
from ..models import User, UserRole
from ..schemas import AssignmentCreateRequest, AssignmentOut, SubmissionCreateRequest, SubmissionOut
from ..services import student_for_user
from ..services.assignments import (
    assignment_summary,
    assignments_by_teacher,
    assignments_for_class,
    create_assignment,
    list_submissions,
    submit_assignment,
)

router = APIRouter(prefix="/api", tags=["Assignments"])


@router.post("/assignments", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def assignments_create(
    payload: AssignmentCreateRequest,
    db: Session = Depends(get_db_session),
    current_user: User = Depends(require_roles(UserRole.TEACHER)),
):
    values = payload.model_dump()
    values["created_by"] = values["created_by"] or current_user.id
    return create_assignment(db, **values)


@router.get("/assignments")
def assignments_index(
    teacher_email: str | None = Query(default=None),
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    assignments = assignments_by_teacher(db, teacher_email=teacher_email or current_user.email)
    return [assignment_summary(assignment) for assignment in assignments]


@router.get("/assignments/by-class")
def assignments_by_class(
    class_id: str | None = Query(default=None),
    class_name: str | None = Query(default=None),
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    if current_user.role == UserRole.STUDENT and not (class_id or class_name):
        class_id = student_for_user(db, current_user.id).class_id
    assignments = assignments_for_class(db, class_id=class_id, class_name=class_name)
    return [assignment_summary(assignment) for assignment in assignments]


@router.get("/submissions")
def submissions_index(
    student_id: str | None = Query(default=None, alias="studentId"),
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    if current_user.role == UserRole.STUDENT:
        student_id = student_for_user(db, current_user.id).id
    if not student_id:
        raise HTTPException(status_code=400, detail="studentId is required")
    submissions = list_submissions(db, student_id=student_id)
    return {"data": [SubmissionOut.model_validate(item) for item in submissions]}


@router.post("/submissions")
def submissions_create(
    payload: SubmissionCreateRequest,
    db: Session = Depends(get_db_session),
    current_user: User = Depends(require_roles(UserRole.STUDENT, UserRole.TEACHER)),
):
    values = payload.model_dump()
    if current_user.role == UserRole.STUDENT:
        values["student_id"] = student_for_user(db, current_user.id).id
    if not values["student_id"]:
        raise HTTPException(status_code=400, detail="assignmentId and studentId required")
    submission = submit_assignment(db, **values)
    return {"data": SubmissionOut.model_validate(submission)}

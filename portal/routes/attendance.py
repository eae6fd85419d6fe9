from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..middleware import require_roles
from ..models import User, UserRole
from ..schemas import AttendanceMarkRequest
from ..services.attendance import attendance_payload, list_attendance, mark_attendance, student_attendance

router = APIRouter(prefix="/api", tags=["Attendance"])


@router.get("/teacher/attendance")
def attendance_index(
    class_id: str | None = Query(default=None, alias="classId"),
    attendance_date: date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db_session),
    _: User = Depends(require_roles(UserRole.TEACHER)),
):
    rows = list_attendance(db, class_id=class_id, attendance_date=attendance_date)
    return {"data": [attendance_payload(row) for row in rows]}


@router.post("/teacher/attendance")
def attendance_mark(
    payload: AttendanceMarkRequest,
    db: Session = Depends(get_db_session),
    current_user: User = Depends(require_roles(UserRole.TEACHER)),
):
    if payload.records:
        records = [record.model_dump() for record in payload.records]
    elif payload.student_id and payload.class_id and payload.date and payload.status:
        records = [
            {
                "student_id": payload.student_id,
                "class_id": payload.class_id,
                "attendance_date": payload.date,
                "status": payload.status,
            }
        ]
    else:
        raise HTTPException(status_code=400, detail="Missing required fields")

    rows = mark_attendance(db, marked_by=current_user.id, records=records)
    return {"message": "Attendance recorded successfully", "data": [attendance_payload(row) for row in rows]}


@router.get("/student/attendance")
def attendance_for_student(
    db: Session = Depends(get_db_session),
    current_user: User = Depends(require_roles(UserRole.STUDENT)),
):
    return student_attendance(db, user_id=current_user.id)

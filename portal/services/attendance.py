from datetime import date
from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..grading import attendance_rate
from ..models import Attendance, SchoolClass, Student
from ..schemas import AttendanceOut


def attendance_payload(row: Attendance) -> dict[str, Any]:
    payload = AttendanceOut.model_validate(row).model_dump()
    student = row.student
    payload["student"] = {
        "full_name": student.user.full_name if student and student.user else None,
        "admission_number": student.admission_number if student else None,
    }
    payload["class"] = {"name": row.school_class.name if row.school_class else None}
    return payload


def list_attendance(db: Session, *, class_id: str | None = None, attendance_date: date | None = None) -> list[Attendance]:
    query = db.query(Attendance)
    if class_id:
        query = query.filter(Attendance.class_id == class_id)
    if attendance_date:
        query = query.filter(Attendance.attendance_date == attendance_date)
    return query.order_by(Attendance.attendance_date.desc()).all()


def mark_attendance(db: Session, *, marked_by: str, records: list[dict[str, Any]]) -> list[Attendance]:
    """Upsert one row per (student, date); re-marking a day overwrites its status."""
    if not records:
        raise HTTPException(status_code=400, detail="Missing required fields")

    saved = []
    for entry in records:
        if db.get(Student, entry["student_id"]) is None:
            raise HTTPException(status_code=404, detail=f"Student {entry['student_id']} not found")
        if db.get(SchoolClass, entry["class_id"]) is None:
            raise HTTPException(status_code=404, detail=f"Class {entry['class_id']} not found")

        row = (
            db.query(Attendance)
            .filter(
                Attendance.student_id == entry["student_id"],
                Attendance.attendance_date == entry["attendance_date"],
            )
            .first()
        )
        if row is None:
            row = Attendance(student_id=entry["student_id"], attendance_date=entry["attendance_date"])
            db.add(row)
        row.class_id = entry["class_id"]
        row.status = entry["status"]
        row.marked_by = marked_by
        db.flush()
        saved.append(row)

    db.commit()
    for row in saved:
        db.refresh(row)
    return saved


def student_attendance(db: Session, *, user_id: str) -> dict[str, Any]:
    student = db.query(Student).filter(Student.user_id == user_id).first()
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")

    rows = (
        db.query(Attendance)
        .filter(Attendance.student_id == student.id)
        .order_by(Attendance.attendance_date.desc())
        .all()
    )
    total, present, rate = attendance_rate(row.status for row in rows)
    return {
        "records": [attendance_payload(row) for row in rows],
        "total": total,
        "present": present,
        "percentage": rate,
    }

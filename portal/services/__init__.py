import re

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models import Student


EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")


def normalize_email(value: str) -> str:
    normalized = (value or "").lower().strip()
    if not EMAIL_PATTERN.match(normalized):
        raise HTTPException(status_code=400, detail="Invalid email format")
    return normalized


def get_or_404(db: Session, model, object_id: str, label: str):
    instance = db.get(model, object_id)
    if instance is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return instance


def student_for_user(db: Session, user_id: str) -> Student:
    student = db.query(Student).filter(Student.user_id == user_id).first()
    if student is None:
        raise HTTPException(status_code=404, detail="Student not found")
    return student

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..middleware import get_current_user
from ..models import User, UserRole
from ..services import normalize_email
from ..services.dashboards import parent_overview, student_overview, teacher_overview

router = APIRouter(prefix="/api", tags=["Dashboards"])


def _dashboard_user(db: Session, current_user: User, role: UserRole, email: str | None) -> User:
    """The caller, or for admins the user named by ``email``."""
    if current_user.role == UserRole.ADMIN and email:
        user = db.query(User).filter(User.email == normalize_email(email)).first()
        if not user or user.role != role:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return user
    if current_user.role != role:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return current_user


@router.get("/student/overview")
def student_dashboard(
    email: str | None = Query(default=None),
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    return student_overview(db, user=_dashboard_user(db, current_user, UserRole.STUDENT, email))


@router.get("/teacher/overview")
def teacher_dashboard(
    email: str | None = Query(default=None),
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    return teacher_overview(db, user=_dashboard_user(db, current_user, UserRole.TEACHER, email))


@router.get("/parent/overview")
def parent_dashboard(
    email: str | None = Query(default=None),
    db: Session = Depends(get_db_session),
    current_user: User = Depends(get_current_user),
):
    return parent_overview(db, user=_dashboard_user(db, current_user, UserRole.PARENT, email))

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..middleware import Principal, require_admin
from ..schemas import SettingsOut, SettingsUpdateRequest, StudentApprovalRequest
from ..services.admin import (
    admin_overview,
    get_school_settings,
    pending_students,
    save_school_settings,
    set_student_approval,
)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/overview")
def overview(db: Session = Depends(get_db_session), _: Principal = Depends(require_admin)):
    return admin_overview(db)


@router.get("/students/pending")
def students_pending(db: Session = Depends(get_db_session), _: Principal = Depends(require_admin)):
    rows = pending_students(db)
    return {"data": rows, "count": len(rows)}


@router.post("/students/approve")
def students_approve(
    payload: StudentApprovalRequest,
    db: Session = Depends(get_db_session),
    principal: Principal = Depends(require_admin),
):
    set_student_approval(
        db,
        student_id=payload.student_id,
        approved=payload.approved,
        note=payload.note,
        admin_user_id=principal.id,
    )
    action = "approved" if payload.approved else "rejected"
    return {"message": f"Student {action} successfully", "studentId": payload.student_id, "approved": payload.approved}


@router.get("/settings")
def settings_show(db: Session = Depends(get_db_session), _: Principal = Depends(require_admin)):
    record = get_school_settings(db)
    return {"settings": SettingsOut.model_validate(record) if record else None}


@router.post("/settings")
def settings_save(
    payload: SettingsUpdateRequest,
    db: Session = Depends(get_db_session),
    _: Principal = Depends(require_admin),
):
    record = save_school_settings(db, changes=payload.model_dump(exclude_unset=True))
    return {"success": True, "settings": SettingsOut.model_validate(record)}

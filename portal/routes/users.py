from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..identity import IdentityClient, get_identity_client
from ..middleware import Principal, require_admin
from ..models import UserRole
from ..schemas import AdminUserCreateRequest, TeacherRegisterRequest, UserOut, UserUpdateRequest
from ..services.users import (
    create_user_as_admin,
    list_users,
    register_teacher,
    teacher_dropdown_data,
    update_user,
)

router = APIRouter(prefix="/api", tags=["Users"])


@router.get("/users", response_model=list[UserOut])
def users_index(db: Session = Depends(get_db_session), _: Principal = Depends(require_admin)):
    return list_users(db)


@router.patch("/users/{user_id}", response_model=UserOut)
def users_update(
    user_id: str,
    payload: UserUpdateRequest,
    db: Session = Depends(get_db_session),
    _: Principal = Depends(require_admin),
):
    return update_user(db, user_id=user_id, role=payload.role, is_approved=payload.is_approved)


@router.get("/admin/users", response_model=list[UserOut])
def admin_users_index(
    role: UserRole | None = Query(default=None),
    db: Session = Depends(get_db_session),
    _: Principal = Depends(require_admin),
):
    return list_users(db, role=role)


@router.post("/admin/users", status_code=status.HTTP_201_CREATED)
def admin_users_create(
    payload: AdminUserCreateRequest,
    db: Session = Depends(get_db_session),
    identity: IdentityClient = Depends(get_identity_client),
    _: Principal = Depends(require_admin),
):
    user = create_user_as_admin(
        db,
        identity,
        email=payload.email,
        full_name=payload.full_name,
        role=payload.role,
        password=payload.password,
        phone=payload.phone,
        class_id=payload.class_id,
        subject_id=payload.subject_id,
    )
    return {"message": "User created successfully", "data": UserOut.model_validate(user)}


@router.post("/teachers/register")
def teachers_register(
    payload: TeacherRegisterRequest,
    db: Session = Depends(get_db_session),
    identity: IdentityClient = Depends(get_identity_client),
    _: Principal = Depends(require_admin),
):
    teacher, links = register_teacher(db, identity, **payload.model_dump())
    return {
        "success": True,
        "message": "Teacher registered successfully!",
        "data": {
            "userId": teacher.id,
            "email": teacher.email,
            "fullName": teacher.full_name,
            "classesAssigned": len(payload.assigned_classes),
            "subjectsAssigned": len(links),
        },
    }


@router.get("/teachers/dropdown-data")
def teachers_dropdown_data(db: Session = Depends(get_db_session), _: Principal = Depends(require_admin)):
    return {"success": True, **teacher_dropdown_data(db)}

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..identity import IdentityClient, IdentityError
from ..models import SchoolClass, Student, Subject, TeacherSubject, User, UserRole
from . import EMAIL_PATTERN, get_or_404, normalize_email


logger = logging.getLogger(__name__)


def list_users(db: Session, *, role: UserRole | None = None) -> list[User]:
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.created_at.desc()).all()


def update_user(db: Session, *, user_id: str, role: UserRole | None, is_approved: bool | None) -> User:
    if role is None and is_approved is None:
        raise HTTPException(status_code=400, detail="No fields to update")
    user = get_or_404(db, User, user_id, "User")
    if role is not None:
        user.role = role
    if is_approved is not None:
        user.is_approved = is_approved
    db.commit()
    db.refresh(user)
    return user


def create_user_as_admin(
    db: Session,
    identity: IdentityClient,
    *,
    email: str,
    full_name: str,
    role: UserRole,
    password: str,
    phone: str | None = None,
    class_id: str | None = None,
    subject_id: str | None = None,
) -> User:
    """Create a confirmed account for staff, students or parents added by an admin."""
    email = normalize_email(email)
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="Email already registered")
    if class_id:
        get_or_404(db, SchoolClass, class_id, "Class")
    if subject_id:
        get_or_404(db, Subject, subject_id, "Subject")

    try:
        identity_user = identity.admin_create_user(email, password, {"full_name": full_name, "role": role.value})
    except IdentityError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    user = User(
        auth_id=identity_user.id or None,
        email=email,
        full_name=full_name.strip(),
        role=role,
        phone=phone,
        is_approved=True,
    )
    if identity_user.id:
        user.id = identity_user.id
    db.add(user)
    db.flush()

    if role == UserRole.STUDENT:
        db.add(Student(user_id=user.id, class_id=class_id, approved=True))
    elif role == UserRole.TEACHER and subject_id:
        db.add(TeacherSubject(teacher_id=user.id, subject_id=subject_id))

    db.commit()
    db.refresh(user)
    logger.info(f"Admin created {role.value} account {email}")
    return user


def register_teacher(
    db: Session,
    identity: IdentityClient,
    *,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    phone: str | None = None,
    qualification: str | None = None,
    assigned_classes: list[str] | None = None,
    assigned_subjects: list[str] | None = None,
) -> tuple[User, list[TeacherSubject]]:
    """Create a teacher account and link it to the subjects taught in the given classes.

    A subject is linked only when it belongs to one of ``assigned_classes``;
    unknown or mismatched pairs are skipped.
    """
    if not first_name.strip():
        raise HTTPException(status_code=400, detail="First name is required")
    if not last_name.strip():
        raise HTTPException(status_code=400, detail="Last name is required")
    if not EMAIL_PATTERN.match(email.strip()):
        raise HTTPException(status_code=400, detail="Valid email is required")
    if len(password) < 6:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters")

    email = normalize_email(email)
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="Email already registered")

    full_name = f"{first_name.strip()} {last_name.strip()}"
    try:
        identity_user = identity.admin_create_user(email, password, {"full_name": full_name, "role": UserRole.TEACHER.value})
    except IdentityError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    teacher = User(
        auth_id=identity_user.id or None,
        email=email,
        full_name=full_name,
        role=UserRole.TEACHER,
        phone=phone,
        qualification=qualification,
        is_approved=True,
    )
    if identity_user.id:
        teacher.id = identity_user.id
    db.add(teacher)
    db.flush()

    links = []
    if assigned_classes and assigned_subjects:
        subjects = (
            db.query(Subject)
            .filter(Subject.id.in_(assigned_subjects), Subject.class_id.in_(assigned_classes))
            .all()
        )
        links = [TeacherSubject(teacher_id=teacher.id, subject_id=subject.id) for subject in subjects]
        db.add_all(links)

    db.commit()
    db.refresh(teacher)
    logger.info(f"Registered teacher {email} with {len(links)} subject link(s)")
    return teacher, links


def teacher_dropdown_data(db: Session) -> dict[str, list[dict[str, str | None]]]:
    classes = db.query(SchoolClass).order_by(SchoolClass.name).all()
    subjects = db.query(Subject).order_by(Subject.name).all()
    return {
        "classes": [{"id": item.id, "name": item.name, "form_level": item.form_level} for item in classes],
        "subjects": [{"id": item.id, "name": item.name, "code": item.code} for item in subjects],
    }

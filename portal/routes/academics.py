from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..middleware import Principal, require_admin
from ..schemas import ClassCreateRequest, ClassOut, SubjectCreateRequest, SubjectOut
from ..services.academics import create_class, create_subject, list_classes, list_subjects, subjects_for_registration

router = APIRouter(prefix="/api", tags=["Classes"])


@router.get("/classes", response_model=list[ClassOut])
def classes_index(db: Session = Depends(get_db_session)):
    return list_classes(db)


@router.post("/classes", response_model=ClassOut, status_code=status.HTTP_201_CREATED)
def classes_create(
    payload: ClassCreateRequest,
    db: Session = Depends(get_db_session),
    _: Principal = Depends(require_admin),
):
    return create_class(db, name=payload.name, level=payload.level, form_level=payload.form_level)


@router.get("/subjects", response_model=list[SubjectOut])
def subjects_index(class_id: str | None = Query(default=None), db: Session = Depends(get_db_session)):
    return list_subjects(db, class_id=class_id)


@router.post("/subjects", response_model=SubjectOut, status_code=status.HTTP_201_CREATED)
def subjects_create(
    payload: SubjectCreateRequest,
    db: Session = Depends(get_db_session),
    _: Principal = Depends(require_admin),
):
    return create_subject(db, **payload.model_dump())


@router.get("/students/subjects")
def registration_subjects(
    class_level: str | None = Query(default=None, alias="classLevel"),
    department: str | None = Query(default=None),
    term: str | None = Query(default=None),
    db: Session = Depends(get_db_session),
):
    subjects = subjects_for_registration(db, class_level=class_level, department=department, term=term)
    return {
        "success": True,
        "subjects": [SubjectOut.model_validate(subject) for subject in subjects],
        "filtered": bool(class_level or department or term),
    }

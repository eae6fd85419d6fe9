from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..admission import CLASS_OPTIONS
from ..models import SchoolClass, Subject
from . import get_or_404


def list_classes(db: Session) -> list[SchoolClass]:
    return db.query(SchoolClass).order_by(SchoolClass.name).all()


def create_class(db: Session, *, name: str, level: str | None = None, form_level: str | None = None) -> SchoolClass:
    name = name.strip()
    if db.query(SchoolClass).filter(SchoolClass.name == name).first():
        raise HTTPException(status_code=409, detail="Class already exists")
    school_class = SchoolClass(name=name, level=level, form_level=form_level)
    db.add(school_class)
    db.commit()
    db.refresh(school_class)
    return school_class


def list_subjects(db: Session, *, class_id: str | None = None) -> list[Subject]:
    query = db.query(Subject)
    if class_id:
        query = query.filter(Subject.class_id == class_id)
    return query.order_by(Subject.name).all()


def create_subject(
    db: Session,
    *,
    class_id: str,
    name: str,
    code: str | None = None,
    class_level: str | None = None,
    department: str | None = None,
    term: str | None = None,
) -> Subject:
    school_class = get_or_404(db, SchoolClass, class_id, "Class")
    subject = Subject(
        class_id=school_class.id,
        name=name.strip(),
        code=code,
        class_level=class_level or school_class.form_level,
        department=department,
        term=term,
    )
    db.add(subject)
    db.commit()
    db.refresh(subject)
    return subject


def subjects_for_registration(
    db: Session,
    *,
    class_level: str | None = None,
    department: str | None = None,
    term: str | None = None,
) -> list[Subject]:
    query = db.query(Subject)
    if class_level:
        query = query.filter(Subject.class_level == class_level)
    if department:
        query = query.filter(Subject.department == department)
    subjects = query.order_by(Subject.name).all()
    if term and subjects:
        termly = [subject for subject in subjects if subject.term == term]
        # Subjects without a term-specific row fall back to the class/department list.
        return termly or subjects
    return subjects


def seed_class_levels(db: Session) -> None:
    existing = {name for (name,) in db.query(SchoolClass.name).all()}
    for form_level in CLASS_OPTIONS:
        if form_level in existing:
            continue
        db.add(SchoolClass(name=form_level, level=form_level[:3], form_level=form_level))
    db.commit()

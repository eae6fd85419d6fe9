"""Admission numbers: ``<SCHOOL>/<YY>/<CLASS><DEPT>/<SEQ>``, e.g. ``ELBA/25/J1S/001``."""
import re
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from .config import settings
from .models import Student


CLASS_OPTIONS = ("JSS1", "JSS2", "JSS3", "SSS1", "SSS2", "SSS3")
DEPARTMENTS = ("Science", "Arts", "Commercial")
TERMS = ("1st Term", "2nd Term", "3rd Term")

DEPT_CODES = {"Science": "S", "Arts": "A", "Commercial": "C"}
CLASS_NAMES = {"J1": "JSS1", "J2": "JSS2", "J3": "JSS3", "S1": "SSS1", "S2": "SSS2", "S3": "SSS3"}

CLASS_CODE_PATTERN = re.compile(r"([A-Z]).*(\d)")
ADMISSION_PATTERN = re.compile(r"^([A-Z]+)/(\d{2})/([A-Z]\d)([A-Z])/(\d{3,})$")

MAX_SEQUENCE_TRIES = 50


@dataclass(frozen=True)
class AdmissionNumber:
    school_code: str
    year: str
    class_code: str
    department_code: str
    sequence: int

    @property
    def base(self) -> str:
        return f"{self.school_code}/{self.year}/{self.class_code}{self.department_code}"

    def __str__(self) -> str:
        return f"{self.base}/{self.sequence:03d}"


def class_code(class_level: str) -> str:
    match = CLASS_CODE_PATTERN.search(class_level or "")
    return match.group(1) + match.group(2) if match else "XX"


def department_code(department: str) -> str:
    return DEPT_CODES.get(department, "X")


def class_name_from_code(code: str) -> str:
    return CLASS_NAMES.get(code, "Unknown")


def department_name_from_code(code: str) -> str:
    return {value: key for key, value in DEPT_CODES.items()}.get(code, "Unknown")


def two_digit_year(today: date | None = None) -> str:
    return f"{(today or date.today()).year % 100:02d}"


def build_admission_number(class_level: str, department: str, sequence: int, today: date | None = None) -> AdmissionNumber:
    return AdmissionNumber(
        school_code=settings.school_code,
        year=two_digit_year(today),
        class_code=class_code(class_level),
        department_code=department_code(department),
        sequence=sequence,
    )


def parse_admission_number(value: str) -> AdmissionNumber | None:
    match = ADMISSION_PATTERN.match((value or "").strip())
    if not match:
        return None
    school, year, klass, dept, seq = match.groups()
    return AdmissionNumber(school_code=school, year=year, class_code=klass, department_code=dept, sequence=int(seq))


def _number_taken(db: Session, value: str) -> bool:
    return db.query(Student.id).filter(Student.admission_number == value).first() is not None


def next_admission_number(db: Session, class_level: str, department: str, today: date | None = None) -> AdmissionNumber:
    """Allocate the next free number for a class/department base.

    Counting and re-checking is not atomic; callers persisting the number
    rely on the unique column and retry on conflict.
    """
    candidate = build_admission_number(class_level, department, 1, today)
    existing = db.query(Student.id).filter(Student.admission_number.like(f"{candidate.base}/%")).count()
    sequence = existing + 1
    for _ in range(MAX_SEQUENCE_TRIES):
        candidate = build_admission_number(class_level, department, sequence, today)
        if not _number_taken(db, str(candidate)):
            return candidate
        sequence += 1
    raise RuntimeError(f"No free admission number under {candidate.base}")

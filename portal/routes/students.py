from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..identity import IdentityClient, get_identity_client
from ..schemas import GenerateAdmissionRequest, StudentRegisterRequest
from ..services.students import admission_details, generate_admission, register_student

router = APIRouter(prefix="/api/students", tags=["Students"])


@router.post("/generate-admission")
def students_generate_admission(payload: GenerateAdmissionRequest, db: Session = Depends(get_db_session)):
    number = generate_admission(db, class_level=payload.class_level, department=payload.department)
    return {"success": True, "admissionNumber": str(number), "details": admission_details(number)}


@router.post("/register", status_code=status.HTTP_201_CREATED)
def students_register(
    payload: StudentRegisterRequest,
    db: Session = Depends(get_db_session),
    identity: IdentityClient = Depends(get_identity_client),
):
    student = register_student(db, identity, **payload.model_dump())
    return {
        "success": True,
        "userId": student.user_id,
        "studentId": student.id,
        "admissionNumber": student.admission_number,
        "message": "Student registered successfully. Awaiting admin approval.",
    }

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db_session
from ..identity import IdentityClient, get_identity_client
from ..middleware import get_current_user
from ..models import User
from ..schemas import AuthResponse, LoginRequest, OtpRequest, OtpVerifyRequest, SignupRequest, UserOut
from ..services.auth import login_user, request_phone_otp, signup_user, verify_phone_otp

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(
    payload: SignupRequest,
    db: Session = Depends(get_db_session),
    identity: IdentityClient = Depends(get_identity_client),
):
    user = signup_user(
        db,
        identity,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        role=payload.role,
        phone=payload.phone,
    )
    return AuthResponse(message="User created successfully", user=UserOut.model_validate(user))


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    db: Session = Depends(get_db_session),
    identity: IdentityClient = Depends(get_identity_client),
):
    user, session = login_user(db, identity, email=payload.email, password=payload.password)
    return AuthResponse(message="Login successful", user=UserOut.model_validate(user), session=session)


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/otp/request")
def otp_request(payload: OtpRequest, db: Session = Depends(get_db_session)):
    provider = request_phone_otp(db, phone=payload.phone)
    return {"ok": True, "provider": provider}


@router.post("/otp/verify")
def otp_verify(payload: OtpVerifyRequest, db: Session = Depends(get_db_session)):
    verify_phone_otp(db, phone=payload.phone, code=payload.code)
    return {"ok": True}

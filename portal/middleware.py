from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db_session
from .identity import IdentityClient, IdentityError, IdentityUser, get_identity_client
from .models import User, UserRole
from .security import AuthError, decode_access_token, parse_bearer_token


ROLE_ACCESS = {
    UserRole.ADMIN: {UserRole.ADMIN, UserRole.TEACHER, UserRole.BURSAR},
    UserRole.BURSAR: {UserRole.BURSAR},
    UserRole.TEACHER: {UserRole.TEACHER},
    UserRole.STUDENT: {UserRole.STUDENT},
    UserRole.PARENT: {UserRole.PARENT},
}


@dataclass
class Principal:
    identity: IdentityUser
    user: User | None

    @property
    def id(self) -> str:
        return self.user.id if self.user else self.identity.id

    @property
    def email(self) -> str:
        return self.user.email if self.user else self.identity.email


def get_identity(
    authorization: str | None = Header(default=None, alias="Authorization"),
    identity: IdentityClient = Depends(get_identity_client),
) -> IdentityUser:
    try:
        token = parse_bearer_token(authorization)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized") from exc

    if settings.supabase_jwt_secret:
        try:
            payload = decode_access_token(token)
        except AuthError as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
        return IdentityUser(
            id=str(payload["sub"]),
            email=(payload.get("email") or "").lower(),
            metadata=payload.get("user_metadata") or {},
        )

    try:
        return identity.get_user(token)
    except IdentityError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized") from exc


def find_portal_user(db: Session, identity_user: IdentityUser) -> User | None:
    conditions = [User.id == identity_user.id, User.auth_id == identity_user.id]
    if identity_user.email:
        conditions.append(User.email == identity_user.email)
    return db.query(User).filter(or_(*conditions)).first()


def get_current_user(
    identity_user: IdentityUser = Depends(get_identity),
    db: Session = Depends(get_db_session),
) -> User:
    user = find_portal_user(db, identity_user)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_roles(*allowed_roles: UserRole) -> Callable:
    def dependency(current_user: User = Depends(get_current_user)) -> User:
        reachable = ROLE_ACCESS.get(current_user.role, {current_user.role})
        if not set(allowed_roles).intersection(reachable):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return current_user

    return dependency


def require_admin(
    identity_user: IdentityUser = Depends(get_identity),
    db: Session = Depends(get_db_session),
) -> Principal:
    user = find_portal_user(db, identity_user)
    main_admin = settings.main_admin_email.lower()
    if main_admin and identity_user.email == main_admin:
        return Principal(identity=identity_user, user=user)
    if not user or user.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return Principal(identity=identity_user, user=user)

from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from firebase_admin import auth as firebase_auth
from sqlalchemy.orm import Session

from goodhours.core.settings import settings
from goodhours.db import get_db
from goodhours.models.user import User, UserRole, SCHOOL_STAFF_ROLES
from goodhours.utils.datetime import utc_now

security = HTTPBearer()

# Development/test tokens; each resolves to a persisted user so FK constraints pass
MOCK_TOKENS = {
    "mock-student-token": ("student-1", "Student One", "student@example.com", UserRole.student),
    "mock-org-token": ("org-admin-1", "Org Admin One", "org-admin@example.com", UserRole.org_admin),
    "mock-school-token": ("school-admin-1", "School Admin One", "school-admin@example.com", UserRole.school_admin),
    "mock-teacher-token": ("teacher-1", "Teacher One", "teacher@example.com", UserRole.teacher),
    "mock-district-token": ("district-admin-1", "District Admin One", "district@example.com", UserRole.district_admin),
}
# "mock-uid:<user id>" impersonates an existing user outside production
MOCK_UID_PREFIX = "mock-uid:"


def _resolve_mock_token(token: str, db: Session):
    if settings.is_production:
        return None
    if token.startswith(MOCK_UID_PREFIX):
        user = db.query(User).filter(User.id == token[len(MOCK_UID_PREFIX):]).first()
        if not user:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown mock user")
        return user
    if token in MOCK_TOKENS:
        uid, name, email, role = MOCK_TOKENS[token]
        user = db.query(User).filter(User.id == uid).first()
        if not user:
            user = User(id=uid, name=name, email=email, role=role, created_at=utc_now())
            db.add(user)
            db.commit()
            db.refresh(user)
        return user
    return None


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    token = credentials.credentials
    user = _resolve_mock_token(token, db)
    if user:
        return user

    try:
        decoded_token = firebase_auth.verify_id_token(token)
        user_id = decoded_token["uid"]
        email = decoded_token["email"]
        full_name = decoded_token.get("name")
        role_from_token = decoded_token.get("role")
    except (ValueError, KeyError, firebase_auth.InvalidIdTokenError, firebase_auth.ExpiredIdTokenError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired Firebase token",
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        # Existing account created before the Firebase UID was known
        user = db.query(User).filter(User.email == email).first()
        if user:
            user.id = user_id
            db.commit()
            return user

    if not user:
        try:
            user_role = UserRole(role_from_token) if role_from_token else UserRole.student
        except ValueError:
            user_role = UserRole.student
        user = User(
            id=user_id,
            email=email,
            name=full_name if full_name else email.split('@')[0].title(),
            role=user_role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)

    return user


def require_student(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.student:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Student access required"
        )
    return user


def require_org_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.org_admin or not user.organization_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organization admin access required"
        )
    return user


def require_school_staff(user: User = Depends(get_current_user)) -> User:
    if user.role not in SCHOOL_STAFF_ROLES or not user.school_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="School staff access required"
        )
    return user


def require_reviewer(user: User = Depends(get_current_user)) -> User:
    """Organization admins and school staff may work the verification queue."""
    if user.role == UserRole.org_admin and user.organization_id:
        return user
    if user.role in SCHOOL_STAFF_ROLES and user.school_id:
        return user
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Reviewer access required"
    )

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.v1.dependencies import get_current_user, get_db, require_roles
from app.core import security
from app.core.config import settings
from app.models.user.user_model import User, UserRole
from app.schemas.common import ok
from app.schemas.user import user_schema
from app.services.enrollment_service import EnrollmentService

router = APIRouter()
logger = logging.getLogger(__name__)


def _enrollment_payload(result: dict) -> dict:
    return user_schema.EnrollmentResult(
        user=user_schema.User.model_validate(result["user"]),
        created=result["created"],
        enrolled_course_ids=result["enrolled_course_ids"],
        ignored_course_ids=result["ignored_course_ids"],
    ).model_dump(mode="json")


@router.post("/login")
def login(
    credentials: user_schema.LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    user = db.scalar(select(User).where(User.email == credentials.email.lower()))
    if user is None or not security.verify_password(credentials.password, user.hashed_password):
        logger.warning("Failed login for %s", credentials.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")

    access_token = security.create_access_token(subject=user.id)
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    token = user_schema.TokenResponse(access_token=access_token, user=user_schema.User.model_validate(user))
    return ok(token.model_dump(mode="json"), "Logged in")


@router.get("/me")
def read_me(current_user: User = Depends(get_current_user)):
    return ok(user_schema.User.model_validate(current_user).model_dump(mode="json"))


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    payload: user_schema.RegisterRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    result = await EnrollmentService(db).register_or_enroll(
        role=payload.role,
        email=payload.email,
        password=payload.password,
        name=payload.name,
        course_ids=payload.course_ids,
    )
    message = "User registered" if result["created"] else "User enrolled"
    return ok(_enrollment_payload(result), message)


@router.post("/register-student", status_code=status.HTTP_201_CREATED)
async def register_student(
    payload: user_schema.StudentRegisterRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
):
    result = await EnrollmentService(db).register_or_enroll(
        role=UserRole.STUDENT,
        email=payload.email,
        password=payload.password,
        name=payload.name,
        course_ids=payload.course_ids,
    )
    message = "Student registered" if result["created"] else "Student enrolled"
    return ok(_enrollment_payload(result), message)

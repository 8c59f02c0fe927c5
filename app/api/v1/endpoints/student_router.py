from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.v1.dependencies import get_db, require_roles
from app.models.user.user_model import User, UserRole
from app.schemas.common import ok
from app.schemas.user import user_schema
from app.services.enrollment_service import EnrollmentService

router = APIRouter()

admins = require_roles(UserRole.ADMIN)


def _page(result: dict) -> dict:
    return user_schema.UserPage(
        items=[user_schema.User.model_validate(u) for u in result["items"]],
        total_count=result["total_count"],
        page=result["page"],
        limit=result["limit"],
        total_pages=result["total_pages"],
    ).model_dump(mode="json")


@router.get("")
def list_students(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    course_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(admins),
):
    return ok(_page(EnrollmentService(db).list_students(page=page, limit=limit, course_id=course_id)))


@router.get("/course/{course_id}")
def list_students_by_course(
    course_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(admins),
):
    return ok(_page(EnrollmentService(db).list_students(page=page, limit=limit, course_id=course_id)))

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.dependencies import get_db, require_roles
from app.models.user.user_model import User, UserRole
from app.schemas.common import ok
from app.schemas.user import user_schema
from app.services.enrollment_service import EnrollmentService

router = APIRouter()

staff = require_roles(UserRole.ADMIN, UserRole.TRAINER)


def _users(users) -> list:
    return [user_schema.User.model_validate(u).model_dump(mode="json") for u in users]


@router.get("")
def list_trainers(db: Session = Depends(get_db), current_user: User = Depends(staff)):
    return ok(_users(EnrollmentService(db).list_trainers()))


# Déclarée avant "/{trainer_id}" pour ne pas être capturée par celle-ci.
@router.get("/count")
def count_trainers(db: Session = Depends(get_db), current_user: User = Depends(staff)):
    return ok({"count": EnrollmentService(db).count_trainers()})


@router.get("/course/{course_id}")
def list_trainers_by_course(course_id: int, db: Session = Depends(get_db), current_user: User = Depends(staff)):
    return ok(_users(EnrollmentService(db).list_trainers(course_id=course_id)))


@router.get("/{trainer_id}")
def get_trainer(trainer_id: int, db: Session = Depends(get_db), current_user: User = Depends(staff)):
    trainer = EnrollmentService(db).get_trainer(trainer_id)
    return ok(user_schema.User.model_validate(trainer).model_dump(mode="json"))

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from app.api.v1.dependencies import (
    ensure_course_access,
    get_current_user,
    get_db,
    get_object_storage,
    require_roles,
    to_file_payload,
)
from app.models.course.course_model import CourseLevel
from app.models.user.user_model import User, UserRole
from app.schemas.common import ok
from app.schemas.course import course_schema
from app.services.content_graph_service import ContentGraphService
from app.services.storage.provider import ObjectStorage

router = APIRouter()


def _course(course) -> dict:
    return course_schema.Course.model_validate(course).model_dump(mode="json")


@router.get("")
def list_courses(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_object_storage),
):
    courses = ContentGraphService(db, storage).list_courses_for(current_user)
    return ok([_course(c) for c in courses])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_course(
    title: str = Form(...),
    description: str = Form(""),
    category: Optional[str] = Form(None),
    level: CourseLevel = Form(CourseLevel.BEGINNER),
    thumbnail: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    storage: ObjectStorage = Depends(get_object_storage),
):
    data = course_schema.CourseCreate(title=title, description=description, category=category, level=level)
    course = ContentGraphService(db, storage).create_course(data, await to_file_payload(thumbnail))
    return ok(_course(course), "Course created")


@router.get("/{course_id}")
def get_course_detail(
    course_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_object_storage),
):
    detail = ContentGraphService(db, storage).get_course_detail(course_id)
    return ok(course_schema.CourseDetail.model_validate(detail, from_attributes=True).model_dump(mode="json"))


@router.put("/{course_id}")
async def update_course(
    course_id: int,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    level: Optional[CourseLevel] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    storage: ObjectStorage = Depends(get_object_storage),
):
    supplied = {
        key: value
        for key, value in {"title": title, "description": description, "category": category, "level": level}.items()
        if value is not None
    }
    data = course_schema.CourseUpdate(**supplied)
    course = ContentGraphService(db, storage).update_course(course_id, data, await to_file_payload(thumbnail))
    return ok(_course(course), "Course updated")


@router.delete("/{course_id}")
def delete_course(
    course_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    storage: ObjectStorage = Depends(get_object_storage),
):
    summary = ContentGraphService(db, storage).delete_course(course_id)
    return ok(summary, "Course deleted")


@router.post("/{course_id}/modules", status_code=status.HTTP_201_CREATED)
def add_module(
    course_id: int,
    payload: course_schema.ModuleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.TRAINER)),
    storage: ObjectStorage = Depends(get_object_storage),
):
    service = ContentGraphService(db, storage)
    service.get_course(course_id)
    ensure_course_access(current_user, course_id)
    module = service.add_module(course_id, payload)
    return ok(course_schema.Module.model_validate(module).model_dump(mode="json"), "Module added")

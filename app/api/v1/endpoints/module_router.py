from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.v1.dependencies import ensure_course_access, get_db, get_object_storage, require_roles
from app.models.user.user_model import User, UserRole
from app.schemas.common import ok
from app.schemas.course import course_schema
from app.services.content_graph_service import ContentGraphService
from app.services.storage.provider import ObjectStorage

router = APIRouter()

editors = require_roles(UserRole.ADMIN, UserRole.TRAINER)


@router.put("/{module_id}")
def update_module(
    module_id: int,
    payload: course_schema.ModuleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(editors),
    storage: ObjectStorage = Depends(get_object_storage),
):
    service = ContentGraphService(db, storage)
    ensure_course_access(current_user, service.course_id_for_module(module_id))
    module = service.update_module(module_id, payload)
    return ok(course_schema.Module.model_validate(module).model_dump(mode="json"), "Module updated")


@router.delete("/{module_id}")
def delete_module(
    module_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(editors),
    storage: ObjectStorage = Depends(get_object_storage),
):
    service = ContentGraphService(db, storage)
    ensure_course_access(current_user, service.course_id_for_module(module_id))
    return ok(service.delete_module(module_id), "Module deleted")


@router.post("/{module_id}/topics", status_code=status.HTTP_201_CREATED)
def add_topic(
    module_id: int,
    payload: course_schema.TopicCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(editors),
    storage: ObjectStorage = Depends(get_object_storage),
):
    service = ContentGraphService(db, storage)
    ensure_course_access(current_user, service.course_id_for_module(module_id))
    topic = service.add_topic(module_id, payload)
    return ok(course_schema.Topic.model_validate(topic).model_dump(mode="json"), "Topic added")

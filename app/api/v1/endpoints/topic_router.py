from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.orm import Session

from app.api.v1.dependencies import (
    ensure_course_access,
    get_current_user,
    get_db,
    get_object_storage,
    require_roles,
    to_file_payload,
)
from app.models.user.user_model import User, UserRole
from app.schemas.common import ok
from app.schemas.course import course_schema
from app.services.content_graph_service import ContentGraphService
from app.services.storage.provider import ObjectStorage

router = APIRouter()

editors = require_roles(UserRole.ADMIN, UserRole.TRAINER)


def _topic(topic) -> dict:
    return course_schema.Topic.model_validate(topic).model_dump(mode="json")


@router.put("/{topic_id}")
def update_topic(
    topic_id: int,
    payload: course_schema.TopicUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(editors),
    storage: ObjectStorage = Depends(get_object_storage),
):
    service = ContentGraphService(db, storage)
    ensure_course_access(current_user, service.course_id_for_topic(topic_id))
    return ok(_topic(service.update_topic(topic_id, payload)), "Topic updated")


@router.delete("/{topic_id}")
def delete_topic(
    topic_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(editors),
    storage: ObjectStorage = Depends(get_object_storage),
):
    service = ContentGraphService(db, storage)
    ensure_course_access(current_user, service.course_id_for_topic(topic_id))
    return ok(service.delete_topic(topic_id), "Topic deleted")


# --- Vidéo ---
@router.post("/{topic_id}/video", status_code=status.HTTP_201_CREATED)
async def upload_video(
    topic_id: int,
    video: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(editors),
    storage: ObjectStorage = Depends(get_object_storage),
):
    service = ContentGraphService(db, storage)
    ensure_course_access(current_user, service.course_id_for_topic(topic_id))
    topic = service.upload_video(topic_id, await to_file_payload(video))
    return ok(topic.video, "Video uploaded")


@router.get("/{topic_id}/video")
def get_video(
    topic_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_object_storage),
):
    video = ContentGraphService(db, storage).get_video(topic_id)
    return ok(video.model_dump(mode="json") if video else None)


@router.delete("/{topic_id}/video")
def delete_video(
    topic_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(editors),
    storage: ObjectStorage = Depends(get_object_storage),
):
    service = ContentGraphService(db, storage)
    ensure_course_access(current_user, service.course_id_for_topic(topic_id))
    service.delete_video(topic_id)
    return ok(None, "Video deleted")

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.dependencies import get_current_user, get_db, get_object_storage
from app.models.user.user_model import User
from app.schemas.common import ok
from app.schemas.progress import progress_schema
from app.services.content_graph_service import ContentGraphService
from app.services.progress_service import ProgressService
from app.services.storage.provider import ObjectStorage

router = APIRouter()


def _service(db: Session, user: User, storage: ObjectStorage) -> ProgressService:
    return ProgressService(db=db, user_id=user.id, graph=ContentGraphService(db, storage))


@router.post("/topics/{topic_id}/complete")
def mark_topic_complete(
    topic_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_object_storage),
):
    record = _service(db, current_user, storage).mark_topic_complete(topic_id)
    return ok(progress_schema.Progress.model_validate(record).model_dump(mode="json"), "Topic marked complete")


@router.get("/progress")
def get_all_progress(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_object_storage),
):
    records = _service(db, current_user, storage).get_all_progress()
    return ok([progress_schema.Progress.model_validate(r).model_dump(mode="json") for r in records])


@router.get("/progress/{course_id}")
def get_course_progress(
    course_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_object_storage),
):
    result = _service(db, current_user, storage).get_course_progress(course_id)
    return ok(progress_schema.CourseProgressResponse.model_validate(result, from_attributes=True).model_dump(mode="json"))

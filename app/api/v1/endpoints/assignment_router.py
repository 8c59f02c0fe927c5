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
from app.models.user.user_model import User, UserRole
from app.schemas.assignment import assignment_schema
from app.schemas.common import ok
from app.services.assignment_service import AssignmentService
from app.services.content_graph_service import ContentGraphService
from app.services.storage.provider import ObjectStorage

router = APIRouter()

editors = require_roles(UserRole.ADMIN, UserRole.TRAINER)


def _submission(submission) -> Optional[dict]:
    if submission is None:
        return None
    return assignment_schema.Submission.model_validate(submission).model_dump(mode="json")


# --- Modèle de devoir (sur le topic) ---
@router.post("/topics/{topic_id}/assignment", status_code=status.HTTP_201_CREATED)
async def upload_assignment_template(
    topic_id: int,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(editors),
    storage: ObjectStorage = Depends(get_object_storage),
):
    ensure_course_access(current_user, ContentGraphService(db, storage).course_id_for_topic(topic_id))
    descriptor = AssignmentService(db, storage).upload_assignment_template(
        topic_id, title=title, description=description, file=await to_file_payload(file)
    )
    return ok(descriptor.model_dump(mode="json"), "Assignment uploaded")


@router.delete("/topics/{topic_id}/assignment")
def delete_assignment_template(
    topic_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(editors),
    storage: ObjectStorage = Depends(get_object_storage),
):
    ensure_course_access(current_user, ContentGraphService(db, storage).course_id_for_topic(topic_id))
    AssignmentService(db, storage).delete_assignment_template(topic_id)
    return ok(None, "Assignment deleted from topic")


# --- Rendus ---
@router.post("/topics/{topic_id}/assignment/submit", status_code=status.HTTP_201_CREATED)
async def submit_assignment(
    topic_id: int,
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.STUDENT)),
    storage: ObjectStorage = Depends(get_object_storage),
):
    submission = AssignmentService(db, storage).submit_assignment(
        topic_id, current_user.id, await to_file_payload(file)
    )
    return ok(_submission(submission), "Assignment submitted")


@router.get("/topics/{topic_id}/assignment/status")
def get_submission_status(
    topic_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_object_storage),
):
    submission = AssignmentService(db, storage).get_submission_status(topic_id, current_user.id)
    return ok(_submission(submission))


@router.post("/submissions/{submission_id}/grade")
def grade_submission(
    submission_id: int,
    payload: assignment_schema.GradeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(editors),
    storage: ObjectStorage = Depends(get_object_storage),
):
    service = AssignmentService(db, storage)
    submission = service.get_submission(submission_id)
    ensure_course_access(current_user, ContentGraphService(db, storage).course_id_for_topic(submission.topic_id))
    graded = service.grade_submission(submission_id, payload.grade, payload.feedback)
    return ok(_submission(graded), "Submission graded")


@router.delete("/submissions/{submission_id}")
def delete_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    storage: ObjectStorage = Depends(get_object_storage),
):
    AssignmentService(db, storage).delete_submission(submission_id)
    return ok(None, "Submission deleted")


# --- Vues composées ---
@router.get("/student/assignments/structured")
def get_structured_assignments(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.STUDENT)),
    storage: ObjectStorage = Depends(get_object_storage),
):
    courses = AssignmentService(db, storage).get_structured_assignments_for_student(current_user.id)
    return ok({"courses": [c.model_dump(mode="json") for c in courses]})


@router.get("/trainer/assignments/overview")
def get_trainer_overview(
    course_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.TRAINER)),
    storage: ObjectStorage = Depends(get_object_storage),
):
    if course_id is not None:
        ensure_course_access(current_user, course_id)
    overview = AssignmentService(db, storage).get_trainer_overview(current_user, course_id)
    return ok(overview.model_dump(mode="json"))


@router.get("/courses/{course_id}/assignments/completion")
def get_assignment_completion(
    course_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: ObjectStorage = Depends(get_object_storage),
):
    ContentGraphService(db, storage).get_course(course_id)
    if current_user.role == UserRole.TRAINER:
        ensure_course_access(current_user, course_id)
    completion = AssignmentService(db, storage).get_assignment_completion(current_user, course_id)
    return ok(completion.model_dump(mode="json", exclude_none=True))

"""Course → Module → Topic hierarchy: ordering rules, composed reads and cascades."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.attributes import flag_modified

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.models.assignment.submission_model import Submission
from app.models.course.course_model import Course
from app.models.course.enrollment_model import course_students, course_trainers
from app.models.course.module_model import Module
from app.models.course.topic_model import Topic
from app.models.progress.progress_model import Progress
from app.models.user.user_model import User, UserRole
from app.schemas.course.course_schema import (
    CourseCreate,
    CourseUpdate,
    ModuleCreate,
    ModuleUpdate,
    TopicCreate,
    TopicUpdate,
    VideoDescriptor,
)
from app.services.cascade import Cascade, commit_or_conflict
from app.services.storage.provider import THUMBNAILS, VIDEOS, FilePayload, ObjectStorage, get_storage

logger = logging.getLogger(__name__)


class ContentGraphService:
    """Maintains the course hierarchy and its ordering and cascade invariants."""

    def __init__(self, db: Session, storage: ObjectStorage | None = None):
        self.db = db
        self.storage = storage or get_storage()

    # ------------------------------------------------------------------
    # Courses
    # ------------------------------------------------------------------
    def list_courses_for(self, user: User) -> List[Course]:
        """Admins see every course, trainers what they teach, students what they follow."""
        stmt = select(Course)
        if user.role == UserRole.STUDENT:
            stmt = stmt.join(course_students, course_students.c.course_id == Course.id).where(
                course_students.c.user_id == user.id
            )
        elif user.role == UserRole.TRAINER:
            stmt = stmt.join(course_trainers, course_trainers.c.course_id == Course.id).where(
                course_trainers.c.user_id == user.id
            )
        stmt = stmt.order_by(Course.created_at.desc(), Course.id.desc())
        return list(self.db.scalars(stmt).all())

    def get_course(self, course_id: int) -> Course:
        course = self.db.get(Course, course_id)
        if course is None:
            raise NotFoundError(f"Course {course_id} not found")
        return course

    def create_course(self, data: CourseCreate, thumbnail: FilePayload | None = None) -> Course:
        if thumbnail is None and settings.REQUIRE_COURSE_THUMBNAIL:
            raise ValidationError("A course thumbnail is required")

        stored = self.storage.store(thumbnail, THUMBNAILS) if thumbnail is not None else None

        course = Course(
            title=data.title,
            description=data.description,
            category=data.category,
            level=data.level,
            thumbnail_url=stored.url if stored else "",
            thumbnail_ref=stored.storage_ref if stored else "",
        )
        self.db.add(course)
        try:
            commit_or_conflict(self.db, f"Course '{data.title}' could not be created")
        except Exception:
            # The row never landed: the asset uploaded above would be orphaned.
            if stored:
                self.storage.release(stored.storage_ref)
            raise
        self.db.refresh(course)
        logger.info("Course %s created (%s)", course.id, course.title)
        return course

    def update_course(
        self, course_id: int, data: CourseUpdate, thumbnail: FilePayload | None = None
    ) -> Course:
        course = self.get_course(course_id)

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field != "category":
                continue
            setattr(course, field, value)

        if thumbnail is not None:
            stored = self.storage.store(thumbnail, THUMBNAILS)
            self.storage.release(course.thumbnail_ref)
            course.thumbnail_url = stored.url
            course.thumbnail_ref = stored.storage_ref

        commit_or_conflict(self.db, f"Course {course_id} could not be updated")
        self.db.refresh(course)
        return course

    def delete_course(self, course_id: int) -> Dict[str, int]:
        """Remove the course and everything under it, step by step.

        Returns the number of rows or assets touched per step.
        """
        course = self.get_course(course_id)
        thumbnail_ref = course.thumbnail_ref
        topic_ids = self._topic_ids_for_course(course_id)
        module_ids = self._module_ids_for_course(course_id)

        cascade = Cascade(self.db, f"delete_course({course_id})")
        cascade.step("release_submission_files", lambda: self._release_submission_files(topic_ids))
        cascade.step("delete_submissions", lambda: self._delete_submissions(topic_ids))
        cascade.step("release_topic_assets", lambda: self._release_topic_assets(topic_ids))
        cascade.step("delete_topics", lambda: self._delete_rows(Topic, Topic.id.in_(topic_ids)))
        cascade.step("delete_modules", lambda: self._delete_rows(Module, Module.id.in_(module_ids)))
        cascade.step("delete_progress", lambda: self._delete_rows(Progress, Progress.course_id == course_id))
        cascade.step("release_thumbnail", lambda: self._release([thumbnail_ref]))
        cascade.step("delete_course", lambda: self._delete_rows(Course, Course.id == course_id))
        cascade.step("unlink_students", lambda: self._unlink(course_students, course_id))
        cascade.step("unlink_trainers", lambda: self._unlink(course_trainers, course_id))
        return cascade.summary()

    def get_course_detail(self, course_id: int) -> Dict[str, Any]:
        """Course with its modules and their topics, both levels ascending by ``order``."""
        course = self.get_course(course_id)
        modules = self.db.scalars(
            select(Module)
            .where(Module.course_id == course_id)
            .options(selectinload(Module.topics))
            .order_by(Module.order.asc(), Module.id.asc())
        ).all()
        return {"course": course, "modules": list(modules)}

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------
    def get_module(self, module_id: int) -> Module:
        module = self.db.get(Module, module_id)
        if module is None:
            raise NotFoundError(f"Module {module_id} not found")
        return module

    def add_module(self, course_id: int, data: ModuleCreate) -> Module:
        self.get_course(course_id)
        module = Module(course_id=course_id, title=data.title, order=data.order)
        self.db.add(module)
        commit_or_conflict(self.db, f"Order {data.order} is already used in course {course_id}")
        self.db.refresh(module)
        return module

    def update_module(self, module_id: int, data: ModuleUpdate) -> Module:
        module = self.get_module(module_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        for field, value in changes.items():
            setattr(module, field, value)
        commit_or_conflict(
            self.db, f"Order {module.order} is already used in course {module.course_id}"
        )
        self.db.refresh(module)
        return module

    def delete_module(self, module_id: int) -> Dict[str, int]:
        module = self.get_module(module_id)
        course_id = module.course_id
        topic_ids = list(self.db.scalars(select(Topic.id).where(Topic.module_id == module_id)))

        cascade = Cascade(self.db, f"delete_module({module_id})")
        self._purge_topics(cascade, course_id, topic_ids)
        cascade.step("delete_module", lambda: self._delete_rows(Module, Module.id == module_id))
        return cascade.summary()

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------
    def get_topic(self, topic_id: int) -> Topic:
        topic = self.db.get(Topic, topic_id)
        if topic is None:
            raise NotFoundError(f"Topic {topic_id} not found")
        return topic

    def add_topic(self, module_id: int, data: TopicCreate) -> Topic:
        self.get_module(module_id)
        topic = Topic(module_id=module_id, title=data.title, content=data.content, order=data.order)
        self.db.add(topic)
        commit_or_conflict(self.db, f"Order {data.order} is already used in module {module_id}")
        self.db.refresh(topic)
        return topic

    def update_topic(self, topic_id: int, data: TopicUpdate) -> Topic:
        topic = self.get_topic(topic_id)
        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if field in {"title", "order"} and value is None:
                continue
            setattr(topic, field, value)
        commit_or_conflict(
            self.db, f"Order {topic.order} is already used in module {topic.module_id}"
        )
        self.db.refresh(topic)
        return topic

    def delete_topic(self, topic_id: int) -> Dict[str, int]:
        course_id = self.course_id_for_topic(topic_id)
        cascade = Cascade(self.db, f"delete_topic({topic_id})")
        self._purge_topics(cascade, course_id, [topic_id])
        return cascade.summary()

    # ------------------------------------------------------------------
    # Video (value object embedded in the topic)
    # ------------------------------------------------------------------
    def upload_video(self, topic_id: int, file: FilePayload | None) -> Topic:
        if file is None:
            raise ValidationError("A video file is required")
        topic = self.get_topic(topic_id)

        stored = self.storage.store(file, VIDEOS)
        if topic.video:
            self.storage.release(topic.video.get("storage_ref"))

        topic.video = VideoDescriptor(
            url=stored.url,
            storage_ref=stored.storage_ref,
            format=stored.format,
            bytes=stored.bytes,
            original_name=stored.original_name,
        ).model_dump()
        flag_modified(topic, "video")
        self.db.commit()
        self.db.refresh(topic)
        return topic

    def get_video(self, topic_id: int) -> Optional[VideoDescriptor]:
        topic = self.get_topic(topic_id)
        return VideoDescriptor.model_validate(topic.video) if topic.video else None

    def delete_video(self, topic_id: int) -> Topic:
        topic = self.get_topic(topic_id)
        if not topic.video:
            raise ValidationError(f"Topic {topic_id} has no video")
        self.storage.release(topic.video.get("storage_ref"))
        topic.video = None
        self.db.commit()
        self.db.refresh(topic)
        return topic

    # ------------------------------------------------------------------
    # Ownership lookups for access checks
    # ------------------------------------------------------------------
    def course_id_for_module(self, module_id: int) -> int:
        course_id = self.db.scalar(select(Module.course_id).where(Module.id == module_id))
        if course_id is None:
            raise NotFoundError(f"Module {module_id} not found")
        return course_id

    def course_id_for_topic(self, topic_id: int) -> int:
        course_id = self.db.scalar(
            select(Module.course_id).join(Topic, Topic.module_id == Module.id).where(Topic.id == topic_id)
        )
        if course_id is None:
            raise NotFoundError(f"Topic {topic_id} or its module not found")
        return course_id

    def count_topics(self, course_id: int) -> int:
        return len(self._topic_ids_for_course(course_id))

    # ------------------------------------------------------------------
    # Cascade steps
    # ------------------------------------------------------------------
    def _purge_topics(self, cascade: Cascade, course_id: int, topic_ids: List[int]) -> None:
        cascade.step("release_submission_files", lambda: self._release_submission_files(topic_ids))
        cascade.step("delete_submissions", lambda: self._delete_submissions(topic_ids))
        cascade.step("release_topic_assets", lambda: self._release_topic_assets(topic_ids))
        cascade.step("prune_progress", lambda: self._prune_progress(course_id, topic_ids))
        cascade.step("delete_topics", lambda: self._delete_rows(Topic, Topic.id.in_(topic_ids)))

    def _module_ids_for_course(self, course_id: int) -> List[int]:
        return list(self.db.scalars(select(Module.id).where(Module.course_id == course_id)))

    def _topic_ids_for_course(self, course_id: int) -> List[int]:
        return list(
            self.db.scalars(
                select(Topic.id).join(Module, Topic.module_id == Module.id).where(Module.course_id == course_id)
            )
        )

    def _release(self, refs: Iterable[Optional[str]]) -> int:
        released = 0
        for ref in refs:
            if ref:
                self.storage.release(ref)
                released += 1
        return released

    def _release_submission_files(self, topic_ids: List[int]) -> int:
        if not topic_ids:
            return 0
        refs = self.db.scalars(select(Submission.storage_ref).where(Submission.topic_id.in_(topic_ids)))
        return self._release(list(refs))

    def _release_topic_assets(self, topic_ids: List[int]) -> int:
        if not topic_ids:
            return 0
        refs: List[Optional[str]] = []
        for video, assignment in self.db.execute(
            select(Topic.video, Topic.assignment).where(Topic.id.in_(topic_ids))
        ):
            refs.append((video or {}).get("storage_ref"))
            refs.append((assignment or {}).get("storage_ref"))
        return self._release(refs)

    def _delete_submissions(self, topic_ids: List[int]) -> int:
        if not topic_ids:
            return 0
        return self._delete_rows(Submission, Submission.topic_id.in_(topic_ids))

    def _prune_progress(self, course_id: int, topic_ids: List[int]) -> int:
        removed = set(topic_ids)
        if not removed:
            return 0
        touched = 0
        for record in self.db.scalars(select(Progress).where(Progress.course_id == course_id)):
            kept = [tid for tid in (record.completed_topic_ids or []) if tid not in removed]
            if len(kept) != len(record.completed_topic_ids or []):
                record.completed_topic_ids = kept
                flag_modified(record, "completed_topic_ids")
                touched += 1
        return touched

    def _delete_rows(self, model, criterion) -> int:
        result = self.db.execute(delete(model).where(criterion))
        return result.rowcount or 0

    def _unlink(self, table, course_id: int) -> int:
        result = self.db.execute(delete(table).where(table.c.course_id == course_id))
        return result.rowcount or 0

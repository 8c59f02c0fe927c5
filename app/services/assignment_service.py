from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.models.assignment.submission_model import Submission, SubmissionStatus
from app.models.course.course_model import Course
from app.models.course.enrollment_model import course_students, course_trainers
from app.models.course.module_model import Module
from app.models.course.topic_model import Topic
from app.models.user.user_model import User, UserRole
from app.schemas.assignment.assignment_schema import (
    AssignmentCompletion,
    CourseRef,
    StructuredAssignment,
    StructuredCourse,
    StructuredModule,
    StructuredTopic,
    StudentAssignments,
    StudentCompletion,
    SubmissionSummary,
    TopicAssignmentCell,
    TopicRef,
    TrainerOverview,
)
from app.schemas.course.course_schema import AssignmentDescriptor, Thumbnail
from app.services.cascade import commit_or_conflict
from app.services.progress_service import completion_percentage
from app.services.storage.provider import ASSIGNMENTS, SUBMISSIONS, FilePayload, ObjectStorage, get_storage

logger = logging.getLogger(__name__)


def _summary(submission: Submission) -> SubmissionSummary:
    return SubmissionSummary(
        status=submission.status.value,
        file_url=submission.file_url,
        grade=submission.grade,
        feedback=submission.feedback,
        submitted_at=submission.submitted_at,
    )


class AssignmentService:
    """Assignment templates on topics and the submit → grade lifecycle."""

    def __init__(self, db: Session, storage: ObjectStorage | None = None):
        self.db = db
        self.storage = storage or get_storage()

    # ------------------------------------------------------------------
    # Templates (value object on the topic)
    # ------------------------------------------------------------------
    def upload_assignment_template(
        self,
        topic_id: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
        file: FilePayload | None = None,
    ) -> AssignmentDescriptor:
        """Replace the topic's assignment.

        Without a file the previous one is released and the reference cleared,
        while title and description are still written.
        """
        topic = self._get_topic(topic_id)
        previous_ref = (topic.assignment or {}).get("storage_ref")

        stored = self.storage.store(file, ASSIGNMENTS) if file is not None else None
        self.storage.release(previous_ref)

        descriptor = AssignmentDescriptor(
            title=title or "Assignment",
            description=description or "",
            file_url=stored.url if stored else "",
            storage_ref=stored.storage_ref if stored else "",
            original_name=stored.original_name if stored else None,
        )
        topic.assignment = descriptor.model_dump()
        flag_modified(topic, "assignment")
        self.db.commit()
        return descriptor

    def delete_assignment_template(self, topic_id: int) -> None:
        topic = self._get_topic(topic_id)
        self.storage.release((topic.assignment or {}).get("storage_ref"))
        topic.assignment = None
        self.db.commit()

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------
    def submit_assignment(self, topic_id: int, student_id: int, file: FilePayload | None) -> Submission:
        """Upsert the (topic, student) submission with a freshly stored file."""
        if file is None:
            raise ValidationError("A submission file is required")
        self._get_topic(topic_id)

        stored = self.storage.store(file, f"{SUBMISSIONS}/{student_id}")
        submission = self.get_submission_status(topic_id, student_id)
        if submission is None:
            submission = Submission(topic_id=topic_id, student_id=student_id)
            self.db.add(submission)
        else:
            self.storage.release(submission.storage_ref)
            if settings.CLEAR_GRADE_ON_RESUBMIT:
                submission.grade = None
                submission.feedback = None
                submission.graded_at = None

        submission.file_url = stored.url
        submission.storage_ref = stored.storage_ref
        submission.original_name = stored.original_name
        submission.status = SubmissionStatus.SUBMITTED
        submission.submitted_at = datetime.now(timezone.utc)

        try:
            commit_or_conflict(
                self.db, f"A submission for topic {topic_id} by student {student_id} already exists"
            )
        except Exception:
            self.storage.release(stored.storage_ref)
            raise
        self.db.refresh(submission)
        logger.info("Submission %s stored for topic %s / student %s", submission.id, topic_id, student_id)
        return submission

    def get_submission(self, submission_id: int) -> Submission:
        submission = self.db.get(Submission, submission_id)
        if submission is None:
            raise NotFoundError(f"Submission {submission_id} not found")
        return submission

    def get_submission_status(self, topic_id: int, student_id: int) -> Optional[Submission]:
        return self.db.scalar(
            select(Submission).where(Submission.topic_id == topic_id, Submission.student_id == student_id)
        )

    def grade_submission(self, submission_id: int, grade: int, feedback: Optional[str] = None) -> Submission:
        if grade is None or not 0 <= grade <= 100:
            raise ValidationError("Grade must be between 0 and 100")
        submission = self.get_submission(submission_id)
        submission.grade = grade
        submission.feedback = feedback or ""
        submission.status = SubmissionStatus.GRADED
        submission.graded_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(submission)
        return submission

    def delete_submission(self, submission_id: int) -> None:
        submission = self.get_submission(submission_id)
        self.storage.release(submission.storage_ref)
        self.db.delete(submission)
        self.db.commit()

    # ------------------------------------------------------------------
    # Composed reads
    # ------------------------------------------------------------------
    def get_structured_assignments_for_student(self, student_id: int) -> List[StructuredCourse]:
        """Every enrolled course, its modules and topics, with the student's status per assignment."""
        courses = self.db.scalars(
            select(Course)
            .join(course_students, course_students.c.course_id == Course.id)
            .where(course_students.c.user_id == student_id)
            .order_by(Course.id.asc())
        ).all()
        if not courses:
            return []

        modules_by_course: Dict[int, List[Module]] = defaultdict(list)
        for module in self.db.scalars(
            select(Module)
            .where(Module.course_id.in_([c.id for c in courses]))
            .order_by(Module.order.asc(), Module.id.asc())
        ):
            modules_by_course[module.course_id].append(module)

        module_ids = [m.id for mods in modules_by_course.values() for m in mods]
        topics_by_module: Dict[int, List[Topic]] = defaultdict(list)
        for topic in self._topics_in(module_ids):
            topics_by_module[topic.module_id].append(topic)

        own = {
            s.topic_id: s
            for s in self.db.scalars(select(Submission).where(Submission.student_id == student_id))
        }

        result: List[StructuredCourse] = []
        for course in courses:
            modules = []
            for module in modules_by_course[course.id]:
                topics = []
                for topic in topics_by_module[module.id]:
                    assignment = None
                    if topic.assignment:
                        submission = own.get(topic.id)
                        assignment = StructuredAssignment(
                            **AssignmentDescriptor.model_validate(topic.assignment).model_dump(),
                            student_submission=_summary(submission) if submission else SubmissionSummary.not_submitted(),
                        )
                    topics.append(
                        StructuredTopic(id=topic.id, title=topic.title, order=topic.order, assignment=assignment)
                    )
                modules.append(StructuredModule(id=module.id, title=module.title, order=module.order, topics=topics))
            result.append(
                StructuredCourse(
                    id=course.id,
                    title=course.title,
                    description=course.description,
                    thumbnail=Thumbnail(**course.thumbnail),
                    modules=modules,
                )
            )
        return result

    def get_trainer_overview(self, trainer: User, course_id: Optional[int] = None) -> TrainerOverview:
        taught = self.db.scalars(
            select(Course)
            .join(course_trainers, course_trainers.c.course_id == Course.id)
            .where(course_trainers.c.user_id == trainer.id)
            .order_by(Course.id.asc())
        ).all()
        courses = [CourseRef(id=c.id, title=c.title) for c in taught]

        selected = course_id if course_id is not None else (taught[0].id if taught else None)
        if selected is None:
            return TrainerOverview(courses=courses)

        students = self._enrolled_students(selected)
        topics = self._topics_of_course(selected)
        submissions = {
            (s.student_id, s.topic_id): s
            for s in self.db.scalars(
                select(Submission).where(
                    Submission.topic_id.in_([t.id for t in topics]),
                    Submission.student_id.in_([s.id for s in students]),
                )
            )
        }

        rows = []
        for student in students:
            cells = []
            for topic in topics:
                submission = submissions.get((student.id, topic.id))
                cells.append(
                    TopicAssignmentCell(
                        topic_id=topic.id,
                        topic_title=topic.title,
                        assignment=topic.assignment,
                        submission=_summary(submission) if submission else None,
                    )
                )
            rows.append(StudentAssignments(id=student.id, name=student.name, email=student.email, assignments=cells))

        return TrainerOverview(
            courses=courses,
            selected_course_id=selected,
            students=rows,
            topics=[TopicRef(id=t.id, title=t.title, assignment=t.assignment) for t in topics],
        )

    def get_assignment_completion(self, user: User, course_id: int) -> AssignmentCompletion:
        assignment_topic_ids = [t.id for t in self._topics_of_course(course_id) if t.assignment]
        total = len(assignment_topic_ids)
        if total == 0:
            return AssignmentCompletion(
                course_id=course_id, total_assignments=0, message="No assignments in this course"
            )

        if user.role == UserRole.STUDENT:
            submitted = self.db.scalar(
                select(func.count(Submission.id)).where(
                    Submission.topic_id.in_(assignment_topic_ids), Submission.student_id == user.id
                )
            ) or 0
            return AssignmentCompletion(
                course_id=course_id,
                total_assignments=total,
                student=StudentCompletion(
                    id=user.id,
                    name=user.name,
                    submitted=submitted,
                    total_assignments=total,
                    completion_rate=completion_percentage(submitted, total),
                ),
            )

        students = self._enrolled_students(course_id)
        counts = dict(
            self.db.execute(
                select(Submission.student_id, func.count(Submission.id))
                .where(
                    Submission.topic_id.in_(assignment_topic_ids),
                    Submission.student_id.in_([s.id for s in students]),
                )
                .group_by(Submission.student_id)
            ).all()
        )
        stats = [
            StudentCompletion(
                id=s.id,
                name=s.name,
                submitted=counts.get(s.id, 0),
                total_assignments=total,
                completion_rate=completion_percentage(counts.get(s.id, 0), total),
            )
            for s in students
        ]
        return AssignmentCompletion(
            course_id=course_id,
            total_assignments=total,
            total_students=len(students),
            overall_completion_rate=completion_percentage(sum(counts.values()), total * len(students)),
            students=stats,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _get_topic(self, topic_id: int) -> Topic:
        topic = self.db.get(Topic, topic_id)
        if topic is None:
            raise NotFoundError(f"Topic {topic_id} not found")
        return topic

    def _topics_in(self, module_ids: List[int]) -> List[Topic]:
        if not module_ids:
            return []
        return list(
            self.db.scalars(
                select(Topic).where(Topic.module_id.in_(module_ids)).order_by(Topic.order.asc(), Topic.id.asc())
            )
        )

    def _topics_of_course(self, course_id: int) -> List[Topic]:
        return list(
            self.db.scalars(
                select(Topic)
                .join(Module, Topic.module_id == Module.id)
                .where(Module.course_id == course_id)
                .order_by(Module.order.asc(), Topic.order.asc(), Topic.id.asc())
            )
        )

    def _enrolled_students(self, course_id: int) -> List[User]:
        return list(
            self.db.scalars(
                select(User)
                .join(course_students, course_students.c.user_id == User.id)
                .where(course_students.c.course_id == course_id, User.role == UserRole.STUDENT)
                .order_by(User.name.asc(), User.id.asc())
            )
        )

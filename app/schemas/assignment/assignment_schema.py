from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.assignment.submission_model import SubmissionStatus
from app.schemas.course.course_schema import AssignmentDescriptor, Thumbnail

NOT_SUBMITTED = "Not Submitted"


class Submission(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    topic_id: int
    student_id: int
    file_url: str
    original_name: Optional[str] = None
    status: SubmissionStatus
    grade: Optional[int] = None
    feedback: Optional[str] = None
    submitted_at: datetime
    graded_at: Optional[datetime] = None


class GradeRequest(BaseModel):
    grade: int = Field(..., ge=0, le=100)
    feedback: Optional[str] = None


class SubmissionSummary(BaseModel):
    """What a student (or trainer) sees of one submission; ``status`` may be ``Not Submitted``."""

    status: str
    file_url: Optional[str] = None
    grade: Optional[int] = None
    feedback: Optional[str] = None
    submitted_at: Optional[datetime] = None

    @classmethod
    def not_submitted(cls) -> "SubmissionSummary":
        return cls(status=NOT_SUBMITTED)


# --- Vue structurée côté étudiant ---
class StructuredAssignment(AssignmentDescriptor):
    student_submission: SubmissionSummary


class StructuredTopic(BaseModel):
    id: int
    title: str
    order: int
    assignment: Optional[StructuredAssignment] = None


class StructuredModule(BaseModel):
    id: int
    title: str
    order: int
    topics: List[StructuredTopic]


class StructuredCourse(BaseModel):
    id: int
    title: str
    description: str
    thumbnail: Thumbnail
    modules: List[StructuredModule]


# --- Vue formateur ---
class TopicAssignmentCell(BaseModel):
    topic_id: int
    topic_title: str
    assignment: Optional[AssignmentDescriptor] = None
    submission: Optional[SubmissionSummary] = None


class StudentAssignments(BaseModel):
    id: int
    name: str
    email: str
    assignments: List[TopicAssignmentCell]


class CourseRef(BaseModel):
    id: int
    title: str


class TopicRef(BaseModel):
    id: int
    title: str
    assignment: Optional[AssignmentDescriptor] = None


class TrainerOverview(BaseModel):
    courses: List[CourseRef]
    selected_course_id: Optional[int] = None
    students: List[StudentAssignments] = []
    topics: List[TopicRef] = []


# --- Taux de rendu ---
class StudentCompletion(BaseModel):
    id: int
    name: str
    submitted: int
    total_assignments: int
    completion_rate: int


class AssignmentCompletion(BaseModel):
    course_id: int
    total_assignments: int
    message: Optional[str] = None
    student: Optional[StudentCompletion] = None
    total_students: Optional[int] = None
    overall_completion_rate: Optional[int] = None
    students: Optional[List[StudentCompletion]] = None

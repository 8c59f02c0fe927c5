from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.course.course_model import CourseLevel
from app.schemas.user.user_schema import UserSummary


class Thumbnail(BaseModel):
    url: str = ""
    storage_ref: str = ""


class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    category: Optional[str] = None
    level: CourseLevel = CourseLevel.BEGINNER


class CourseUpdate(BaseModel):
    """Partial update: only the fields explicitly sent are applied."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    level: Optional[CourseLevel] = None


class Course(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    category: Optional[str] = None
    level: CourseLevel
    thumbnail: Thumbnail
    trainers: List[UserSummary] = []
    enrolled_student_ids: List[int] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Modules ---
class ModuleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    order: int = 0


class ModuleUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    order: Optional[int] = None


class Module(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    title: str
    order: int


# --- Topics et objets embarqués ---
class VideoDescriptor(BaseModel):
    url: str
    storage_ref: str = ""
    format: Optional[str] = None
    duration: Optional[float] = None
    bytes: Optional[int] = None
    original_name: Optional[str] = None


class AssignmentDescriptor(BaseModel):
    title: str = "Assignment"
    description: str = ""
    file_url: str = ""
    storage_ref: str = ""
    original_name: Optional[str] = None


class TopicCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: Optional[str] = None
    order: int = 0


class TopicUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    content: Optional[str] = None
    order: Optional[int] = None


class Topic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    module_id: int
    title: str
    content: Optional[str] = None
    order: int
    video: Optional[VideoDescriptor] = None
    assignment: Optional[AssignmentDescriptor] = None


class ModuleDetail(Module):
    topics: List[Topic] = []


class CourseDetail(BaseModel):
    course: Course
    modules: List[ModuleDetail]

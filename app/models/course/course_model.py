import enum
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, Enum as EnumSQL, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base

if TYPE_CHECKING:
    from app.models.user.user_model import User
    from .module_model import Module


class CourseLevel(str, enum.Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Course(Base):
    """Top of the content graph: a course owns its modules, which own their topics."""
    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    level: Mapped[CourseLevel] = mapped_column(
        EnumSQL(CourseLevel, name="course_level_enum", values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=CourseLevel.BEGINNER,
    )
    thumbnail_url: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    thumbnail_ref: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # --- Relations ---
    # Read-only: deletions run as an explicit, logged cascade in ContentGraphService.
    modules: Mapped[List["Module"]] = relationship(order_by="Module.order", viewonly=True)
    trainers: Mapped[List["User"]] = relationship(
        secondary="course_trainers",
        back_populates="teaching_courses",
        passive_deletes=True,
    )
    enrolled_students: Mapped[List["User"]] = relationship(
        secondary="course_students",
        back_populates="enrolled_courses",
        passive_deletes=True,
    )

    @property
    def thumbnail(self) -> dict[str, str]:
        return {"url": self.thumbnail_url, "storage_ref": self.thumbnail_ref}

    @property
    def trainer_ids(self) -> list[int]:
        return sorted(user.id for user in self.trainers)

    @property
    def enrolled_student_ids(self) -> list[int]:
        return sorted(user.id for user in self.enrolled_students)

    def __repr__(self):
        return f"<Course(id={self.id}, title='{self.title}')>"

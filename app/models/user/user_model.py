from sqlalchemy import Integer, String, Boolean, DateTime, func, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base_class import Base
from typing import List, TYPE_CHECKING
from datetime import datetime
import enum

if TYPE_CHECKING:
    from ..course.course_model import Course


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    TRAINER = "trainer"
    STUDENT = "student"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="userrole", values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=UserRole.STUDENT,
        server_default=UserRole.STUDENT.value,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Both sides share one association row, so Course.enrolled_students and
    # User.enrolled_courses can never disagree.
    enrolled_courses: Mapped[List["Course"]] = relationship(
        secondary="course_students",
        back_populates="enrolled_students",
        passive_deletes=True,
    )
    teaching_courses: Mapped[List["Course"]] = relationship(
        secondary="course_trainers",
        back_populates="trainers",
        passive_deletes=True,
    )

    @property
    def enrolled_course_ids(self) -> list[int]:
        return sorted(course.id for course in self.enrolled_courses)

    @property
    def teaching_course_ids(self) -> list[int]:
        return sorted(course.id for course in self.teaching_courses)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"

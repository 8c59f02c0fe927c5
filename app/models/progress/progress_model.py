# Fichier: lms/backend/app/models/progress/progress_model.py

from datetime import datetime
from typing import List, TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base

if TYPE_CHECKING:
    from ..course.course_model import Course
    from ..user.user_model import User


class Progress(Base):
    __tablename__ = "progress"
    __table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_progress_user_course"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id"), index=True, nullable=False)
    # Set semantics are maintained by ProgressService; the column only stores the list.
    completed_topic_ids: Mapped[List[int]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped["User"] = relationship(viewonly=True)
    course: Mapped["Course"] = relationship(viewonly=True)

    def __repr__(self):
        return f"<Progress(user_id={self.user_id}, course_id={self.course_id}, completed={len(self.completed_topic_ids or [])})>"

import enum
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as EnumSQL,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base

if TYPE_CHECKING:
    from app.models.course.topic_model import Topic
    from app.models.user.user_model import User


class SubmissionStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    GRADED = "graded"


class Submission(Base):
    """One student's answer to one topic assignment (upserted on resubmission)."""
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("topic_id", "student_id", name="uq_submission_topic_student"),
        CheckConstraint("grade IS NULL OR (grade >= 0 AND grade <= 100)", name="ck_submission_grade_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    topic_id: Mapped[int] = mapped_column(Integer, ForeignKey("topics.id"), index=True, nullable=False)
    student_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    file_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    storage_ref: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    original_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[SubmissionStatus] = mapped_column(
        EnumSQL(SubmissionStatus, name="submission_status_enum", values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=SubmissionStatus.SUBMITTED,
    )
    grade: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    graded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    topic: Mapped["Topic"] = relationship(viewonly=True)
    student: Mapped["User"] = relationship(viewonly=True)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Submission(id={self.id}, topic_id={self.topic_id}, student_id={self.student_id}, status='{self.status.value}')>"

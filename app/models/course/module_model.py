from datetime import datetime
from typing import List, TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base

if TYPE_CHECKING:
    from .course_model import Course
    from .topic_model import Topic


class Module(Base):
    """A section of a course. ``order`` is caller-managed and unique within the course."""
    __tablename__ = "modules"
    __table_args__ = (UniqueConstraint("course_id", "order", name="uq_module_course_order"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id"), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # --- Relations ---
    course: Mapped["Course"] = relationship(viewonly=True)
    topics: Mapped[List["Topic"]] = relationship(
        order_by="Topic.order", viewonly=True
    )

    def __repr__(self):
        return f"<Module(id={self.id}, title='{self.title}', order={self.order})>"

from datetime import datetime
from typing import Any, Dict, Optional, TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base

if TYPE_CHECKING:
    from .module_model import Module


class Topic(Base):
    """A lesson inside a module.

    ``video`` and ``assignment`` are embedded value objects stored as JSON:
    at most one of each per topic, with no identity of their own.
    """
    __tablename__ = "topics"
    __table_args__ = (UniqueConstraint("module_id", "order", name="uq_topic_module_order"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    module_id: Mapped[int] = mapped_column(Integer, ForeignKey("modules.id"), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    video: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    assignment: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    module: Mapped["Module"] = relationship(viewonly=True)

    def __repr__(self):
        return f"<Topic(id={self.id}, title='{self.title}', order={self.order})>"

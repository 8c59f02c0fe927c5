"""Association tables linking users to the courses they follow or teach."""

from sqlalchemy import Column, ForeignKey, Table

from app.db.base_class import Base

course_students = Table(
    "course_students",
    Base.metadata,
    Column("course_id", ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True),
)

course_trainers = Table(
    "course_trainers",
    Base.metadata,
    Column("course_id", ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True),
)

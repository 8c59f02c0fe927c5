"""Registers every SQLAlchemy model so ``Base.metadata`` knows all the tables."""

from app.db.base_class import Base

# Utilisateurs
from app.models.user.user_model import User

# Graphe de contenu
from app.models.course.enrollment_model import course_students, course_trainers
from app.models.course.course_model import Course
from app.models.course.module_model import Module
from app.models.course.topic_model import Topic

# Devoirs & progression
from app.models.assignment.submission_model import Submission
from app.models.progress.progress_model import Progress

__all__ = (
    "Base",
    "User",
    "course_students",
    "course_trainers",
    "Course",
    "Module",
    "Topic",
    "Submission",
    "Progress",
)

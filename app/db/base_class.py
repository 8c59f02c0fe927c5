# Fichier: lms/backend/app/db/base_class.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base shared by every LMS model (courses, users, submissions, progress)."""

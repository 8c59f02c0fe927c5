"""Utility helpers for test factories."""

from __future__ import annotations

from app.core.errors import DependencyError
from app.models.course.course_model import Course
from app.models.course.module_model import Module
from app.models.course.topic_model import Topic
from app.models.user.user_model import User, UserRole
from app.services.storage.provider import FilePayload, ObjectStorage


class InMemoryStorage(ObjectStorage):
    """Keeps stored objects in a dict and records every release."""

    name = "memory"

    def __init__(self, *, fail_store: bool = False, fail_release: bool = False):
        self.objects: dict[str, bytes] = {}
        self.released: list[str] = []
        self.fail_store = fail_store
        self.fail_release = fail_release

    def _put(self, key: str, payload: FilePayload) -> str:
        if self.fail_store:
            raise OSError("disk full")
        self.objects[key] = payload.content
        return f"memory://{key}"

    def _delete(self, key: str) -> None:
        self.released.append(key)
        if self.fail_release:
            raise OSError("storage unavailable")
        self.objects.pop(key, None)


class FailingStoreStorage(InMemoryStorage):
    def _put(self, key: str, payload: FilePayload) -> str:
        raise DependencyError("upstream refused")


def make_file(name: str = "file.pdf", content: bytes = b"%PDF-1.4 data", content_type: str = "application/pdf") -> FilePayload:
    return FilePayload(filename=name, content=content, content_type=content_type)


def create_user(db, **kwargs) -> User:
    defaults = {
        "name": "User",
        "email": "user@example.com",
        "hashed_password": "x",
        "role": UserRole.STUDENT,
        "is_active": True,
    }
    defaults.update(kwargs)
    user = User(**defaults)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_course(db, **kwargs) -> Course:
    defaults = {"title": "Course", "description": ""}
    defaults.update(kwargs)
    course = Course(**defaults)
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


def create_module(db, course: Course, order: int = 0, **kwargs) -> Module:
    module = Module(course_id=course.id, title=kwargs.pop("title", f"Module {order}"), order=order, **kwargs)
    db.add(module)
    db.commit()
    db.refresh(module)
    return module


def create_topic(db, module: Module, order: int = 0, **kwargs) -> Topic:
    topic = Topic(module_id=module.id, title=kwargs.pop("title", f"Topic {order}"), order=order, **kwargs)
    db.add(topic)
    db.commit()
    db.refresh(topic)
    return topic


def enroll(db, user: User, course: Course) -> None:
    if user.role == UserRole.TRAINER:
        user.teaching_courses.append(course)
    else:
        user.enrolled_courses.append(course)
    db.commit()

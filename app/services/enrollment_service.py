from __future__ import annotations

import logging
import math
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.security import get_password_hash
from app.models.course.course_model import Course
from app.models.course.enrollment_model import course_students, course_trainers
from app.models.user.user_model import User, UserRole
from app.services.cascade import commit_or_conflict
from app.services.email.email_service import send_account_email

logger = logging.getLogger(__name__)

Notifier = Callable[[User, str, Sequence[str]], Awaitable[Any]]

ENROLLABLE_ROLES = (UserRole.STUDENT, UserRole.TRAINER)


class EnrollmentService:
    """Links students and trainers to courses.

    A single association row backs both ``User.enrolled_courses`` and
    ``Course.enrolled_students`` (resp. teaching/trainers), so the two sides
    cannot drift apart and re-enrolling never duplicates an entry.
    """

    def __init__(self, db: Session, notifier: Notifier | None = None):
        self.db = db
        self.notifier = notifier or send_account_email

    # ------------------------------------------------------------------
    # Registration / enrollment
    # ------------------------------------------------------------------
    async def register_or_enroll(
        self,
        role: UserRole | str,
        email: str,
        password: Optional[str] = None,
        name: Optional[str] = None,
        course_ids: Iterable[int] = (),
    ) -> Dict[str, Any]:
        role = self._coerce_role(role)
        email = (email or "").strip().lower()
        if not email:
            raise ValidationError("Email is required")

        requested = list(dict.fromkeys(int(cid) for cid in course_ids))
        courses = self._existing_courses(requested)
        found_ids = {course.id for course in courses}
        ignored = [cid for cid in requested if cid not in found_ids]
        if ignored:
            logger.warning("Enrollment of %s: unknown course ids dropped %s", email, ignored)

        user = self.db.scalar(select(User).where(User.email == email))
        created = user is None
        if created:
            if not password:
                raise ValidationError("A password is required to create a new account")
            user = User(
                email=email,
                name=(name or "").strip() or f"{role.value.capitalize()}-{int(time.time())}",
                hashed_password=get_password_hash(password),
                role=role,
            )
            self.db.add(user)
        elif user.role != role:
            raise ConflictError(
                f"{email} is already registered as {user.role.value}, not {role.value}"
            )

        linked = user.enrolled_courses if role == UserRole.STUDENT else user.teaching_courses
        already = {course.id for course in linked}
        for course in courses:
            if course.id not in already:
                linked.append(course)

        commit_or_conflict(self.db, f"{email} is already registered")
        self.db.refresh(user)
        logger.info(
            "%s %s (%s) linked to courses %s",
            "Created" if created else "Updated",
            email,
            role.value,
            sorted(found_ids),
        )

        if created:
            await self._notify(user, password, [course.title for course in courses])

        return {
            "user": user,
            "created": created,
            "enrolled_course_ids": [course.id for course in courses],
            "ignored_course_ids": ignored,
        }

    # ------------------------------------------------------------------
    # Directory
    # ------------------------------------------------------------------
    def list_students(self, page: int = 1, limit: int = 20, course_id: Optional[int] = None) -> Dict[str, Any]:
        page = max(page, 1)
        limit = max(min(limit, 100), 1)

        stmt = select(User).where(User.role == UserRole.STUDENT)
        if course_id is not None:
            stmt = stmt.join(course_students, course_students.c.user_id == User.id).where(
                course_students.c.course_id == course_id
            )

        total = self.db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        items = self.db.scalars(
            stmt.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit)
        ).all()
        return {
            "items": list(items),
            "total_count": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if total else 0,
        }

    def list_trainers(self, course_id: Optional[int] = None) -> List[User]:
        stmt = select(User).where(User.role == UserRole.TRAINER)
        if course_id is not None:
            stmt = stmt.join(course_trainers, course_trainers.c.user_id == User.id).where(
                course_trainers.c.course_id == course_id
            )
        return list(self.db.scalars(stmt.order_by(User.name.asc(), User.id.asc())).all())

    def count_trainers(self) -> int:
        return self.db.scalar(select(func.count(User.id)).where(User.role == UserRole.TRAINER)) or 0

    def get_trainer(self, trainer_id: int) -> User:
        user = self.db.get(User, trainer_id)
        if user is None or user.role != UserRole.TRAINER:
            raise NotFoundError(f"Trainer {trainer_id} not found")
        return user

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _coerce_role(role: UserRole | str) -> UserRole:
        try:
            role = UserRole(role)
        except ValueError:
            raise ValidationError(f"Unknown role '{role}'") from None
        if role not in ENROLLABLE_ROLES:
            raise ValidationError("Only students and trainers can be registered here")
        return role

    def _existing_courses(self, course_ids: List[int]) -> List[Course]:
        if not course_ids:
            return []
        by_id = {
            course.id: course
            for course in self.db.scalars(select(Course).where(Course.id.in_(course_ids)))
        }
        return [by_id[cid] for cid in course_ids if cid in by_id]

    async def _notify(self, user: User, password: str, course_titles: List[str]) -> None:
        try:
            await self.notifier(user, password, course_titles)
        except Exception as exc:
            logger.warning("Welcome e-mail for %s not sent: %s", user.email, exc)

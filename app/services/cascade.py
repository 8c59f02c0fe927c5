"""Helpers shared by the services that write to the content store."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError

logger = logging.getLogger(__name__)


def commit_or_conflict(db: Session, conflict_message: str) -> None:
    """Commit, turning a unique-index rejection into ``ConflictError``."""
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info("Write rejected by the store (%s): %s", conflict_message, exc.orig)
        raise ConflictError(conflict_message) from exc


class Cascade:
    """Runs an ordered delete as independent, individually committed steps.

    Nothing is rolled back when a step fails: the completed steps and the
    failing one are logged so an operator can finish the cleanup, then the
    error propagates. Every step is keyed by parent id and safe to re-run.
    """

    def __init__(self, db: Session, label: str):
        self.db = db
        self.label = label
        self.completed: List[Tuple[str, int]] = []

    def step(self, name: str, action: Callable[[], Optional[int]]) -> int:
        try:
            affected = action() or 0
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(
                "Cascade %s interrupted at step '%s'; completed steps: %s",
                self.label,
                name,
                ", ".join(f"{done}={count}" for done, count in self.completed) or "none",
            )
            raise
        self.completed.append((name, affected))
        logger.info("Cascade %s: %s (%d)", self.label, name, affected)
        return affected

    def summary(self) -> dict[str, int]:
        return dict(self.completed)

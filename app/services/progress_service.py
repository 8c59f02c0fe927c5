import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from app.models.progress.progress_model import Progress
from app.services.cascade import commit_or_conflict
from app.services.content_graph_service import ContentGraphService

logger = logging.getLogger(__name__)


def completion_percentage(completed: int, total: int) -> int:
    """Whole percent with halves rounded up, bounded to [0, 100]; 0 for an empty course."""
    if total <= 0:
        return 0
    return max(0, min(100, math.floor(completed * 100 / total + 0.5)))


class ProgressService:
    """Per-course completion for one user, derived from the set of completed topic ids."""

    def __init__(self, db: Session, user_id: int, graph: ContentGraphService | None = None):
        self.db = db
        self.user_id = user_id
        self.graph = graph or ContentGraphService(db)

    def _get_record(self, course_id: int) -> Optional[Progress]:
        return (
            self.db.query(Progress)
            .filter(Progress.user_id == self.user_id, Progress.course_id == course_id)
            .first()
        )

    def mark_topic_complete(self, topic_id: int) -> Progress:
        """Add ``topic_id`` to the user's completed set for its course (idempotent)."""
        course_id = self.graph.course_id_for_topic(topic_id)

        record = self._get_record(course_id)
        if record is None:
            record = Progress(user_id=self.user_id, course_id=course_id, completed_topic_ids=[topic_id])
            self.db.add(record)
        elif topic_id in (record.completed_topic_ids or []):
            return record
        else:
            # Nouvelle liste + flag_modified: la colonne JSON n'est pas mutable-tracked.
            record.completed_topic_ids = [*(record.completed_topic_ids or []), topic_id]
            flag_modified(record, "completed_topic_ids")

        commit_or_conflict(self.db, f"Progress for user {self.user_id} on course {course_id} already exists")
        self.db.refresh(record)
        logger.info("User %s completed topic %s (course %s)", self.user_id, topic_id, course_id)
        return record

    def get_course_progress(self, course_id: int) -> Dict[str, Any]:
        total = self.graph.count_topics(course_id)
        record = self._get_record(course_id)
        completed = len(set(record.completed_topic_ids or [])) if record else 0
        return {
            "total_topics": total,
            "completed": completed,
            "percentage": completion_percentage(completed, total),
            "progress": record,
        }

    def get_all_progress(self) -> List[Progress]:
        return (
            self.db.query(Progress)
            .filter(Progress.user_id == self.user_id)
            .order_by(Progress.course_id.asc())
            .all()
        )

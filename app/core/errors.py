"""Domain errors raised by the course, enrollment, assignment and progress services.

Routers never catch these: the handlers registered in ``app.main`` turn them
into the ``{"success": false, "error_kind": ..., "message": ...}`` envelope.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar


@dataclass(eq=False)
class LMSError(Exception):
    message: str

    kind: ClassVar[str] = "error"
    status_code: ClassVar[int] = 400

    def __str__(self) -> str:  # pragma: no cover - human readable message
        return self.message


class ValidationError(LMSError):
    """Caller input is missing or malformed."""

    kind = "validation_error"
    status_code = 400


class NotFoundError(LMSError):
    """A referenced course, module, topic, submission or user does not exist."""

    kind = "not_found"
    status_code = 404


class ConflictError(LMSError):
    """A uniqueness rule was violated."""

    kind = "conflict"
    status_code = 409


class DependencyError(LMSError):
    """An external collaborator (storage, e-mail) failed on a primary write."""

    kind = "dependency_error"
    status_code = 502

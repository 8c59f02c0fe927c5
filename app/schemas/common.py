"""Uniform response envelope returned by every endpoint."""

from __future__ import annotations

from typing import Any


def ok(data: Any = None, message: str = "OK") -> dict[str, Any]:
    return {"success": True, "data": data, "message": message}


def fail(error_kind: str, message: str) -> dict[str, Any]:
    return {"success": False, "error_kind": error_kind, "message": message}

"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("FRONTEND_BASE_URL", "http://localhost:5173")
os.environ.setdefault("BACKEND_BASE_URL", "http://localhost:8000")
os.environ.setdefault("EMAIL_FROM", "noreply@example.com")
os.environ.setdefault("SECRET_KEY", "secret-key")
os.environ.setdefault("MAIL_PROVIDER", "console")
os.environ.setdefault("STORAGE_PROVIDER", "local")
os.environ.setdefault("UPLOAD_DIR", str(Path(tempfile.gettempdir()) / "lms-test-uploads"))

# Ensure the app package is importable when tests run from the repo root.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.append(str(BACKEND_ROOT))

from app.db.base import Base  # noqa: E402  (enregistre tous les modèles)
from app.db.session import enable_sqlite_foreign_keys  # noqa: E402

from tests.utils import InMemoryStorage  # noqa: E402


@pytest.fixture()
def engine():
    engine = create_engine("sqlite:///:memory:", future=True)
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine) -> Session:
    SessionLocal = sessionmaker(bind=engine, future=True)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def storage() -> InMemoryStorage:
    return InMemoryStorage()

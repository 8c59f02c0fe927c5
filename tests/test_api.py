"""HTTP surface: envelope shape, authentication and error mapping."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.v1.dependencies import get_db, get_object_storage
from app.core.security import create_access_token
from app.db.base import Base
from app.db.session import enable_sqlite_foreign_keys
from app.main import app
from app.models.user.user_model import UserRole
from app.services.content_graph_service import ContentGraphService
from tests.utils import InMemoryStorage, create_course, create_module, create_topic, create_user

API = "/api/v1"


@pytest.fixture()
def api():
    # One shared connection: the TestClient runs handlers in a worker thread.
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool, future=True
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, future=True)
    storage = InMemoryStorage()

    def _get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_object_storage] = lambda: storage
    db = TestingSession()
    try:
        yield TestClient(app), db, storage
    finally:
        db.close()
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def _auth(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject=user.id)}"}


def test_health_uses_success_envelope():
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json() == {"success": True, "data": {"status": "ok"}, "message": "OK"}


def test_missing_token_is_unauthorized(api):
    client, _, _ = api
    response = client.get(f"{API}/courses")
    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["error_kind"] == "unauthorized"


def test_cookie_token_is_accepted(api):
    client, db, _ = api
    student = create_user(db, email="cookie@example.com")
    client.cookies.set("access_token", create_access_token(subject=student.id))

    response = client.get(f"{API}/auth/me")

    assert response.status_code == 200
    assert response.json()["data"]["email"] == "cookie@example.com"


def test_student_cannot_create_course(api):
    client, db, _ = api
    student = create_user(db, email="s@example.com")
    response = client.post(f"{API}/courses", data={"title": "Nope"}, headers=_auth(student))
    assert response.status_code == 403
    assert response.json()["error_kind"] == "forbidden"


def test_admin_creates_course_with_thumbnail(api):
    client, db, storage = api
    admin = create_user(db, email="admin@example.com", role=UserRole.ADMIN)

    response = client.post(
        f"{API}/courses",
        data={"title": "LMS 101", "description": "Intro"},
        files={"thumbnail": ("cover.png", b"png-bytes", "image/png")},
        headers=_auth(admin),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["title"] == "LMS 101"
    assert body["data"]["thumbnail"]["url"].startswith("memory://thumbnails/")
    assert len(storage.objects) == 1


def test_course_without_thumbnail_is_a_validation_error(api):
    client, db, _ = api
    admin = create_user(db, email="admin@example.com", role=UserRole.ADMIN)

    response = client.post(f"{API}/courses", data={"title": "LMS 101"}, headers=_auth(admin))

    assert response.status_code == 400
    assert response.json()["error_kind"] == "validation_error"


def test_unknown_course_is_not_found(api):
    client, db, _ = api
    student = create_user(db, email="s@example.com")
    response = client.get(f"{API}/courses/999", headers=_auth(student))
    assert response.status_code == 404
    assert response.json() == {"success": False, "error_kind": "not_found", "message": "Course 999 not found"}


def test_duplicate_module_order_is_conflict(api):
    client, db, _ = api
    admin = create_user(db, email="admin@example.com", role=UserRole.ADMIN)
    course = create_course(db)
    create_module(db, course, order=1)

    response = client.post(
        f"{API}/courses/{course.id}/modules", json={"title": "Again", "order": 1}, headers=_auth(admin)
    )

    assert response.status_code == 409
    assert response.json()["error_kind"] == "conflict"


def test_trainer_without_course_access_is_forbidden(api):
    client, db, _ = api
    trainer = create_user(db, email="t@example.com", role=UserRole.TRAINER)
    course = create_course(db)

    response = client.post(
        f"{API}/courses/{course.id}/modules", json={"title": "Intro", "order": 1}, headers=_auth(trainer)
    )

    assert response.status_code == 403


def test_grade_out_of_range_is_rejected(api):
    client, db, _ = api
    trainer = create_user(db, email="t@example.com", role=UserRole.TRAINER)
    response = client.post(f"{API}/submissions/1/grade", json={"grade": 150}, headers=_auth(trainer))
    assert response.status_code == 422
    assert response.json()["error_kind"] == "validation_error"


def test_student_completes_topic_and_reads_progress(api):
    client, db, _ = api
    student = create_user(db, email="s@example.com")
    course = create_course(db)
    module = create_module(db, course, order=1)
    first = create_topic(db, module, order=1)
    create_topic(db, module, order=2)

    assert client.post(f"{API}/topics/{first.id}/complete", headers=_auth(student)).status_code == 200
    response = client.get(f"{API}/progress/{course.id}", headers=_auth(student))

    data = response.json()["data"]
    assert data["total_topics"] == 2
    assert data["completed"] == 1
    assert data["percentage"] == 50
    assert data["progress"]["completed_topic_ids"] == [first.id]


def test_student_submits_assignment(api):
    client, db, storage = api
    student = create_user(db, email="s@example.com")
    course = create_course(db)
    topic = create_topic(db, create_module(db, course, order=1), order=1)

    response = client.post(
        f"{API}/topics/{topic.id}/assignment/submit",
        files={"file": ("answer.pdf", b"%PDF answer", "application/pdf")},
        headers=_auth(student),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "submitted"
    assert data["file_url"].startswith(f"memory://submissions/{student.id}/")

    status = client.get(f"{API}/topics/{topic.id}/assignment/status", headers=_auth(student))
    assert status.json()["data"]["id"] == data["id"]


def test_unexpected_error_uses_failure_envelope(api, monkeypatch):
    _, db, _ = api
    admin = create_user(db, email="admin@example.com", role=UserRole.ADMIN)
    course = create_course(db)

    def broken_unlink(self, table, course_id):
        raise RuntimeError("association table locked")

    monkeypatch.setattr(ContentGraphService, "_unlink", broken_unlink)
    client = TestClient(app, raise_server_exceptions=False)

    response = client.delete(f"{API}/courses/{course.id}", headers=_auth(admin))

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {"success": False, "error_kind": "error", "message": "Internal server error"}

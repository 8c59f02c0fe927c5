import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.assignment.submission_model import Submission
from app.models.course.course_model import Course
from app.models.course.enrollment_model import course_students, course_trainers
from app.models.course.module_model import Module
from app.models.course.topic_model import Topic
from app.models.progress.progress_model import Progress
from app.models.user.user_model import User, UserRole
from app.schemas.course.course_schema import (
    CourseCreate,
    CourseUpdate,
    ModuleCreate,
    ModuleUpdate,
    TopicCreate,
    TopicUpdate,
)
from app.services.assignment_service import AssignmentService
from app.services.content_graph_service import ContentGraphService
from app.services.progress_service import ProgressService
from tests.utils import (
    InMemoryStorage,
    create_course,
    create_module,
    create_topic,
    create_user,
    enroll,
    make_file,
)


@pytest.fixture()
def service(db_session, storage):
    return ContentGraphService(db_session, storage)


def test_create_course_requires_thumbnail(service):
    with pytest.raises(ValidationError):
        service.create_course(CourseCreate(title="No picture"))


def test_create_course_without_thumbnail_when_optional(service, monkeypatch):
    monkeypatch.setattr(settings, "REQUIRE_COURSE_THUMBNAIL", False)
    course = service.create_course(CourseCreate(title="Plain"))
    assert course.thumbnail == {"url": "", "storage_ref": ""}
    assert course.trainer_ids == []
    assert course.enrolled_student_ids == []


def test_create_course_stores_thumbnail(service, storage):
    course = service.create_course(CourseCreate(title="Python"), make_file("cover.png", b"png"))
    assert course.thumbnail_ref.startswith("thumbnails/")
    assert course.thumbnail_ref in storage.objects
    assert course.thumbnail_url == f"memory://{course.thumbnail_ref}"


def test_update_course_replaces_thumbnail_and_releases_old(service, storage):
    course = service.create_course(CourseCreate(title="Python"), make_file("a.png", b"a"))
    old_ref = course.thumbnail_ref

    updated = service.update_course(course.id, CourseUpdate(description="New"), make_file("b.png", b"b"))

    assert updated.title == "Python"
    assert updated.description == "New"
    assert updated.thumbnail_ref != old_ref
    assert old_ref in storage.released
    assert old_ref not in storage.objects


def test_update_unknown_course(service):
    with pytest.raises(NotFoundError):
        service.update_course(999, CourseUpdate(title="x"))


def test_duplicate_module_order_is_rejected(service, db_session):
    course = create_course(db_session)
    service.add_module(course.id, ModuleCreate(title="M1", order=1))

    with pytest.raises(ConflictError):
        service.add_module(course.id, ModuleCreate(title="M2", order=1))

    assert db_session.scalars(select(Module).where(Module.course_id == course.id)).all()[0].title == "M1"
    # the session is still usable after the rejected write
    assert service.add_module(course.id, ModuleCreate(title="M2", order=2)).order == 2


def test_same_order_allowed_in_different_courses(service, db_session):
    first = create_course(db_session, title="A")
    second = create_course(db_session, title="B")
    service.add_module(first.id, ModuleCreate(title="M", order=1))
    assert service.add_module(second.id, ModuleCreate(title="M", order=1)).course_id == second.id


def test_add_module_to_unknown_course(service):
    with pytest.raises(NotFoundError):
        service.add_module(42, ModuleCreate(title="M"))


def test_default_order_is_zero(service, db_session):
    course = create_course(db_session)
    module = service.add_module(course.id, ModuleCreate(title="M"))
    topic = service.add_topic(module.id, TopicCreate(title="T"))
    assert module.order == 0
    assert topic.order == 0
    assert topic.content is None


def test_update_module_into_taken_order_conflicts(service, db_session):
    course = create_course(db_session)
    create_module(db_session, course, order=1)
    second = create_module(db_session, course, order=2)

    with pytest.raises(ConflictError):
        service.update_module(second.id, ModuleUpdate(order=1))

    renamed = service.update_module(second.id, ModuleUpdate(title="Renamed"))
    assert renamed.title == "Renamed"
    assert renamed.order == 2


def test_duplicate_topic_order_is_rejected(service, db_session):
    module = create_module(db_session, create_course(db_session))
    service.add_topic(module.id, TopicCreate(title="T1", order=1))
    with pytest.raises(ConflictError):
        service.add_topic(module.id, TopicCreate(title="T2", order=1))


def test_update_topic_fields(service, db_session):
    module = create_module(db_session, create_course(db_session))
    topic = create_topic(db_session, module, order=1)
    updated = service.update_topic(topic.id, TopicUpdate(content="Body", order=3))
    assert updated.content == "Body"
    assert updated.order == 3
    assert updated.title == "Topic 1"


def test_add_topic_to_unknown_module(service):
    with pytest.raises(NotFoundError):
        service.add_topic(7, TopicCreate(title="T"))


def test_course_detail_orders_modules_and_topics(service, db_session):
    course = create_course(db_session)
    late = create_module(db_session, course, order=5, title="Late")
    early = create_module(db_session, course, order=1, title="Early")
    create_topic(db_session, early, order=2, title="Second")
    create_topic(db_session, early, order=1, title="First")
    create_topic(db_session, late, order=0, title="Only")

    detail = service.get_course_detail(course.id)

    assert detail["course"].id == course.id
    assert [m.title for m in detail["modules"]] == ["Early", "Late"]
    assert [t.title for t in detail["modules"][0].topics] == ["First", "Second"]
    assert [t.title for t in detail["modules"][1].topics] == ["Only"]


def test_list_courses_by_role(service, db_session):
    followed = create_course(db_session, title="Followed")
    taught = create_course(db_session, title="Taught")
    student = create_user(db_session, email="s@example.com")
    trainer = create_user(db_session, email="t@example.com", role=UserRole.TRAINER)
    admin = create_user(db_session, email="a@example.com", role=UserRole.ADMIN)
    enroll(db_session, student, followed)
    enroll(db_session, trainer, taught)

    assert [c.title for c in service.list_courses_for(student)] == ["Followed"]
    assert [c.title for c in service.list_courses_for(trainer)] == ["Taught"]
    assert {c.title for c in service.list_courses_for(admin)} == {"Followed", "Taught"}


def _populated_course(db_session, storage):
    """2 modules, 3 topics, 2 submissions, 5 enrolled students, 1 trainer."""
    course = create_course(db_session, thumbnail_url="memory://thumbnails/c.png", thumbnail_ref="thumbnails/c.png")
    storage.objects["thumbnails/c.png"] = b"c"
    m1 = create_module(db_session, course, order=1)
    m2 = create_module(db_session, course, order=2)
    t1 = create_topic(db_session, m1, order=1, video={"url": "memory://videos/v.mp4", "storage_ref": "videos/v.mp4"})
    t2 = create_topic(db_session, m1, order=2)
    t3 = create_topic(
        db_session,
        m2,
        order=1,
        assignment={"title": "HW", "description": "", "file_url": "memory://assignments/hw.pdf", "storage_ref": "assignments/hw.pdf"},
    )
    students = [create_user(db_session, email=f"s{i}@example.com", name=f"S{i}") for i in range(5)]
    trainer = create_user(db_session, email="trainer@example.com", role=UserRole.TRAINER)
    for student in students:
        enroll(db_session, student, course)
    enroll(db_session, trainer, course)

    assignments = AssignmentService(db_session, storage)
    assignments.submit_assignment(t3.id, students[0].id, make_file("a.pdf"))
    assignments.submit_assignment(t3.id, students[1].id, make_file("b.pdf"))
    ProgressService(db_session, students[0].id).mark_topic_complete(t1.id)
    return course, [m1.id, m2.id], [t1.id, t2.id, t3.id], students, trainer


def test_delete_course_cascades(service, db_session, storage):
    course, module_ids, topic_ids, students, trainer = _populated_course(db_session, storage)
    submission_refs = [s.storage_ref for s in db_session.scalars(select(Submission)).all()]
    course_id = course.id

    summary = service.delete_course(course_id)

    assert summary["delete_submissions"] == 2
    assert summary["delete_topics"] == 3
    assert summary["delete_modules"] == 2
    assert summary["delete_course"] == 1
    assert db_session.get(Course, course_id) is None
    assert db_session.scalars(select(Module).where(Module.id.in_(module_ids))).all() == []
    assert db_session.scalars(select(Topic).where(Topic.id.in_(topic_ids))).all() == []
    assert db_session.scalars(select(Submission)).all() == []
    assert db_session.scalars(select(Progress).where(Progress.course_id == course_id)).all() == []
    assert db_session.execute(select(course_students)).all() == []
    assert db_session.execute(select(course_trainers)).all() == []

    for student in students:
        db_session.refresh(student)
        assert course_id not in student.enrolled_course_ids
    db_session.refresh(trainer)
    assert trainer.teaching_course_ids == []

    for ref in [*submission_refs, "videos/v.mp4", "assignments/hw.pdf", "thumbnails/c.png"]:
        assert ref in storage.released


def test_delete_course_keeps_going_when_release_fails(db_session):
    storage = InMemoryStorage(fail_release=True)
    service = ContentGraphService(db_session, storage)
    course = create_course(db_session, thumbnail_ref="thumbnails/x.png")
    course_id = course.id
    create_module(db_session, course)

    service.delete_course(course_id)

    assert "thumbnails/x.png" in storage.released
    assert db_session.get(Course, course_id) is None


def test_delete_course_failure_logs_completed_steps(service, db_session, monkeypatch, caplog):
    course = create_course(db_session)
    course_id = course.id
    create_module(db_session, course)

    def boom(*args, **kwargs):
        raise RuntimeError("store down")

    monkeypatch.setattr(service, "_unlink", boom)

    with pytest.raises(RuntimeError):
        service.delete_course(course_id)

    assert "interrupted at step 'unlink_students'" in caplog.text
    assert "delete_course=1" in caplog.text
    # completed steps are not rolled back
    assert db_session.get(Course, course_id) is None


def test_delete_unknown_course(service):
    with pytest.raises(NotFoundError):
        service.delete_course(404)


def test_delete_module_cascades_to_topics_and_submissions(service, db_session, storage):
    course, module_ids, topic_ids, students, _ = _populated_course(db_session, storage)

    service.delete_module(module_ids[1])

    assert db_session.get(Module, module_ids[1]) is None
    assert db_session.get(Topic, topic_ids[2]) is None
    assert db_session.scalars(select(Submission)).all() == []
    assert "assignments/hw.pdf" in storage.released
    # the other module is untouched
    assert db_session.get(Module, module_ids[0]) is not None
    assert db_session.get(Topic, topic_ids[0]) is not None


def test_delete_topic_prunes_progress(service, db_session, storage):
    course, _, topic_ids, students, _ = _populated_course(db_session, storage)

    service.delete_topic(topic_ids[0])

    record = db_session.scalar(select(Progress).where(Progress.user_id == students[0].id))
    db_session.refresh(record)
    assert record.completed_topic_ids == []
    assert "videos/v.mp4" in storage.released

    progress = ProgressService(db_session, students[0].id).get_course_progress(course.id)
    assert progress["total_topics"] == 2
    assert 0 <= progress["percentage"] <= 100


def test_video_upload_replaces_and_releases(service, db_session, storage):
    topic = create_topic(db_session, create_module(db_session, create_course(db_session)))

    first = service.upload_video(topic.id, make_file("one.mp4", b"1", "video/mp4"))
    first_ref = first.video["storage_ref"]
    second = service.upload_video(topic.id, make_file("two.mp4", b"22", "video/mp4"))

    assert first_ref in storage.released
    video = service.get_video(topic.id)
    assert video.storage_ref == second.video["storage_ref"]
    assert video.format == "mp4"
    assert video.bytes == 2
    assert video.original_name == "two.mp4"


def test_video_requires_file(service, db_session):
    topic = create_topic(db_session, create_module(db_session, create_course(db_session)))
    with pytest.raises(ValidationError):
        service.upload_video(topic.id, None)


def test_delete_video(service, db_session, storage):
    topic = create_topic(db_session, create_module(db_session, create_course(db_session)))
    assert service.get_video(topic.id) is None
    with pytest.raises(ValidationError):
        service.delete_video(topic.id)

    service.upload_video(topic.id, make_file("v.mp4", b"v"))
    service.delete_video(topic.id)
    assert service.get_video(topic.id) is None
    assert len(storage.released) == 1


def test_get_video_unknown_topic(service):
    with pytest.raises(NotFoundError):
        service.get_video(123)


def test_course_id_lookups(service, db_session):
    course = create_course(db_session)
    module = create_module(db_session, course)
    topic = create_topic(db_session, module)
    assert service.course_id_for_module(module.id) == course.id
    assert service.course_id_for_topic(topic.id) == course.id
    with pytest.raises(NotFoundError):
        service.course_id_for_topic(999)


def test_store_rejects_orphan_module(db_session):
    db_session.add(Module(course_id=999, title="Orphan", order=1))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_delete_course_order_respects_foreign_keys(service, db_session, storage):
    course, _, _, _, _ = _populated_course(db_session, storage)
    course_id = course.id

    summary = service.delete_course(course_id)

    assert list(summary)[:6] == [
        "release_submission_files",
        "delete_submissions",
        "release_topic_assets",
        "delete_topics",
        "delete_modules",
        "delete_progress",
    ]
    assert db_session.get(Course, course_id) is None

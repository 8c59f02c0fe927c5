import pytest

from app.core.errors import NotFoundError
from app.services.content_graph_service import ContentGraphService
from app.services.progress_service import ProgressService, completion_percentage
from tests.utils import create_course, create_module, create_topic, create_user


@pytest.fixture()
def course_with_four_topics(db_session):
    course = create_course(db_session)
    topics = []
    for module_order in (1, 2):
        module = create_module(db_session, course, order=module_order)
        topics += [create_topic(db_session, module, order=1), create_topic(db_session, module, order=2)]
    return course, topics


@pytest.fixture()
def user(db_session):
    return create_user(db_session, email="learner@example.com")


def _service(db_session, user, storage):
    return ProgressService(db_session, user.id, graph=ContentGraphService(db_session, storage))


def test_mark_topic_complete_is_idempotent(db_session, storage, user, course_with_four_topics):
    course, topics = course_with_four_topics
    service = _service(db_session, user, storage)

    service.mark_topic_complete(topics[0].id)
    service.mark_topic_complete(topics[0].id)

    records = service.get_all_progress()
    assert len(records) == 1
    assert records[0].course_id == course.id
    assert records[0].completed_topic_ids == [topics[0].id]


def test_course_progress_percentage(db_session, storage, user, course_with_four_topics):
    course, topics = course_with_four_topics
    service = _service(db_session, user, storage)
    service.mark_topic_complete(topics[2].id)

    result = service.get_course_progress(course.id)

    assert result["total_topics"] == 4
    assert result["completed"] == 1
    assert result["percentage"] == 25
    assert result["progress"].user_id == user.id


def test_percentage_is_monotonic_and_bounded(db_session, storage, user, course_with_four_topics):
    course, topics = course_with_four_topics
    service = _service(db_session, user, storage)

    seen = [service.get_course_progress(course.id)["percentage"]]
    for topic in topics:
        service.mark_topic_complete(topic.id)
        seen.append(service.get_course_progress(course.id)["percentage"])

    assert seen == sorted(seen)
    assert seen[0] == 0
    assert seen[-1] == 100


def test_progress_without_record_or_topics(db_session, storage, user):
    empty = create_course(db_session, title="Empty")
    result = _service(db_session, user, storage).get_course_progress(empty.id)
    assert result == {"total_topics": 0, "completed": 0, "percentage": 0, "progress": None}


def test_mark_unknown_topic(db_session, storage, user):
    with pytest.raises(NotFoundError):
        _service(db_session, user, storage).mark_topic_complete(999)


def test_progress_is_per_user(db_session, storage, user, course_with_four_topics):
    course, topics = course_with_four_topics
    other = create_user(db_session, email="other@example.com")
    _service(db_session, user, storage).mark_topic_complete(topics[0].id)

    assert _service(db_session, other, storage).get_all_progress() == []
    assert _service(db_session, other, storage).get_course_progress(course.id)["completed"] == 0


@pytest.mark.parametrize(
    "completed,total,expected",
    [(0, 0, 0), (1, 3, 33), (2, 3, 67), (1, 8, 13), (5, 8, 63), (1, 200, 1), (3, 3, 100), (5, 3, 100)],
)
def test_completion_percentage(completed, total, expected):
    assert completion_percentage(completed, total) == expected


def test_half_percent_rounds_up(db_session, storage, user):
    course = create_course(db_session, title="Eight topics")
    module = create_module(db_session, course, order=1)
    topics = [create_topic(db_session, module, order=i) for i in range(1, 9)]
    service = _service(db_session, user, storage)

    service.mark_topic_complete(topics[0].id)

    assert service.get_course_progress(course.id)["percentage"] == 13

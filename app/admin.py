"""SQLAdmin back-office over the LMS tables.

Course, module and topic rows cannot be deleted from here: those deletes must
go through ``ContentGraphService`` so that submissions, stored files and
progress records follow.
"""

from __future__ import annotations

import json
from typing import Any

from markupsafe import Markup, escape
from sqladmin import ModelView

from app.models.assignment.submission_model import Submission
from app.models.course.course_model import Course
from app.models.course.module_model import Module
from app.models.course.topic_model import Topic
from app.models.progress.progress_model import Progress
from app.models.user.user_model import User


def _json_preview(value: Any, *, max_chars: int = 160) -> Markup:
    """Render JSON content as a trimmed <pre> block for the admin."""
    if value in (None, "", []):
        return Markup("<span style='color:#9ca3af;'>—</span>")

    try:
        text = json.dumps(value, ensure_ascii=False, indent=2)
    except TypeError:
        text = str(value)

    if len(text) > max_chars:
        text = text[:max_chars] + "…"

    return Markup(
        "<pre style='max-width:520px; white-space:pre-wrap; margin:0; font-size:12px;'>"
        + str(escape(text))
        + "</pre>"
    )


def _json_full(value: Any) -> Markup:
    return _json_preview(value, max_chars=10000)


class UserAdmin(ModelView, model=User):
    name = "Utilisateur"
    name_plural = "Utilisateurs"
    icon = "fa-solid fa-user"
    category = "Utilisateurs"
    column_list = [User.id, User.email, User.name, User.role, User.is_active, User.created_at]
    column_searchable_list = [User.email, User.name]
    column_sortable_list = [User.created_at, User.email]
    column_default_sort = [(User.created_at, True)]
    form_excluded_columns = [User.hashed_password, User.enrolled_courses, User.teaching_courses]
    can_export = True


class CourseAdmin(ModelView, model=Course):
    name = "Cours"
    name_plural = "Cours"
    icon = "fa-solid fa-book"
    category = "Contenus"
    column_list = [Course.id, Course.title, Course.category, Course.level, Course.created_at]
    column_searchable_list = [Course.title, Course.category]
    column_default_sort = [(Course.id, True)]
    form_excluded_columns = [Course.modules, Course.trainers, Course.enrolled_students]
    can_delete = False
    can_export = True


class ModuleAdmin(ModelView, model=Module):
    name = "Module"
    name_plural = "Modules"
    icon = "fa-solid fa-layer-group"
    category = "Contenus"
    column_list = [Module.id, Module.course_id, Module.title, Module.order]
    column_searchable_list = [Module.title]
    form_excluded_columns = [Module.course, Module.topics]
    can_delete = False


class TopicAdmin(ModelView, model=Topic):
    name = "Topic"
    name_plural = "Topics"
    icon = "fa-solid fa-file-lines"
    category = "Contenus"
    column_list = [Topic.id, Topic.module_id, Topic.title, Topic.order, Topic.video, Topic.assignment]
    column_searchable_list = [Topic.title]
    column_formatters = {
        Topic.video: lambda m, _: _json_preview(m.video),
        Topic.assignment: lambda m, _: _json_preview(m.assignment),
    }
    column_formatters_detail = {
        Topic.video: lambda m, _: _json_full(m.video),
        Topic.assignment: lambda m, _: _json_full(m.assignment),
    }
    form_excluded_columns = [Topic.module, Topic.video, Topic.assignment]
    can_delete = False


class SubmissionAdmin(ModelView, model=Submission):
    name = "Rendu"
    name_plural = "Rendus"
    icon = "fa-solid fa-file-arrow-up"
    category = "Devoirs"
    column_list = [
        Submission.id,
        Submission.topic_id,
        Submission.student_id,
        Submission.status,
        Submission.grade,
        Submission.submitted_at,
        Submission.graded_at,
    ]
    column_sortable_list = [Submission.submitted_at, Submission.grade]
    column_default_sort = [(Submission.submitted_at, True)]
    can_create = False
    can_export = True


class ProgressAdmin(ModelView, model=Progress):
    name = "Progression"
    name_plural = "Progressions"
    icon = "fa-solid fa-chart-line"
    category = "Utilisateurs"
    column_list = [Progress.user_id, Progress.course_id, Progress.completed_topic_ids, Progress.updated_at]
    column_formatters = {
        Progress.completed_topic_ids: lambda m, _: _json_preview(m.completed_topic_ids),
    }
    can_create = False
    can_edit = False
    can_export = True


ADMIN_VIEWS = (UserAdmin, CourseAdmin, ModuleAdmin, TopicAdmin, SubmissionAdmin, ProgressAdmin)

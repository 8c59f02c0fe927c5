import pytest

from app.models.user.user_model import User, UserRole
from app.services.email import email_service
from app.services.email.provider import send_email
from app.services.email.templates import render_account_welcome


def _user() -> User:
    return User(id=7, name="Ada", email="ada@example.com", hashed_password="x", role=UserRole.STUDENT)


def test_welcome_template_lists_courses():
    subject, html = render_account_welcome(
        name="Ada",
        email="ada@example.com",
        password="s3cret",
        role="student",
        courses=["LMS 101", "Advanced LMS"],
        login_url="http://frontend.test/login",
        platform="Mentversity",
    )
    assert subject == "Welcome to Mentversity"
    assert "You are enrolled in:" in html
    assert "LMS 101" in html and "Advanced LMS" in html
    assert "s3cret" in html
    assert 'href="http://frontend.test/login"' in html


def test_welcome_template_without_courses():
    _, html = render_account_welcome(
        name="Grace",
        email="grace@example.com",
        password="pw",
        role="trainer",
        courses=[],
        login_url="http://frontend.test/login",
        platform="Mentversity",
    )
    assert "assigned to teach" not in html


@pytest.mark.asyncio
async def test_console_provider_only_logs(monkeypatch):
    monkeypatch.setattr("app.services.email.provider.settings.MAIL_PROVIDER", "console")
    assert await send_email("ada@example.com", "Hi", "<p>Hi</p>") == {"status": "logged"}


@pytest.mark.asyncio
async def test_send_account_email_reports_success(monkeypatch):
    sent = []

    async def fake_send(to, subject, html):
        sent.append((to, subject, html))

    monkeypatch.setattr(email_service, "send_email", fake_send)

    assert await email_service.send_account_email(_user(), "pw", ["LMS 101"]) is True
    assert sent[0][0] == "ada@example.com"
    assert "LMS 101" in sent[0][2]


@pytest.mark.asyncio
async def test_send_account_email_swallows_provider_failure(monkeypatch, caplog):
    async def broken_send(to, subject, html):
        raise RuntimeError("provider down")

    monkeypatch.setattr(email_service, "send_email", broken_send)

    assert await email_service.send_account_email(_user(), "pw") is False
    assert "provider down" in caplog.text


def test_welcome_template_escapes_user_values():
    _, html = render_account_welcome(
        name="<script>alert(1)</script>",
        email="ada@example.com",
        password="pw",
        role="student",
        courses=["Tips & <b>Tricks</b>"],
        login_url="http://frontend.test/login",
        platform="Mentversity",
    )
    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    assert "Tips &amp; &lt;b&gt;Tricks&lt;/b&gt;" in html
    assert "<ul" in html

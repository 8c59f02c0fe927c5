import logging
from typing import Sequence

from app.core.config import settings
from app.models.user.user_model import User

from .provider import send_email
from .templates import render_account_welcome

logger = logging.getLogger(__name__)


async def send_account_email(user: User, plain_password: str, course_titles: Sequence[str] = ()) -> bool:
    """Mail the credentials of a freshly created account.

    Returns ``False`` instead of raising: a failed notification never undoes
    the registration that triggered it.
    """
    login_url = f"{str(settings.FRONTEND_BASE_URL).rstrip('/')}/login"
    subject, html = render_account_welcome(
        name=user.name,
        email=user.email,
        password=plain_password,
        role=user.role.value,
        courses=list(course_titles),
        login_url=login_url,
        platform=settings.PLATFORM_NAME,
    )
    try:
        await send_email(user.email, subject, html)
    except Exception as exc:
        logger.warning("Account e-mail to %s failed: %s", user.email, exc)
        return False
    return True

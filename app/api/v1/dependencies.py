import logging
import re
from typing import Callable, Generator, Optional
from urllib.parse import unquote

from fastapi import Depends, HTTPException, Request, UploadFile, status
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from app.core import security
from app.db import session as db_session
from app.models.user.user_model import User, UserRole
from app.services.storage.provider import FilePayload, ObjectStorage, get_storage

log = logging.getLogger(__name__)


def get_db() -> Generator[Session, None, None]:
    db = db_session.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_object_storage() -> ObjectStorage:
    return get_storage()


def _normalize_token_value(raw_token: str | None) -> str | None:
    """Strip quotes, percent-encoding and a ``Bearer`` prefix from a transported token."""

    if raw_token is None:
        return None

    token = unquote(raw_token.strip().strip('"').strip("'"))
    match = re.match(r"^(bearer|token)[\s,:]+(.+)$", token, flags=re.IGNORECASE)
    if match:
        token = match.group(2)
    return token.strip() or None


def _decode_user_from_token(token: str | None, db: Session) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )

    if not token:
        log.warning("Authentication failed: no token supplied.")
        raise credentials_exception

    try:
        payload = jwt.decode(token, security.SECRET_KEY, algorithms=[security.ALGORITHM])
        user_id = int(payload.get("sub"))
    except ExpiredSignatureError:
        log.warning("Authentication failed: token expired.")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except (JWTError, ValueError, TypeError):
        log.warning("Authentication failed: invalid or malformed token.")
        raise credentials_exception

    user = db.get(User, user_id)
    if user is None:
        log.warning("Authentication failed: user %s not found.", user_id)
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")

    return user


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    for candidate in (request.headers.get("Authorization"), request.cookies.get("access_token")):
        token = _normalize_token_value(candidate)
        if token:
            return _decode_user_from_token(token, db)
    return _decode_user_from_token(None, db)


def require_roles(*roles: UserRole) -> Callable[..., User]:
    """Dependency factory: the authenticated user must hold one of ``roles``."""

    allowed = set(roles)

    def _checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            log.warning(
                "User %s (%s) denied; requires %s",
                current_user.id,
                current_user.role.value,
                sorted(r.value for r in allowed),
            )
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return current_user

    return _checker


def ensure_course_access(user: User, course_id: int) -> None:
    """Admins always pass; trainers must teach the course."""

    if user.role == UserRole.ADMIN:
        return
    if user.role == UserRole.TRAINER and course_id in user.teaching_course_ids:
        return
    log.warning("User %s has no write access to course %s", user.id, course_id)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No access to this course")


async def to_file_payload(upload: Optional[UploadFile]) -> Optional[FilePayload]:
    """Read a multipart upload into the payload the services expect."""

    if upload is None or not upload.filename:
        return None
    content = await upload.read()
    return FilePayload(filename=upload.filename, content=content, content_type=upload.content_type)

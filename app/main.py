import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqladmin import Admin
from sqladmin.authentication import AuthenticationBackend
from sqlalchemy import select
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

# Imports de l'application
from app.admin import ADMIN_VIEWS
from app.api.v1.api import api_router
from app.core.config import settings
from app.core.errors import LMSError
from app.core.security import get_password_hash, verify_password
from app.db import base  # noqa: F401  (enregistre tous les modèles)
from app.db.base_class import Base
from app.db.session import SessionLocal, async_engine
from app.models.user.user_model import User, UserRole
from app.schemas.common import fail, ok

# --- Configuration du logging ---
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# --- Initialisation de l'application FastAPI ---
app = FastAPI(
    title=f"{settings.PLATFORM_NAME} LMS API",
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
)


def _sanitize_origin(origin: str | None) -> str | None:
    if not origin:
        return None
    value = origin.strip()
    if not value:
        return None
    if not value.startswith("http"):
        value = f"https://{value}"
    return value.rstrip("/")


def _build_cors_origins() -> list[str]:
    origins = {_sanitize_origin(o) for o in settings.BACKEND_CORS_ORIGINS}
    origins.add(_sanitize_origin(str(settings.FRONTEND_BASE_URL)))
    origins.add(_sanitize_origin(str(settings.BACKEND_BASE_URL)))
    allow_origins = sorted(o for o in origins if o)
    logger.info("CORS origins configurés: %s", allow_origins)
    return allow_origins


# --- Configuration des Middlewares ---
app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_build_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["Authorization", "Content-Type"],
)


# --- Enveloppe d'erreur uniforme ---
_HTTP_ERROR_KINDS = {
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
}


@app.exception_handler(LMSError)
async def lms_error_handler(request: Request, exc: LMSError):
    return JSONResponse(status_code=exc.status_code, content=fail(exc.kind, exc.message))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    kind = _HTTP_ERROR_KINDS.get(exc.status_code, "error")
    return JSONResponse(
        status_code=exc.status_code,
        content=fail(kind, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in jsonable_encoder(exc.errors())
    )
    return JSONResponse(status_code=422, content=fail("validation_error", details or "Invalid request"))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=fail("error", "Internal server error"))


# --- Initialisation de l'Admin ---
class AdminAuth(AuthenticationBackend):
    async def login(self, request: Request) -> bool:
        form = await request.form()
        email = (form.get("username") or "").strip().lower()
        password = form.get("password")

        with SessionLocal() as db:
            user = db.scalar(select(User).where(User.email == email))

        if user and user.role == UserRole.ADMIN and verify_password(password, user.hashed_password):
            request.session.update({"token": "admin_logged_in", "user": user.email})
            return True
        return False

    async def logout(self, request: Request) -> bool:
        request.session.clear()
        return True

    async def authenticate(self, request: Request) -> bool:
        return "token" in request.session


admin = Admin(
    app,
    async_engine,
    authentication_backend=AdminAuth(secret_key=settings.SECRET_KEY),
    base_url="/admin",
)
for view in ADMIN_VIEWS:
    admin.add_view(view)

app.include_router(api_router, prefix=settings.API_PREFIX)

# Fichiers du stockage local
_upload_dir = Path(settings.UPLOAD_DIR)
_upload_dir.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=_upload_dir), name="uploads")


def ensure_default_admin() -> None:
    email = (settings.DEFAULT_ADMIN_EMAIL or "").strip().lower()
    password = settings.DEFAULT_ADMIN_PASSWORD
    if not email or not password:
        return

    with SessionLocal() as session:
        if session.scalar(select(User).where(User.email == email)) is not None:
            logger.info("Administrateur par défaut déjà présent.")
            return
        session.add(
            User(
                email=email,
                name="Administrator",
                hashed_password=get_password_hash(password),
                role=UserRole.ADMIN,
                is_active=True,
            )
        )
        session.commit()
        logger.info("✅ Administrateur par défaut '%s' créé.", email)


# --- Événement de Démarrage ---
@app.on_event("startup")
async def startup():
    logger.info("Vérification et création des tables de la base de données...")
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ Les tables de la base de données sont prêtes.")
    ensure_default_admin()


@app.get("/health")
def health():
    return ok({"status": "ok"})

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi_users.db import SQLAlchemyUserDatabase
from sqlalchemy.exc import SQLAlchemyError

from .database import async_session_maker, init_db
from .errors import AppError, UpstreamFailure
from .kv import MemoryKVStore, SqlKVStore
from .models import User
from .routers import accounts, admin, analytics, calendar, forum, leaderboard, posts
from .services.accounts import AccountService, ensure_verification_codes
from .services.identity import FastAPIUsersAuthProvider
from .settings.config import settings
from .users import UserManager, auth_backend, fastapi_users, get_jwt_strategy

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Donosti Exchange Guide")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uploaded post photos
Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
app.mount(settings.UPLOAD_BASE_URL, StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

# ----------------------
# Route Includes
# ----------------------
app.include_router(
    fastapi_users.get_auth_router(auth_backend),
    prefix="/auth/jwt",
    tags=["auth"]
)
app.include_router(accounts.router)
app.include_router(posts.router)
app.include_router(forum.router)
app.include_router(admin.router)
app.include_router(analytics.router)
app.include_router(calendar.router)
app.include_router(leaderboard.router)


# ----------------------
# Error responses
# ----------------------
@app.exception_handler(AppError)
async def _app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


@app.exception_handler(SQLAlchemyError)
async def _database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return await _app_error_handler(request, UpstreamFailure("Database unavailable"))


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ----------------------
# Startup seeding
# ----------------------
async def seed_verification_codes():
    if settings.KV_BACKEND == "memory":
        await ensure_verification_codes(MemoryKVStore(), settings.DEFAULT_VERIFICATION_CODES)
        return
    async with async_session_maker() as session:
        await ensure_verification_codes(SqlKVStore(session), settings.DEFAULT_VERIFICATION_CODES)


async def create_admin_user():
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        logger.info("ADMIN_EMAIL or ADMIN_PASSWORD not set, skipping admin creation.")
        return

    async with async_session_maker() as session:
        kv = MemoryKVStore() if settings.KV_BACKEND == "memory" else SqlKVStore(session)
        provider = FastAPIUsersAuthProvider(UserManager(SQLAlchemyUserDatabase(session, User)), get_jwt_strategy())
        service = AccountService(kv, provider, admin_emails=settings.ADMIN_EMAILS, admin_code=settings.ADMIN_CODE)
        await service.bootstrap_admin(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD, settings.ADMIN_NAME)


@app.on_event("startup")
async def on_startup():
    await init_db()
    await seed_verification_codes()
    await create_admin_user()

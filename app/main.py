"""
Community Hub — FastAPI application entry-point.

Run with:
    uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from app import models  # noqa: F401  (registers every table on Base.metadata)
from app.config import settings
from app.database import Base, async_session, engine
from app.errors import CommunityError, ErrorKind
from app.services.membership import MembershipManager
from app.services.projects import ProjectService
from app.services.tasks import TaskService

# ── Import routers ──
from app.routers import auth, communities, projects, tasks, users

# ── Logging ──
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.VALIDATION: 422,
}


def install_services(app: FastAPI, session_factory) -> None:
    """Bind the session factory and the services built on it to ``app.state``."""
    app.state.session_factory = session_factory
    app.state.membership_manager = MembershipManager(session_factory)
    app.state.project_service = ProjectService(session_factory)
    app.state.task_service = TaskService(session_factory)


# ── Lifespan: create tables on startup ──
@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    install_services(app, async_session)
    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description="Communities, projects and tasks with role-based membership.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=("*",))


# ── Error handlers ──
@app.exception_handler(CommunityError)
async def community_error_handler(request: Request, exc: CommunityError):
    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.kind, 400),
        content={"detail": exc.reason, "error": exc.kind.value},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    detail = "Internal server error" if settings.is_production else str(exc)
    return JSONResponse(status_code=500, content={"detail": detail})


# ── Register API routers ──
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(communities.router)
app.include_router(projects.router)
app.include_router(tasks.router)


@app.get("/health")
async def health():
    return {"status": "ok", "app": settings.APP_NAME}

from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy import text

from coaching_portal.db.base import SessionLocal, get_db
from coaching_portal.core.config import settings
from coaching_portal.core.logging import configure_logging
from coaching_portal.routers import nudges as nudges_router
from coaching_portal.routers import slack as slack_router
from coaching_portal.routers import surveys as surveys_router
from coaching_portal.routers import checkpoints as checkpoints_router
from coaching_portal.scheduling import NudgeScheduler
from coaching_portal.core.errors import (
    PortalException,
    portal_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

configure_logging(
    service_name="coaching-portal",
    environment=settings.APP_ENV,
    version=settings.APP_VERSION,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if settings.NUDGE_SCHEDULER_ENABLED:
        scheduler = NudgeScheduler(session_factory=SessionLocal)
        scheduler.start()
    app.state.scheduler = scheduler
    yield
    if scheduler is not None:
        scheduler.stop()


app = FastAPI(
    title="Coaching Portal API",
    description=(
        "**Coaching portal nudges and surveys**\n\n"
        "Sends Slack reminders about action items, goals and upcoming sessions, "
        "records button responses, and tells employees which survey they owe next.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(PortalException, portal_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(nudges_router.router)
app.include_router(slack_router.router)
app.include_router(surveys_router.router)
app.include_router(checkpoints_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(request: Request, db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    `scheduler` is "running" only when the in-process dispatch job is active in this worker.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError as exc:
        logger.warning("Health check database probe failed", error=str(exc))
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "status": "ok",
        "db": "ok",
        "env": settings.APP_ENV,
        "scheduler": "running" if scheduler is not None and scheduler.is_running else "off",
    }

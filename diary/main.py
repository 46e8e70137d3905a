from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy import text

from diary.db.base import get_db
from diary.core.config import settings
from diary.core.logging_config import configure_logging
from diary.routers import agreements as agreements_router
from diary.routers import calendar as calendar_router
from diary.routers import days as days_router
from diary.routers import session as session_router
from diary.routers import stats as stats_router
from diary.routers import weekly_comments as weekly_router
from diary.services.session import SessionRegistry
from diary.core.errors import (
    DiaryException,
    diary_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    app.state.sessions.close_all()


app = FastAPI(
    title="Couple Diary API",
    description=(
        "Daily self-scores, notes and thanks for two participants, with "
        "day / week / month roll-ups, shared agreements and weekly reflections.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)
app.state.sessions = SessionRegistry()

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(DiaryException, diary_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(calendar_router.router)
app.include_router(session_router.router)
app.include_router(days_router.router)
app.include_router(stats_router.router)
app.include_router(agreements_router.router)
app.include_router(weekly_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down. No authentication.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}

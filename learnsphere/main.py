from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from learnsphere.auth.routes import users
from learnsphere.core.config import settings
from learnsphere.core.exceptions import register_exception_handlers
from learnsphere.core.log_config import RequestLoggingMiddleware, setup_logging
from learnsphere.core.rate_limit import limiter
from learnsphere.courses.routes import (
    courses,
    enrollments,
    gamification,
    lessons,
    progress,
    quizzes,
    reviews,
)
from learnsphere.db.base import init_db
from learnsphere.db.session import SessionLocal, engine
from learnsphere.payments.routes import payments

setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("creating_tables")
    init_db(engine)
    yield
    engine.dispose()
    logger.info("database_disposed")


app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="Backend API for LearnSphere: courses, quizzes, progress, points and payments",
    version="1.0.0",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]
register_exception_handlers(app, debug=settings.DEBUG)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(users.router, prefix=settings.API_V1_PREFIX, tags=["users"])
app.include_router(courses.router, prefix=settings.API_V1_PREFIX, tags=["courses"])
app.include_router(lessons.router, prefix=settings.API_V1_PREFIX, tags=["lessons"])
app.include_router(quizzes.router, prefix=settings.API_V1_PREFIX, tags=["quizzes"])
app.include_router(progress.router, prefix=settings.API_V1_PREFIX, tags=["progress"])
app.include_router(enrollments.router, prefix=settings.API_V1_PREFIX, tags=["enrollments"])
app.include_router(gamification.router, prefix=settings.API_V1_PREFIX, tags=["gamification"])
app.include_router(reviews.router, prefix=settings.API_V1_PREFIX, tags=["reviews"])
app.include_router(payments.router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "LearnSphere API", "version": "1.0.0", "status": "running"}


@app.get("/health")
async def health_check() -> dict[str, str]:
    db_status = "unknown"

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            db_status = "healthy"
        finally:
            db.close()
    except Exception:
        db_status = "unhealthy"

    overall = "healthy" if db_status == "healthy" else "degraded"
    return {"status": overall, "database": db_status}

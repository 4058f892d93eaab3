"""
Examination System API - Main FastAPI Application

REST backend for an examination system. Every operation is delegated to a
database stored procedure; this service authenticates callers, checks
their role, validates input and shapes the procedures' results as JSON.
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from exam_api.api.responses import error_response
from exam_api.api.routes import (
    auth_router,
    branches_router,
    tracks_router,
    branch_tracks_router,
    courses_router,
    instructor_course_router,
    students_router,
    questions_router,
    exams_router,
    health_router,
)
from exam_api.core.config import settings
from exam_api.core.exceptions import AppError, ProcedureError
from exam_api.core.rate_limit import enforce_api_rate_limit, record_auth_failure
from exam_api.db.gateway import ProcedureGateway

# Configure logging
Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler(settings.log_file),
    ],
)
# Set specific loggers to WARNING to reduce SQLAlchemy noise
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def _terminate_on_task_failure(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    """
    Loop exception handler: an exception nobody retrieved from a task leaves
    the process in an unknown state, so log it and exit.
    """
    exc = context.get("exception")
    if exc is None or context.get("future") is None:
        loop.default_exception_handler(context)
        return
    logger.critical(f"Unhandled exception in background task: {exc!r}", exc_info=exc)
    os._exit(1)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan events handler.
    Opens the database pool on startup and closes it on shutdown.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} ({settings.environment})...")
    loop = asyncio.get_running_loop()
    previous_handler = loop.get_exception_handler()
    loop.set_exception_handler(_terminate_on_task_failure)

    gateway: ProcedureGateway = app.state.gateway
    if settings.db_connect_on_startup:
        try:
            await gateway.get_engine()
        except AppError as e:
            logger.critical(f"Failed to start server: {e.detail or e.message}")
            raise
        logger.info("Database connection established")

    logger.info(f"{settings.app_name} started on port {settings.port}")

    yield

    # Shutdown
    logger.info("Shutting down, closing database connections...")
    try:
        await asyncio.wait_for(gateway.close(), timeout=settings.shutdown_timeout_seconds)
    except asyncio.TimeoutError:
        logger.critical("Forced shutdown after timeout")
        os._exit(1)
    logger.info("Database connections closed")
    loop.set_exception_handler(previous_handler)


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="""
    ## Examination System API

    Branches, tracks, courses, students, instructors, a question bank and
    exams, backed by PostgreSQL stored routines.

    ### Roles:
    - **Instructor**: manages the catalogue, the question bank and exams
    - **Student**: takes exams and reviews corrections

    Authenticate with `POST /api/auth/login` and send the returned token as
    `Authorization: Bearer <token>`.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.state.gateway = ProcedureGateway()

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def count_auth_failures(request: Request, call_next):
    response = await call_next(request)
    record_auth_failure(request, response.status_code)
    return response


if settings.is_development:
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.debug(f"{request.method} {request.url.path}")
        return await call_next(request)


# ============================================
# Exception handlers
# ============================================

@app.exception_handler(ProcedureError)
async def procedure_error_handler(request: Request, exc: ProcedureError):
    """Procedure failures that no route translated; the driver text stays internal"""
    logger.error(f"Stored procedure {exc.procedure} failed on {request.url.path}: {exc.message}")
    return error_response(
        "An error occurred while processing your request",
        exc.status_code,
        error=exc.message,
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.detail or exc.message}")
    return error_response(exc.message, exc.status_code, error=exc.detail, **exc.extra)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and non-integer ids are client errors like any other"""
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = f"Invalid value for {location}" if location else "Invalid request"
    return error_response(message, status.HTTP_400_BAD_REQUEST, error=str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return error_response("Route not found", exc.status_code, path=request.url.path)
    return error_response(str(exc.detail), exc.status_code)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return error_response(
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        error=str(exc),
    )


# ============================================
# Routers
# ============================================

app.include_router(
    health_router,
    prefix="/health",
    tags=["Health"],
)

api_routers = [
    (auth_router, "/api/auth", "Authentication"),
    (branches_router, "/api/branches", "Branches"),
    (tracks_router, "/api/tracks", "Tracks"),
    (branch_tracks_router, "/api/branch-tracks", "Branch Tracks"),
    (courses_router, "/api/courses", "Courses"),
    (instructor_course_router, "/api/instructor-course", "Instructor Courses"),
    (students_router, "/api/students", "Students"),
    (questions_router, "/api/questions", "Questions"),
    (exams_router, "/api/exams", "Exams"),
]

for router, prefix, tag in api_routers:
    app.include_router(
        router,
        prefix=prefix,
        tags=[tag],
        dependencies=[Depends(enforce_api_rate_limit)],
    )


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "documentation": "/docs",
        "health_check": "/health",
        "endpoints": {prefix.rsplit("/", 1)[-1]: prefix for _, prefix, _ in api_routers},
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "exam_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )

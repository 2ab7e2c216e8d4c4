"""E-Learning API application: wiring, lifespan and error envelope."""

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.admin.router import router as admin_router
from src.auth.router import router as auth_router
from src.auth.router import set_auth_service_getter
from src.auth.service import AuthService
from src.config.settings import get_settings
from src.core.context import get_request_id
from src.core.database.async_cassandra import (
    init_async_cassandra,
    shutdown_async_cassandra,
)
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import RequestContextMiddleware
from src.core.redis import init_redis, shutdown_redis
from src.courses.dependencies import set_course_service_getter
from src.courses.router import router as courses_router
from src.courses.service import CourseService
from src.enrollments.dependencies import set_enrollment_service_getter
from src.enrollments.router import router as enrollments_router
from src.enrollments.service import EnrollmentService
from src.health import router as health_router
from src.media.access import PlaybackAccessService
from src.media.router import router as media_router
from src.media.router import set_playback_access_getter
from src.utils.identifiers import InvalidIdentifierError


settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


@dataclass
class AppState:
    """Services shared by every request, built once per process."""

    cassandra_session: Any = None
    auth_service: AuthService | None = None
    course_service: CourseService | None = None
    enrollment_service: EnrollmentService | None = None
    playback_access_service: PlaybackAccessService | None = None


app_state = AppState()


def _service_getter(name: str) -> Callable[[], Any]:
    def getter() -> Any:
        service = getattr(app_state, name)
        if service is None:
            msg = f"{name} not initialized"
            raise RuntimeError(msg)
        return service

    getter.__name__ = f"get_{name}"
    return getter


get_auth_service = _service_getter("auth_service")
get_course_service = _service_getter("course_service")
get_enrollment_service = _service_getter("enrollment_service")
get_playback_access_service = _service_getter("playback_access_service")

set_auth_service_getter(get_auth_service)
set_course_service_getter(get_course_service)
set_enrollment_service_getter(get_enrollment_service)
set_playback_access_getter(get_playback_access_service)


def init_services(session: Any, keyspace: str, redis_client: Any = None) -> None:
    """Build every service on top of one Cassandra session."""
    courses = CourseService(session=session, keyspace=keyspace)
    enrollments = EnrollmentService(
        session=session, keyspace=keyspace, course_service=courses
    )
    app_state.cassandra_session = session
    app_state.auth_service = AuthService(
        session=session, keyspace=keyspace, redis=redis_client
    )
    app_state.course_service = courses
    app_state.enrollment_service = enrollments
    app_state.playback_access_service = PlaybackAccessService(
        course_service=courses, enrollment_service=enrollments
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    redis_client = await init_redis()
    if redis_client is None:
        logger.warning("login_rate_limit_disabled")

    try:
        session = await init_async_cassandra()
    except ConnectionError as e:
        # Health stays up and reports "degraded"; API routes answer 500
        logger.error("database_init_skipped", error=str(e))
    else:
        init_services(session, settings.cassandra_keyspace, redis_client)
        logger.info("services_initialized")

    yield

    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def _error_body(
    request: Request, status_code: int, message: str, **extra: Any
) -> dict[str, Any]:
    return {
        "error": True,
        "message": message,
        "status_code": status_code,
        "request_id": getattr(request.state, "request_id", None) or get_request_id(),
        **extra,
    }


def _bad_request(
    request: Request, message: str, details: list[dict[str, str]]
) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(
            request, status.HTTP_400_BAD_REQUEST, message, details=details
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Every error leaves as the same JSON envelope; 5xx never leak details."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )
        message = (
            "Internal server error"
            if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR
            else str(exc.detail)
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        errors = exc.errors()
        logger.warning("validation_error", errors=errors, path=request.url.path)
        details = [
            {
                "field": ".".join(str(part) for part in err.get("loc", [])),
                "message": err.get("msg", "Invalid value"),
            }
            for err in errors
        ]
        return _bad_request(request, "Validation error", details)

    @app.exception_handler(InvalidIdentifierError)
    async def invalid_identifier_handler(
        request: Request, exc: InvalidIdentifierError
    ) -> ORJSONResponse:
        logger.info("invalid_identifier", field=exc.field, path=request.url.path)
        return _bad_request(
            request, exc.message, [{"field": exc.field, "message": exc.message}]
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                request,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Internal server error",
            ),
        )


def create_app() -> FastAPI:
    settings = get_settings()
    docs_enabled = settings.is_development

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="E-Learning Marketplace API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )
    # Added last so it wraps CORS and sees every response
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    register_exception_handlers(app)

    for router in (
        health_router,
        auth_router,
        courses_router,
        enrollments_router,
        media_router,
        admin_router,
    ):
        app.include_router(router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        return {
            "message": "E-Learning API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()

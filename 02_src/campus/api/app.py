"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..app import Application
from ..errors import CampusError
from ..logging_config import get_logger
from .routes import attendance, directory, messaging, notifications

logger = get_logger(__name__)

# Global application instance
_app: Application | None = None


def get_app() -> Application:
    """Get the global application instance."""
    global _app
    if not _app:
        _app = Application()
    return _app


def _register_error_handlers(fastapi_app: FastAPI) -> None:
    @fastapi_app.exception_handler(CampusError)
    async def campus_error_handler(request: Request, exc: CampusError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "%s %s failed: %s",
                request.method,
                request.url.path,
                exc.message,
                exc_info=exc,
            )
        else:
            logger.info(
                "%s %s rejected",
                request.method,
                request.url.path,
                extra={"context": {"status": exc.status_code, "code": exc.code}},
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @fastapi_app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        field = None
        if errors:
            loc = [str(part) for part in errors[0].get("loc", ()) if part != "body"]
            field = loc[-1] if loc else None
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation_error",
                "message": errors[0].get("msg", "Invalid request") if errors else "Invalid request",
                "details": {"field": field} if field else {},
            },
        )

    @fastapi_app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "message": "Internal server error"},
        )


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Without an explicit `application` the global instance is started and
    stopped by the lifespan handler.
    """
    managed = application is None
    application = application or get_app()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if managed:
            await application.start()
        yield
        if managed:
            await application.stop()

    fastapi_app = FastAPI(
        title="Campus API",
        description="Attendance and messaging API for office, teachers and students",
        version="0.1.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=application.settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(fastapi_app)

    fastapi_app.include_router(directory.create_directory_router(application))
    fastapi_app.include_router(messaging.create_messaging_router(application))
    fastapi_app.include_router(notifications.create_notifications_router(application))
    fastapi_app.include_router(attendance.create_attendance_router(application))

    return fastapi_app

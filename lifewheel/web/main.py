from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lifewheel.infrastructure.config import get_settings
from lifewheel.infrastructure.db import initialise_database
from lifewheel.infrastructure.exceptions import (
    AssessmentNotFoundError,
    CategoryNotFoundError,
    InvalidTransitionError,
    PermissionError,
    UserNotFoundError,
    WheelOfLifeError,
    log_error_details,
)
from lifewheel.infrastructure.logging import clear_context, configure_logging, get_logger
from lifewheel.web.dependencies import app_registry, app_session_factory
from lifewheel.web.routes import api, pages

logger = get_logger(__name__)


def status_for_error(exc: WheelOfLifeError) -> int:
    if isinstance(exc, (UserNotFoundError, AssessmentNotFoundError, CategoryNotFoundError)):
        return 404
    if isinstance(exc, PermissionError):
        return 403
    if isinstance(exc, InvalidTransitionError):
        return 409
    return 400


async def wheel_of_life_error_handler(request: Request, exc: WheelOfLifeError) -> JSONResponse:
    status_code = status_for_error(exc)
    logger.info(
        "Request %s %s failed with %d",
        request.method,
        request.url.path,
        status_code,
        extra=log_error_details(exc),
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.user_message, "error": type(exc).__name__, "details": exc.details},
    )


def create_application() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.logging, settings.app.environment)

    app = FastAPI(
        title=settings.app.title,
        version=settings.app.version,
        debug=settings.app.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(WheelOfLifeError, wheel_of_life_error_handler)

    @app.middleware("http")
    async def reset_log_context(request: Request, call_next):
        try:
            return await call_next(request)
        finally:
            clear_context()

    app.include_router(api.router)
    app.include_router(pages.router)

    @app.on_event("startup")
    async def startup_event() -> None:
        session_factory = app_session_factory(app)
        initialise_database(session_factory.kw["bind"])
        app_registry(app)

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        app_registry(app).close_all()

    return app


app = create_application()

"""FastAPI application factory for the JSON API."""

from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from energy_tracker import __version__, audit
from energy_tracker.config import Config, load_config
from energy_tracker.exceptions import (
    AccessDeniedError,
    IntegrityConflictError,
    InvalidInputError,
    NotifierNotConfiguredError,
)
from energy_tracker.logging import configure_logging


def create_app(config_path: Path | None = None, config: Config | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config_path: Path to the configuration file.
        config: Already loaded configuration; takes precedence over config_path.

    Returns:
        Configured FastAPI application.
    """
    if config is None:
        config = load_config(config_path)

    configure_logging(config)
    audit.configure(enabled=config.logging.enabled)

    app = FastAPI(
        title="Energy Tracker",
        description="Multi-tenant electricity expense tracking",
        version=__version__,
    )
    app.state.config = config

    from energy_tracker.web.routes import audit_logs, dashboard, estimates, expenses, reports

    app.include_router(dashboard.router)
    app.include_router(expenses.router)
    app.include_router(estimates.router)
    app.include_router(reports.router)
    app.include_router(audit_logs.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "version": __version__}

    def error_response(status_code: int, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError):
        return error_response(status.HTTP_400_BAD_REQUEST, exc)

    @app.exception_handler(IntegrityConflictError)
    async def integrity_conflict_handler(request: Request, exc: IntegrityConflictError):
        return error_response(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(AccessDeniedError)
    async def access_denied_handler(request: Request, exc: AccessDeniedError):
        return error_response(status.HTTP_403_FORBIDDEN, exc)

    @app.exception_handler(NotifierNotConfiguredError)
    async def notifier_handler(request: Request, exc: NotifierNotConfiguredError):
        return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc)

    return app

"""Application factory for creating FastAPI instances."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ferry_captain import __version__
from ferry_captain.core.exceptions import BackendError
from ferry_captain.core.logging import get_logger, install_middlewares, setup_logging
from ferry_captain.core.services import CaptainServices
from ferry_captain.core.settings import Settings, get_settings
from ferry_captain.storage.interfaces import TripBackendIface

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    settings: Settings = app.state.settings
    logger.info(
        "Starting ferry captain service",
        app_env=settings.app_env,
        backend_configured=app.state.services is not None,
    )

    yield

    # Shutdown
    if app.state.services is not None:
        await app.state.services.aclose()
    logger.info("Ferry captain service stopped")


def build_backend(settings: Settings) -> TripBackendIface | None:
    """Create the backend adapter named by the settings, if any."""
    if not settings.backend_configured:
        return None

    from ferry_captain.integrations.supabase import SupabaseBackend

    return SupabaseBackend(
        settings.backend_url,
        settings.backend_api_key,
        timeout=settings.backend_timeout_sec,
    )


def create_app(
    settings: Settings | None = None, backend: TripBackendIface | None = None
) -> FastAPI:
    """
    Application factory with settings injection.

    Args:
        settings: Optional settings instance. If None, reads the environment.
        backend: Optional backend to use instead of the configured adapter.

    Returns:
        Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()

    setup_logging(settings.log_level)

    app = FastAPI(
        title="Ferry Captain",
        version=__version__,
        description="Captain trip stop progression for multi-stop ferry trips",
        lifespan=lifespan,
    )

    # Store settings and services in app state for dependency injection
    app.state.settings = settings
    backend = backend or build_backend(settings)
    app.state.services = CaptainServices(backend, settings) if backend else None

    install_middlewares(app)
    setup_routes(app)
    setup_error_handlers(app)

    return app


def setup_routes(app: FastAPI) -> None:
    """Configure application routes."""
    from ferry_captain.api import api_router
    from ferry_captain.api.health import router as health_router
    from ferry_captain.api.metrics import router as metrics_router

    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(api_router)


def setup_error_handlers(app: FastAPI) -> None:
    """Configure error handlers."""

    @app.exception_handler(BackendError)
    async def backend_error_handler(request: Request, exc: BackendError):
        logger.warning("Unhandled backend error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=502, content={"detail": exc.message})

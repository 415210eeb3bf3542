"""Build-step HTTP service exposing console commands to CI pipelines."""

import logging
import time
import uuid

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from .api import steps_router
from .config import Settings, get_settings
from .exceptions import (
    ApiKeyMissingException,
    AuthenticationException,
    ConfigurationException,
    ConsoleToolsException,
)
from .models.response_models import ErrorResponse, HealthResponse
from .services.console_client import ConsoleClient
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(include_request_id=True)

    app = FastAPI(
        title=settings.app_name,
        description="Build steps running AIP Console jobs and reporting a build result",
        version=settings.app_version,
        docs_url="/docs" if settings.enable_docs else None,
        redoc_url="/redoc" if settings.enable_docs else None,
        openapi_tags=[
            {"name": "health", "description": "Health check and console connectivity"},
            {"name": "steps", "description": "Build steps backed by AIP Console jobs"},
        ],
    )

    setup_middleware(app)
    setup_exception_handlers(app)
    setup_routers(app, settings)

    return app


def setup_middleware(app: FastAPI) -> None:
    """Setup application middleware."""

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log incoming requests with timing."""
        start_time = time.time()
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        logger.info(
            f"[{request_id}] {request.method} {request.url.path}",
            extra={"request_id": request_id},
        )
        response = await call_next(request)
        process_time = time.time() - start_time
        logger.info(
            f"[{request_id}] {response.status_code} - {process_time:.3f}s",
            extra={"request_id": request_id},
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.3f}"
        return response


def _error_response(request: Request, status_code: int, error: str, exc: ConsoleToolsException) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            message=exc.message,
            error_code=exc.error_code,
            details={"request_id": getattr(request.state, "request_id", None)},
        ).model_dump(mode="json"),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Setup global exception handlers."""

    @app.exception_handler(ConfigurationException)
    async def configuration_error_handler(request: Request, exc: ConfigurationException):
        logger.error(f"Configuration error: {exc}")
        return _error_response(request, status.HTTP_400_BAD_REQUEST, "Configuration Error", exc)

    @app.exception_handler(AuthenticationException)
    async def authentication_error_handler(request: Request, exc: AuthenticationException):
        logger.error(f"Authentication error: {exc}")
        return _error_response(request, status.HTTP_401_UNAUTHORIZED, "Authentication Error", exc)

    @app.exception_handler(ConsoleToolsException)
    async def console_error_handler(request: Request, exc: ConsoleToolsException):
        logger.error(f"AIP Console error: {exc}")
        return _error_response(request, status.HTTP_502_BAD_GATEWAY, "AIP Console Error", exc)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error="HTTP Error", message=str(exc.detail)).model_dump(mode="json"),
        )


def setup_routers(app: FastAPI, settings: Settings) -> None:
    """Setup API routers."""

    @app.get("/health", response_model=HealthResponse, tags=["health"], summary="Health check")
    async def health_check():
        current = get_settings()
        console_status = "unknown"
        api_version = None
        try:
            async with ConsoleClient(current) as client:
                api_version = (await client.get_api_info()).api_version
            console_status = "healthy"
        except ApiKeyMissingException:
            console_status = "not_configured"
        except ConsoleToolsException as e:
            logger.warning(f"AIP Console health check failed: {e.message}")
            console_status = "unreachable"

        return HealthResponse(
            version=current.app_version,
            console_url=current.console_url,
            console_status=console_status,
            console_api_version=api_version,
        )

    app.include_router(steps_router, prefix=f"{settings.api_prefix}/{settings.api_version}")


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "aip_console_tools.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ebird_proxy.app.api.config import router as config_router
from ebird_proxy.app.api.ebird import router as ebird_router
from ebird_proxy.app.core.config import Settings, settings as default_settings
from ebird_proxy.app.core.http_client import init_http_client
from ebird_proxy.app.core.logging import get_logger, setup_logging
from ebird_proxy.app.middleware.request_id import RequestIdMiddleware
from ebird_proxy.app.services.ebird_client import EBirdClient
from ebird_proxy.app.services.pipeline import ProxyPipeline


def create_app(
    app_settings: Settings | None = None,
    pipeline: ProxyPipeline | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        app_settings: Settings to use instead of the environment-loaded ones
        pipeline: Pre-built pipeline (tests inject one with a fake clock)

    Returns:
        Configured FastAPI application instance
    """
    app_settings = app_settings or default_settings

    setup_logging(app_settings)
    logger = get_logger(__name__)

    if pipeline is None:
        fetcher = EBirdClient(
            base_url=app_settings.ebird_base_url,
            api_key=app_settings.ebird_api_key,
            timeout=app_settings.ebird_timeout,
        )
        pipeline = ProxyPipeline.from_settings(app_settings, fetcher)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[dict, None]:
        """Open the pooled upstream HTTP client for the life of the process."""
        async with init_http_client(app_settings) as http_client:
            if not app_settings.ebird_api_key:
                logger.error(
                    "EBIRD_API_KEY not set; proxied requests will fail with 500",
                    extra={"fault": "configuration"},
                )
            logger.info(
                "Application startup complete",
                extra={
                    "upstream": app_settings.ebird_base_url,
                    "allowed_paths": len(app_settings.allowed_paths),
                    "debug_mode": app_settings.debug,
                },
            )
            yield {"http_client": http_client}

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="eBird Proxy",
        description="Keeps the eBird API key server-side, with path allowlisting, caching and rate limiting",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.pipeline = pipeline

    # Request ID middleware for log correlation
    app.add_middleware(RequestIdMiddleware)

    app.include_router(ebird_router)
    app.include_router(config_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Report in-memory state and whether the upstream credential is set.

        Never calls eBird, so probes do not spend upstream quota.
        """
        proxy: ProxyPipeline = app.state.pipeline
        health_status: dict[str, Any] = {"status": "ok", "components": {}}

        health_status["components"]["cache"] = {
            "status": "ok",
            "entries": await proxy.cache.size(),
        }
        health_status["components"]["rate_limiter"] = {
            "status": "ok",
            "clients": await proxy.rate_limiter.size(),
        }

        if proxy.fetcher.has_credential:
            health_status["components"]["upstream"] = {"status": "ok"}
        else:
            health_status["status"] = "degraded"
            health_status["components"]["upstream"] = {
                "status": "error",
                "error": "EBIRD_API_KEY is not configured",
            }

        return health_status

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Never returns a traceback to the client; debug mode adds the
        exception message and type.
        """
        request_id = getattr(request.state, "request_id", "unknown")

        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
            },
        )

        content: dict[str, Any] = {
            "error": "internal_error",
            "message": "Internal server error",
            "request_id": request_id,
        }
        if app_settings.debug:
            content["message"] = str(exc)
            content["exception_type"] = type(exc).__name__

        return JSONResponse(
            status_code=500,
            content=content,
            headers={"Access-Control-Allow-Origin": app_settings.cors_allow_origin},
        )

    return app


# Create the application instance
app = create_app()

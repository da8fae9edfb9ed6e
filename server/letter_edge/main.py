# FastAPI application factory with lifespan management.
# Entrypoint: uvicorn letter_edge.main:create_app --factory --host 0.0.0.0 --port 8080

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from letter_edge.config import Settings, get_settings
from letter_edge.exceptions import register_exception_handlers
from letter_edge.geo_router import GeoRouter, GeoRoutingConfig
from letter_edge.logging_config import configure_logging
from letter_edge.middleware import GeoRoutingMiddleware, RequestContextMiddleware
from letter_edge.rate_limit import RateLimitConfig, RateLimiter, RateLimitStore, limiter
from letter_edge.routes import countries, debug, health, letters
from letter_edge.routes import prometheus as prometheus_routes
from letter_edge.security import ContentSimilarityGuard
from letter_edge.services.letters import LetterIntakeService, TemplateLetterComposer
from letter_edge.services.metrics import EdgeMetrics

logger = structlog.get_logger(__name__)


async def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Structured JSON 429 for the outer slowapi limit.

    Retry-After is the window of the limit that was hit.
    """
    retry_after = exc.limit.limit.get_expiry() if exc.limit is not None else 60
    logger.warning(
        "http_rate_limit_exceeded",
        path=request.url.path,
        method=request.method,
        detail=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={"error": f"Rate limit exceeded: {exc.detail}", "type": "RateLimitExceeded"},
        headers={"Retry-After": str(retry_after)},
    )


def init_state(app: FastAPI, settings: Settings) -> None:
    """Create the per-process stores and services on app.state."""
    metrics = EdgeMetrics()
    store = RateLimitStore(high_water_mark=settings.rate_limit_store_high_water)
    rate_limiter = RateLimiter(store, default_config=RateLimitConfig.from_settings(settings))
    similarity_guard = ContentSimilarityGuard(
        max_duplicates=settings.duplicate_content_max,
        window_seconds=settings.duplicate_content_window_seconds,
    )

    app.state.settings = settings
    app.state.metrics = metrics
    app.state.rate_limiter = rate_limiter
    app.state.letter_intake = LetterIntakeService(
        TemplateLetterComposer(), similarity_guard, metrics=metrics
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup/shutdown. Everything is in memory; nothing to close."""
    settings = get_settings()
    init_state(app, settings)
    logger.info(
        "edge_started",
        environment=settings.environment,
        rate_limit_max=settings.rate_limit_max,
        rate_limit_window_seconds=settings.rate_limit_window_seconds,
    )
    yield
    logger.info("edge_stopped", rate_limit_entries=len(app.state.rate_limiter.store))


def _cors_origins(settings: Settings) -> list[str]:
    """CORS origins from ALLOWED_ORIGINS. Empty → deny all."""
    origins = settings.origin_list
    if not origins:
        logger.warning(
            "cors_no_origins_configured",
            hint="Set ALLOWED_ORIGINS env var. Cross-origin requests will be rejected.",
        )
    return origins


def create_app() -> FastAPI:
    """Application factory. Invoked by: uvicorn letter_edge.main:create_app --factory"""
    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        json_output=settings.log_json,
        redact_ips=settings.is_production,
    )

    app = FastAPI(
        title="Letter Tool Edge",
        description="Geo routing and admission control for the letter tool",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

    # The router is pure config, so it exists before lifespan runs
    geo_router = GeoRouter(GeoRoutingConfig.from_settings(settings))
    app.state.geo_router = geo_router

    # Middleware order (Starlette applies in reverse): CORS → RequestContext → GeoRouting
    app.add_middleware(GeoRoutingMiddleware, router=geo_router)
    app.add_middleware(RequestContextMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(settings),
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(prometheus_routes.router, tags=["prometheus"])
    app.include_router(letters.router, tags=["letters"])
    if settings.enable_debug_routes:
        app.include_router(debug.router, prefix="/debug", tags=["debug"])
    # Catch-all /{country} routes go last
    app.include_router(countries.router, tags=["countries"])

    return app

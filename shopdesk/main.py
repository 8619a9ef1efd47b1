"""
Shopdesk order fulfillment service
Orders, stock, customers, bulk product import and courier dispatch
"""

import os
import subprocess
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from shared.core import ServiceHealth, setup_logging, RequestLoggingMiddleware, get_logger
from shopdesk.core_settings import Settings, get_settings
from shopdesk.domain.errors import ShopdeskError
from shopdesk.infrastructure import db
from shopdesk.infrastructure.pathao import PathaoClientRegistry
from shopdesk.infrastructure.rate_limit import (
    RateLimiter,
    RateLimitMiddleware,
    RateLimitStore,
    build_rate_limit_store,
)
from shopdesk.api.customers import router as customers_router
from shopdesk.api.history import router as history_router
from shopdesk.api.orders import router as orders_router
from shopdesk.api.pathao import router as pathao_router
from shopdesk.api.products import router as products_router

SERVICE_NAME = "shopdesk"
SERVICE_DESCRIPTION = "Order fulfillment service: orders, stock, customers and courier dispatch"

logger = get_logger(__name__)

def _run_migrations() -> None:
    logger.info("Running database migrations")
    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            cwd=os.path.join(os.path.dirname(__file__), ".."),
            capture_output=True,
            text=True,
            check=False
        )
    except OSError as e:
        logger.error(f"Migration error: {e}")
        return
    if result.returncode != 0:
        logger.warning(f"Migration output: {result.stderr}")
    else:
        logger.info("Database migrations completed")

def _missing_fields(errors) -> list:
    fields = []
    for error in errors:
        if error.get("type") != "missing":
            continue
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        if loc:
            fields.append(".".join(loc))
    return fields

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ShopdeskError)
    async def shopdesk_error_handler(request: Request, exc: ShopdeskError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__}: {exc.message}", extra={'extra_fields': {'path': request.url.path}})
        else:
            logger.info(f"{type(exc).__name__}: {exc.message}", extra={'extra_fields': {'path': request.url.path}})
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        missing = _missing_fields(errors)
        content = {
            "success": False,
            "error": "Missing required fields" if missing else "Invalid request",
            "missingFields": missing,
            "details": [
                {"field": ".".join(str(p) for p in e.get("loc", ())), "message": e.get("msg")}
                for e in errors
            ],
        }
        return JSONResponse(status_code=400, content=content)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}", exc_info=True)
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})

def create_app(
    settings: Optional[Settings] = None,
    rate_limit_store: Optional[RateLimitStore] = None,
    pathao_registry: Optional[PathaoClientRegistry] = None,
    engine: Optional[Engine] = None,
) -> FastAPI:
    settings = settings or get_settings()
    engine = engine or db.engine
    store = rate_limit_store or build_rate_limit_store(settings.REDIS_URL, settings.RATE_LIMIT_WINDOW_SECONDS)
    registry = pathao_registry or PathaoClientRegistry(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifecycle management"""
        logger.info(f"Starting {SERVICE_NAME} version {settings.SERVICE_VERSION}")
        if settings.RUN_MIGRATIONS:
            _run_migrations()
        try:
            db.init_models(engine)
            logger.info("Database models initialized")
        except Exception as e:
            logger.error(f"Failed to initialize database models: {e}")
            raise

        yield

        logger.info(f"Shutting down {SERVICE_NAME}")
        registry.close()

    app = FastAPI(
        title=SERVICE_NAME,
        description=SERVICE_DESCRIPTION,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )
    app.state.settings = settings
    app.state.pathao_registry = registry

    app.add_middleware(
        RateLimitMiddleware,
        limiter=RateLimiter(store, settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS),
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
    )

    register_exception_handlers(app)

    health_service = ServiceHealth(SERVICE_NAME, settings.SERVICE_VERSION, engine, cache_ping=store.ping)
    app.include_router(health_service.create_health_router())

    app.include_router(orders_router)
    app.include_router(products_router)
    app.include_router(customers_router)
    app.include_router(pathao_router)
    app.include_router(history_router)

    @app.get("/")
    async def root():
        return {
            "service": SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "status": "running",
            "docs": "/api/docs"
        }

    @app.get("/info")
    async def info():
        """Service information endpoint"""
        return {
            "service": SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "description": SERVICE_DESCRIPTION,
            "endpoints": {
                "health": "/health",
                "ready": "/health/ready",
                "live": "/health/live",
                "metrics": "/metrics",
                "docs": "/api/docs"
            }
        }

    return app

setup_logging(
    service_name=SERVICE_NAME,
    level=get_settings().LOG_LEVEL,
    version=get_settings().SERVICE_VERSION,
)

app = create_app()

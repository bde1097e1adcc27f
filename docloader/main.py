"""
FastAPI application factory.
"""

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docloader.config import get_settings
from docloader.core.exceptions import ConfigurationException
from docloader.core.logging import setup_logging, get_logger
from docloader.core.error_handlers import register_error_handlers
from docloader.core.middleware import RequestContextMiddleware
from docloader.api.routes import router as api_router

settings = get_settings()


# ─── Lifespan: startup / shutdown ─────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging and refuse to start with an unusable mapping."""
    logger = get_logger(__name__)

    setup_logging(level=settings.log_level, log_format=settings.log_format)
    try:
        config = settings.pipeline_config()
    except ConfigurationException as exc:
        logger.error(
            "Invalid load configuration",
            extra={"error_message": exc.message, "details": exc.details},
        )
        raise

    logger.info(
        "Application starting",
        extra={
            "app": settings.app_name,
            "version": settings.app_version,
            "env": settings.app_env,
            "database": config.database,
            "collection": config.collection,
            "fields": len(config.fields),
            "indexes": len(config.indexes),
            "mode": "upsert" if config.upsert else "insert",
        },
    )

    yield

    logger.info("Application shut down gracefully.")


# ─── App factory ──────────────────────────────────────────────────────

def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Middleware (order matters — outermost first)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(RequestContextMiddleware)

    register_error_handlers(application)

    application.include_router(api_router, prefix="/api/v1")

    @application.get("/health", tags=["Health"])
    async def health_check() -> dict:
        return {
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.app_version,
        }

    return application


app = create_app()

"""
Main FastAPI application for the RadioCare chatbot.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import chat, coverage, alerts
from .services import get_services, initialize_services
from .middleware.metrics import MetricsMiddleware, metrics_endpoint
from config.settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(f"{settings.brand_name} chatbot starting up...")

    # Initialize database (if configured)
    session_factory = None
    if settings.database_url:
        try:
            from database.session import init_db
            session_factory = await init_db(settings.database_url)
            logger.info("Database initialized")
        except Exception as e:
            logger.warning(f"Database init failed (running with in-memory stores): {e}")

    initialize_services(session_factory)

    # Report catalog problems without refusing to start
    services = get_services()
    report = services.catalog.validate()
    if report.valid:
        logger.info(f"Context catalog valid: {report.count} contexts")
    else:
        for error in report.errors:
            logger.error(f"Context catalog: {error}")

    logger.info(f"{settings.brand_name} chatbot ready")
    yield
    logger.info(f"{settings.brand_name} chatbot shutting down...")

    await services.shutdown()

    # Close database
    if session_factory is not None:
        from database.session import close_db
        await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        description="Support chat for radiotherapy patients with context selection, "
                    "severity alerts and Ayushman Bharat coverage follow-up.",
        version=settings.api_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Prometheus metrics middleware
    app.add_middleware(MetricsMiddleware)

    # --- Routers ---
    app.include_router(chat.router, tags=["Chat"])
    app.include_router(coverage.router, tags=["Coverage"])
    app.include_router(alerts.router, tags=["Alerts"])

    # --- Prometheus metrics endpoint ---
    app.get("/metrics", tags=["Monitoring"])(metrics_endpoint)

    # Root endpoint
    @app.get("/")
    async def root():
        return {
            "service": f"{settings.brand_name} Patient Support Chat",
            "version": settings.api_version,
            "status": "operational",
            "docs": "/docs",
        }

    # Health check
    @app.get("/health")
    async def health():
        services = get_services()
        return {
            "status": "healthy" if services.is_ready else "degraded",
            "services": services.health(),
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)

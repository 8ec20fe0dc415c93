"""FastAPI application setup"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from lms_gamification.api.routes import router
from lms_gamification.api.middleware import setup_cors, setup_rate_limiting
from lms_gamification.config import LOG_LEVEL, ENABLE_METRICS, validate_config
from lms_gamification.exceptions import (
    GamificationError,
    InvalidArgumentError,
    NotFoundError,
    ConcurrencyConflictError,
)
from lms_gamification.observability.metrics import errors_total
from lms_gamification.observability.metrics_middleware import setup_metrics_middleware
from lms_gamification.services.container import ServiceContainer, init_container, set_container

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL)
)

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    InvalidArgumentError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConcurrencyConflictError: status.HTTP_409_CONFLICT,
}


def status_code_for(exc: GamificationError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application"""
    logger.info("Starting gamification API server...")
    yield
    logger.info("Shutting down gamification API server...")


def create_api_application(container: ServiceContainer = None) -> FastAPI:
    """
    Create and configure FastAPI application

    Args:
        container: Pre-built service container; a default in-memory one is
            initialized when omitted
    """
    validate_config()

    if container is None:
        init_container()
    else:
        set_container(container)

    app = FastAPI(
        title="LMS Gamification API",
        description="XP, streaks, achievements and leaderboards for learners",
        version="1.0.0",
        lifespan=lifespan
    )

    # Setup middleware
    setup_cors(app)
    setup_rate_limiting(app)
    setup_metrics_middleware(app)

    # Include routes
    app.include_router(router)
    if ENABLE_METRICS:
        @app.get("/metrics", include_in_schema=False)
        async def metrics_endpoint():
            """Prometheus scrape target"""
            return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(GamificationError)
    async def gamification_exception_handler(request: Request, exc: GamificationError):
        errors_total.labels(error_type=type(exc).__name__, component="service").inc()
        return JSONResponse(
            status_code=status_code_for(exc),
            content=exc.to_dict()
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(exc)}
        )

    logger.info("FastAPI application created")

    return app

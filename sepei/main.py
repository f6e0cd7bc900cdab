"""FastAPI application for the SEPEI UNIDO voting service."""
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sepei.api.deps import get_db
from sepei.api.v1.router import api_router
from sepei.core.config import Settings, settings
from sepei.core.logging_config import get_logger, setup_logging
from sepei.core.rate_limit import limiter
from sepei.middleware import LoggingMiddleware
from sepei.middleware.logging import API_VERSION_HEADER, REQUEST_ID_HEADER

logger = get_logger(__name__)


def health_check(db: Session = Depends(get_db)) -> dict:
    """
    Liveness plus a database round trip.

    Raises:
        HTTPException: 503 with the same body when the database is unreachable
    """
    body = {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": settings.APP_VERSION,
        "database": {"status": "connected"},
    }
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("health_check_failed", error=str(e))
        body["status"] = "unhealthy"
        body["database"]["status"] = "unreachable"
        raise HTTPException(status_code=503, detail=body)
    return body


def create_app(app_settings: Settings = settings) -> FastAPI:
    """Build the application: logging, rate limits, middleware and routes."""
    setup_logging(level=app_settings.LOG_LEVEL)
    app_settings.validate_production_config()

    logger.info(
        "application_starting",
        app_title=app_settings.APP_TITLE,
        app_version=app_settings.APP_VERSION,
        environment=app_settings.ENVIRONMENT,
    )

    application = FastAPI(
        title=app_settings.APP_TITLE,
        description=app_settings.APP_DESCRIPTION,
        version=app_settings.APP_VERSION,
    )

    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    application.add_middleware(LoggingMiddleware, api_version=app_settings.APP_VERSION)
    # Session and admin tokens travel in cookies
    application.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, API_VERSION_HEADER],
    )

    application.include_router(api_router)
    application.add_api_route("/health", health_check, methods=["GET"], tags=["health"])
    return application


app = create_app()

"""
DEALROOM API - Main Application Entry Point

FastAPI backend for deal data room access control and audit.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.dealroom_core.exceptions import (
    ConfigurationError,
    DealRoomError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    StorageUnavailableError,
)

from dealroom.api.config import settings
from dealroom.api.db.session import init_db, close_db
from dealroom.api.services.data_room import init_data_room, close_data_room
from dealroom.api.services.audit_archive import init_audit_archive, close_audit_archive

logger = logging.getLogger(__name__)


# Most specific class first
ERROR_STATUS = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidInputError, status.HTTP_400_BAD_REQUEST),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (StorageUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def status_for(error: DealRoomError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def dealroom_error_handler(request: Request, exc: DealRoomError) -> JSONResponse:
    """Map engine exceptions onto HTTP errors."""
    code = status_for(exc)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=code,
        content={"detail": {"code": exc.code, "message": exc.message, "details": exc.details}},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    await init_db()
    await init_data_room()
    await init_audit_archive()
    yield
    # Shutdown
    await close_audit_archive()
    await close_data_room()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="DEALROOM - Deal data room access control and audit API",
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DealRoomError, dealroom_error_handler)

    # Include routers
    from dealroom.api.access.routes import router as access_router
    from dealroom.api.viewer.routes import router as viewer_router
    from dealroom.api.audit.routes import router as audit_router
    from dealroom.api.admin.routes import router as admin_router

    app.include_router(access_router, prefix="/api/v1/rooms", tags=["Access"])
    app.include_router(viewer_router, prefix="/api/v1/viewer", tags=["Viewer"])
    app.include_router(audit_router, prefix="/api/v1/audit", tags=["Audit"])
    app.include_router(admin_router, prefix="/api/v1/admin", tags=["Admin"])

    # Health check endpoint
    @app.get("/api/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "service": settings.APP_NAME,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "dealroom.api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )

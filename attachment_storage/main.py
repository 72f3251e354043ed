"""
FastAPI application entry point.

The application factory (create_app) wires routes, CORS and the mapping
from storage errors to HTTP responses.

For local development:
    uvicorn attachment_storage.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.routes import health, uploads
from .config.settings import get_settings
from .core.errors import AccessDenied, InvalidKey, ObjectNotFound, StorageError, TransportError

logger = logging.getLogger(__name__)

_ERROR_STATUS = (
    (ObjectNotFound, 404),
    (AccessDenied, 403),
    (InvalidKey, 400),
    (TransportError, 504),
    (StorageError, 502),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log configuration problems on startup."""
    settings = get_settings()

    logger.info(
        "Attachment storage API starting",
        extra={
            "version": __version__,
            "mock_mode": settings.storage_mock_mode,
            "bucket": settings.s3_bucket,
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("Attachment storage API shutting down")


def create_app() -> FastAPI:
    """
    Application factory.

    Called once at startup in production, and per test with different
    settings.
    """
    settings = get_settings()

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=settings.log_level.upper(),
    )

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Direct uploads to S3 for file attachments.

        1. **Presign**: `GET /uploads/presign?filename=photo.jpg&content_type=image/jpeg`
           returns a form URL and fields; POST the file there.
        2. **Fetch**: `GET /uploads/{key}` redirects to a download URL.
           Add `?download=true` to force a download.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(uploads.router, prefix="/uploads", tags=["uploads"])

    @app.exception_handler(StorageError)
    async def storage_exception_handler(request: Request, exc: StorageError):
        """Translate storage failures into HTTP status codes."""
        status_code = next(code for error_class, code in _ERROR_STATUS if isinstance(exc, error_class))

        logger.warning(
            "Storage error",
            extra={
                "path": request.url.path,
                "key": exc.key,
                "code": exc.code,
                "error": exc.message,
            },
        )

        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.message, "code": exc.code},
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# This is what uvicorn imports
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "attachment_storage.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )

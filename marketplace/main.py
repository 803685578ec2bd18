import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from marketplace.api.deps import get_app_settings, get_temp_file_manager
from marketplace.api.endpoints import dashboard, library, payments, search, trending, upload, users, videos, webhooks
from marketplace.core.logging import setup_logging
from marketplace.database.session import check_connection, close_db, init_db
from marketplace.middleware.error_handling import ErrorHandlingMiddleware, validation_exception_handler
from marketplace.middleware.logging import RequestLoggingMiddleware

logger = logging.getLogger(__name__)

settings = get_app_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize logging and the database on startup; release them on shutdown."""
    setup_logging(log_level=settings.log_level, log_dir=settings.log_dir, console=settings.log_to_console)
    await init_db()

    stale = get_temp_file_manager().cleanup_old_files()
    if stale["files_deleted"]:
        logger.info(f"Removed {stale['files_deleted']} stale temp files ({stale['bytes_freed']} bytes)")

    yield

    await close_db()


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

# Add middleware (order matters - last added runs first)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(ErrorHandlingMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RequestValidationError, validation_exception_handler)

# Upload routes are registered before /videos/{video_id} so "upload" is not taken as an id
app.include_router(upload.router, prefix="/api", tags=["upload"])
app.include_router(videos.router, prefix="/api", tags=["videos"])
app.include_router(payments.router, prefix="/api", tags=["payments"])
app.include_router(webhooks.router, prefix="/api", tags=["webhooks"])
app.include_router(library.router, prefix="/api", tags=["library"])
app.include_router(search.router, prefix="/api", tags=["search"])
app.include_router(users.router, prefix="/api", tags=["users"])
app.include_router(dashboard.router, prefix="/api", tags=["dashboard"])
app.include_router(trending.router, prefix="/api", tags=["trending"])


# Root and health endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": settings.app_name, "version": settings.app_version}


@app.get("/health")
async def health():
    """Health check endpoint."""
    try:
        database_ok = await check_connection()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database_ok = False
    return {"status": "healthy" if database_ok else "degraded", "database": "connected" if database_ok else "disconnected"}

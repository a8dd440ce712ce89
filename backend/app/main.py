import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

from fastapi import FastAPI

# Import settings first for logging configuration
from backend.app.core.config import settings as app_settings, APP_VERSION

# Configure logging based on settings
# DEBUG=true -> DEBUG level, else use LOG_LEVEL setting
log_level_str = "DEBUG" if app_settings.debug else app_settings.log_level.upper()
log_level = getattr(logging, log_level_str, logging.INFO)
log_format = '%(asctime)s %(levelname)s [%(name)s] %(message)s'

# Create root logger
root_logger = logging.getLogger()
root_logger.setLevel(log_level)

# Console handler - always enabled
console_handler = logging.StreamHandler()
console_handler.setLevel(log_level)
console_handler.setFormatter(logging.Formatter(log_format))
root_logger.addHandler(console_handler)

# File handler - only in production or if explicitly enabled
if app_settings.log_to_file:
    log_file = app_settings.log_dir / "spoolbook.log"
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=5*1024*1024,  # 5MB
        backupCount=3,
        encoding='utf-8'
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(log_format))
    root_logger.addHandler(file_handler)
    logging.info(f"Logging to file: {log_file}")

# Reduce noise from third-party libraries in production
if not app_settings.debug:
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

logging.info(f"Spoolbook starting - debug={app_settings.debug}, log_level={log_level_str}")
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from backend.app.api.routes import auth, inventory, prints
from backend.app.core.database import init_db
from backend.app.core.errors import LedgerError, NotFound, ledger_error_handler, validation_error_handler
from backend.app.services.low_stock_notifier import low_stock_notifier


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await init_db()
    logging.info(
        f"Low-stock threshold {app_settings.low_filament_threshold:g}g, "
        f"ledger timeout {app_settings.ledger_timeout_seconds:g}s"
    )

    yield

    # Shutdown
    await low_stock_notifier.close()


app = FastAPI(
    title=app_settings.app_name,
    description="Track filament spools and the prints that consume them",
    version=APP_VERSION,
    lifespan=lifespan,
)

app.add_exception_handler(LedgerError, ledger_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)

# API routes
app.include_router(auth.router, prefix=app_settings.api_prefix)
app.include_router(inventory.router, prefix=app_settings.api_prefix)
app.include_router(prints.router, prefix=app_settings.api_prefix)


@app.get(f"{app_settings.api_prefix}/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


# Serve static files (frontend build)
if (app_settings.static_dir / "assets").is_dir():
    app.mount(
        "/assets",
        StaticFiles(directory=app_settings.static_dir / "assets"),
        name="assets",
    )


# Catch-all route for client-side routing (must be last)
@app.get("/{full_path:path}")
async def serve_spa(full_path: str):
    """Serve a static file if one exists, else the frontend entry page."""
    # Don't intercept API routes
    if full_path == app_settings.api_prefix.strip("/") or full_path.startswith(app_settings.api_prefix.strip("/") + "/"):
        raise NotFound("Not found")

    static_root = app_settings.static_dir.resolve()
    if full_path:
        requested = (static_root / full_path).resolve()
        if requested.is_relative_to(static_root) and requested.is_file():
            return FileResponse(requested)

    index_file = static_root / "index.html"
    if index_file.exists():
        return FileResponse(index_file)

    return {
        "message": f"{app_settings.app_name} API",
        "docs": "/docs",
        "frontend": "Build and place the frontend in the static directory",
    }

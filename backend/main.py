from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from config.settings import settings
from init_db import init_database
from api import batch, profiles
from schemas import HealthStatus
from services.worker_pool import worker_pool
import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(log_dir: Path, level_name: str) -> Path:
    """
    Attach a rotating file handler (10MB per file, keep 5 backups) and a
    stdout handler to the root logger.

    Returns:
        Path of the active log file
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "backend.log"
    level = getattr(logging, level_name, logging.INFO)
    log_formatter = logging.Formatter(LOG_FORMAT)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    console_handler = logging.StreamHandler(sys.stdout)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in (file_handler, console_handler):
        handler.setFormatter(log_formatter)
        handler.setLevel(level)
        root_logger.addHandler(handler)
    return log_file


LOG_FILE = configure_logging(settings.log_dir, settings.log_level)
logger = logging.getLogger(__name__)
logger.info(f"Logging initialized: {LOG_FILE}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown"""
    logger.info("Starting profile aggregate service...")

    init_database()
    await worker_pool.start()

    yield

    logger.info("Shutting down...")
    await worker_pool.stop()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Profile Aggregate API",
    description="Per-user vehicles, favorite spots, history and active status",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS - allow all origins for network accessibility
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
# /manage/async/... must be registered before /manage/{user_id}/{section}
app.include_router(batch.router, tags=["batch"])
app.include_router(profiles.router, tags=["profiles"])


@app.get("/health", response_model=HealthStatus)
def health_check():
    """Health check endpoint"""
    return HealthStatus(status="ok", worker_pool=worker_pool.status())


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting Profile Aggregate API on http://{settings.host}:{settings.port}...")
    uvicorn.run(app, host=settings.host, port=settings.port)

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
import logging
import asyncio
from pathlib import Path

from manifest_monitor.config import settings
from manifest_monitor.api import monitoring, health
from manifest_monitor.services.manifest_monitor import manifest_monitor
from manifest_monitor.services.logger_service import log_service

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


async def log_rotation_worker():
    """Background worker for event log rotation."""
    while True:
        await asyncio.sleep(settings.LOG_ROTATION_INTERVAL)
        try:
            await log_service.rotate_logs()
        except OSError as e:
            logger.error(f"Log rotation error: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for startup and shutdown."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    await manifest_monitor.start()
    rotation_task = asyncio.create_task(log_rotation_worker())

    logger.info("Application started successfully")

    yield

    logger.info("Shutting down application...")

    # Cancels every monitoring session; nothing survives a restart
    await manifest_monitor.stop()

    rotation_task.cancel()
    await asyncio.gather(rotation_task, return_exceptions=True)

    logger.info("Application shut down")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="HLS/DASH manifest segment latency monitor",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def no_store_cache_control(request: Request, call_next):
    response = await call_next(request)
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RequestValidationError)
async def bad_request_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies answer 400."""
    return JSONResponse(status_code=400, content={"detail": "Bad request"})


app.include_router(monitoring.router)
app.include_router(health.router)

# Static frontend, mounted last so API routes take precedence
if settings.FRONTEND_DIR and Path(settings.FRONTEND_DIR).is_dir():
    app.mount("/", StaticFiles(directory=settings.FRONTEND_DIR, html=True), name="frontend")


def run():
    import uvicorn
    uvicorn.run(
        "manifest_monitor.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )


if __name__ == "__main__":
    run()

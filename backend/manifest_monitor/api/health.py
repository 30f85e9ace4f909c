from fastapi import APIRouter
from datetime import datetime
from manifest_monitor.config import settings
from manifest_monitor.models import HealthStatus
from manifest_monitor.services.manifest_monitor import manifest_monitor

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthStatus)
async def health_check():
    """System health check endpoint."""
    return HealthStatus(
        status="healthy" if manifest_monitor.session is not None else "starting",
        timestamp=datetime.utcnow(),
        active_sessions=manifest_monitor.active_sessions,
        version=settings.APP_VERSION
    )

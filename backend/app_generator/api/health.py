"""
Health check endpoints
"""

from fastapi import APIRouter, Depends

from app_generator.api.deps import get_container
from app_generator.config import settings
from app_generator.core.container import AppContainer
from app_generator.utils.datetime import utc_now

router = APIRouter()


@router.get("/health")
async def health_check():
    """Simple API health check."""
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@router.get("/health/storage")
async def storage_health(container: AppContainer = Depends(get_container)):
    """Key-value store health check."""
    try:
        container.store.get("health-probe")
    except Exception as exc:  # pragma: no cover - best effort probe
        return {
            "status": "unhealthy",
            "storage": settings.STORAGE_BACKEND,
            "error": str(exc),
            "timestamp": utc_now().isoformat(),
        }

    return {
        "status": "healthy",
        "storage": settings.STORAGE_BACKEND,
        "activePolling": len(container.build_status.active_polling),
        "timestamp": utc_now().isoformat(),
    }

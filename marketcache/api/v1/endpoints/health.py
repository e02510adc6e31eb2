from datetime import datetime, timezone
import time

from fastapi import APIRouter

from marketcache.core.config import settings

router = APIRouter(tags=["health"])

start_time = time.time()


@router.get("/health")
async def health_check():
    """Basic health check - service is up"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "uptime_seconds": int(time.time() - start_time),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }

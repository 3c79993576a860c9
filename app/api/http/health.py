from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(request: Request):
    """Проверка состояния сервиса и хранилища"""
    storage = request.app.state.storage
    try:
        storage_status = await storage.health_check()
    except Exception as exc:
        logger.error(f"Storage health check failed: {exc}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "storage": {"connected": False, "error": type(exc).__name__},
            },
        )

    return {
        "status": "healthy" if storage_status.get("connected") else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "storage": storage_status,
    }

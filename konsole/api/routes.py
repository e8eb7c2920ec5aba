"""Service-level routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from konsole.config import Settings, get_settings

router = APIRouter()


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)) -> dict:
    """Health check endpoint.

    Returns:
        Status, timestamp in ISO8601 format, and whether mock mode is on
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "mock_mode": settings.use_mock_data,
    }

"""
Health check endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import exc
from sqlalchemy.ext.asyncio import AsyncSession

from idsyncro.core.config import get_settings
from idsyncro.core.database import get_session, ping_db
from idsyncro.core.logging import get_logger

router = APIRouter(prefix="/health", tags=["health"])
settings = get_settings()
logger = get_logger(__name__)


@router.get("/")
async def health_check():
    """Root health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version
    }


@router.get("/live")
async def liveness():
    """Liveness check endpoint."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(session: AsyncSession = Depends(get_session)):
    """Readiness check; fails with 503 while the database is unreachable."""
    try:
        await ping_db(session)
    except exc.SQLAlchemyError as e:
        logger.error("Readiness check failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable"
        )
    return {"status": "ready", "database": "ok"}

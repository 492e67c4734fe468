import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from sitepulse.core.exceptions import TransientStoreError
from sitepulse.db.session import get_db
from sitepulse.schemas.common import MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=MessageResponse)
async def health_check():
    """Liveness probe."""
    return {"message": "healthy"}


@router.get("/ready", response_model=MessageResponse)
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Readiness probe: the database must answer. Driver errors are not exposed."""
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        logger.error("Readiness check failed: database connection error")
        raise TransientStoreError(detail="Service not ready") from None
    return {"message": "ready"}

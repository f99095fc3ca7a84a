from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from isodoc.core.database import get_session
from isodoc.core.dependencies import get_scheduler
from isodoc.services.scheduler import SyncScheduler
import logging

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/health")
async def health_check(
    session: AsyncSession = Depends(get_session),
    scheduler: SyncScheduler = Depends(get_scheduler),
):
    """Check the database and the sync timers"""
    database = await check_database(session)
    return {
        "status": "healthy" if database["status"] == "healthy" else "degraded",
        "services": {
            "database": database,
            "sync": {
                "status": "healthy",
                "active_timers": scheduler.active_tenants(),
            },
        },
    }

async def check_database(session: AsyncSession) -> dict:
    try:
        await session.execute(text("SELECT 1"))
        return {"status": "healthy"}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}

from fastapi import APIRouter, Depends, Query
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from isodoc.core.database import get_session
from isodoc.core.dependencies import require_admin
from isodoc.models.base import User
from isodoc.models.log import LogResponse
from isodoc.repositories.log_repository import LogRepository

router = APIRouter()

@router.get("/logs", response_model=List[LogResponse])
async def list_logs(
    limit: int = Query(500, gt=0, le=5000),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """
    Audit entries about the client's documents or made by its users, newest first
    """
    logs = LogRepository(session)
    if admin.tenant_id is None:
        result = [log for log in await logs.list() if log.user_id == admin.id]
        return list(reversed(result))[:limit]
    return await logs.list_for_tenant(admin.tenant_id, limit=limit)

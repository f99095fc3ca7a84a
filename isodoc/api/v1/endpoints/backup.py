from fastapi import APIRouter, Depends, HTTPException
from isodoc.core.dependencies import get_backup_service, require_admin
from isodoc.core.exceptions import AppException
from isodoc.models.base import User, utcnow
from isodoc.models.system import BackupListResponse, BackupResponse, RestoreRequest, RestoreResponse
from isodoc.repositories.log_repository import LogRepository
from isodoc.services.backup_service import BackupService
import logging

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/backup", response_model=BackupResponse)
async def create_backup(
    admin: User = Depends(require_admin),
    backup_service: BackupService = Depends(get_backup_service),
):
    try:
        path = await backup_service.create_backup()
    except Exception as e:
        logger.error(f"Error creating backup: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to create backup"
        )
    await LogRepository(backup_service.session).add_entry(
        admin.id, "backup", details={"file": path.name, "tenant_id": admin.tenant_id}
    )
    return BackupResponse(file=path.name, timestamp=utcnow())

@router.get("/backups", response_model=BackupListResponse)
async def list_backups(
    admin: User = Depends(require_admin),
    backup_service: BackupService = Depends(get_backup_service),
):
    return BackupListResponse(files=backup_service.list_backups())

@router.post("/restore", response_model=RestoreResponse)
async def restore_backup(
    payload: RestoreRequest,
    admin: User = Depends(require_admin),
    backup_service: BackupService = Depends(get_backup_service),
):
    """
    Replace every table with the content of a backup file; a safety backup is written first
    """
    admin_id = admin.id
    try:
        restored = await backup_service.restore_backup(payload.file)
    except AppException:
        raise
    except Exception as e:
        logger.error(f"Error restoring backup {payload.file}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to restore backup"
        )
    await LogRepository(backup_service.session).add_entry(
        admin_id, "restore", details={"file": payload.file, "restored": restored}
    )
    return RestoreResponse(message="Backup restored", restored=restored)

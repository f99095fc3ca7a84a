from fastapi import APIRouter, Depends
from dataclasses import asdict
from typing import Optional
from isodoc.core.dependencies import get_scheduler, require_admin
from isodoc.core.exceptions import ValidationFailedError
from isodoc.models.auth import MessageResponse
from isodoc.models.base import User
from isodoc.models.sync import SyncReportResponse, SyncRequest, SyncStatusResponse
from isodoc.services.filename_parser import extract_folder_id
from isodoc.services.scheduler import SyncScheduler
from isodoc.services.sync_service import (
    OUTCOME_CREATED,
    OUTCOME_DUPLICATE,
    OUTCOME_FAILED,
    OUTCOME_SKIPPED,
    SyncReport,
)

router = APIRouter()

def _tenant_or_400(admin: User) -> int:
    if admin.tenant_id is None:
        raise ValidationFailedError("Link a client before synchronizing")
    return admin.tenant_id

def report_to_response(report: Optional[SyncReport]) -> Optional[SyncReportResponse]:
    if report is None:
        return None
    return SyncReportResponse(
        tenant_id=report.tenant_id,
        folder_id=report.folder_id,
        started_at=report.started_at,
        finished_at=report.finished_at,
        created=report.count(OUTCOME_CREATED),
        skipped=report.count(OUTCOME_SKIPPED),
        duplicates=report.count(OUTCOME_DUPLICATE),
        failed=report.count(OUTCOME_FAILED),
        obsoleted=report.obsoleted,
        files=[asdict(outcome) for outcome in report.files],
    )

@router.post("/sync", response_model=MessageResponse)
async def trigger_sync(
    payload: SyncRequest,
    admin: User = Depends(require_admin),
    scheduler: SyncScheduler = Depends(get_scheduler),
):
    """
    Start a pass in the background over the given folder, or the client's folder
    """
    tenant_id = _tenant_or_400(admin)
    folder = None
    if payload.sync_folder:
        folder = extract_folder_id(payload.sync_folder)
        if not folder:
            raise ValidationFailedError("The Google Drive folder URL or id is not valid")
    scheduler.trigger(tenant_id, folder, admin.id)
    return MessageResponse(message="Sync process started")

@router.post("/sync/force", response_model=MessageResponse)
async def force_sync(
    admin: User = Depends(require_admin),
    scheduler: SyncScheduler = Depends(get_scheduler),
):
    tenant_id = _tenant_or_400(admin)
    scheduler.trigger(tenant_id, acting_user_id=admin.id)
    return MessageResponse(message="Sync process started")

@router.get("/sync/status", response_model=SyncStatusResponse)
async def sync_status(
    admin: User = Depends(require_admin),
    scheduler: SyncScheduler = Depends(get_scheduler),
):
    tenant_id = _tenant_or_400(admin)
    return SyncStatusResponse(
        tenant_id=tenant_id,
        timer_active=scheduler.is_running(tenant_id),
        last_report=report_to_response(scheduler.last_report(tenant_id)),
    )

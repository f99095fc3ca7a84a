from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

class SyncRequest(BaseModel):
    sync_folder: Optional[str] = None

class FileOutcomeResponse(BaseModel):
    file_id: str
    name: str
    status: str
    document_id: Optional[int] = None
    error: Optional[str] = None

class SyncReportResponse(BaseModel):
    tenant_id: int
    folder_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    created: int
    skipped: int
    duplicates: int
    failed: int
    obsoleted: int
    files: List[FileOutcomeResponse] = []

class SyncStatusResponse(BaseModel):
    tenant_id: int
    timer_active: bool
    last_report: Optional[SyncReportResponse] = None

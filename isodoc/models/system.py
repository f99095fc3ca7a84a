from pydantic import BaseModel
from typing import Dict, List
from datetime import datetime

class BackupResponse(BaseModel):
    file: str
    timestamp: datetime

class BackupListResponse(BaseModel):
    files: List[str]

class RestoreRequest(BaseModel):
    file: str

class RestoreResponse(BaseModel):
    message: str
    safety_backup_created: bool = True
    restored: Dict[str, int]

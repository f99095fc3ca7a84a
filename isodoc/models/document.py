from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Literal
from datetime import date, datetime
from isodoc.services.filename_parser import canonical_revision

AlertStatus = Literal["none", "warning", "expired"]

class DocumentBase(BaseModel):
    title: str = Field(..., min_length=1)
    path: str = Field(..., pattern=r"^\d+(\.\d+)*$", description="Hierarchical path, e.g. 8.2.1")
    revision: str = Field(..., description="Revision label, e.g. Rev.3")
    source_url: str = ""
    file_type: str
    alert_status: Optional[AlertStatus] = "none"
    expiry_date: Optional[date] = None

class DocumentCreate(DocumentBase):
    parent_id: Optional[int] = None

    @field_validator("revision")
    @classmethod
    def normalize_revision(cls, value: str) -> str:
        revision = canonical_revision(value)
        if revision is None:
            raise ValueError("revision must look like Rev.N with N a positive integer")
        return revision

class DocumentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    source_url: Optional[str] = None
    alert_status: Optional[AlertStatus] = None
    expiry_date: Optional[date] = None

class DocumentResponse(DocumentBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    is_obsolete: bool
    warning_days: Optional[int] = None
    parent_id: Optional[int] = None
    integrity_hash: Optional[str] = None
    encrypted_cache_path: Optional[str] = None
    tenant_id: Optional[int] = None
    owner_id: int
    created_at: datetime
    updated_at: datetime

class WarningDaysUpdate(BaseModel):
    warning_days: int = Field(..., gt=0)

class EncryptRequest(BaseModel):
    file_path: str = Field(..., min_length=1, description="Server-side path of the file to encrypt")

class IntegrityResponse(BaseModel):
    document_id: int
    valid: bool

class ShareRequest(BaseModel):
    action: Literal["view", "download"] = "view"
    expiry_hours: float = Field(24, gt=0, le=24 * 30)

class ShareResponse(BaseModel):
    url: str
    expires_at: datetime

class FileValidationRequest(BaseModel):
    filename: str
    size: int = Field(..., ge=0)
    mime_type: str

class FileValidationResponse(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)

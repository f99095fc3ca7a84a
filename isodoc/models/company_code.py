from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime, timezone
from isodoc.models.user import Role

def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

class CompanyCodeCreate(BaseModel):
    code: str = Field(..., min_length=4, max_length=64)
    role: Role = "viewer"
    usage_limit: int = Field(1, gt=0)
    expires_at: Optional[datetime] = None
    is_active: bool = True

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, value):
        return _naive_utc(value)

class CompanyCodeUpdate(BaseModel):
    role: Optional[Role] = None
    usage_limit: Optional[int] = Field(None, gt=0)
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, value):
        return _naive_utc(value)

class CompanyCodeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    role: Role
    usage_limit: int
    usage_count: int
    expires_at: Optional[datetime] = None
    is_active: bool
    created_by: int
    created_at: datetime

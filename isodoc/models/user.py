from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal
from datetime import datetime

Role = Literal["admin", "viewer"]

class UserCreate(BaseModel):
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=72)
    role: Role = "viewer"

class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    role: Role
    tenant_id: Optional[int] = None
    last_login: Optional[datetime] = None
    session_expiry: Optional[datetime] = None
    created_at: datetime

class RoleUpdate(BaseModel):
    role: Role

class TenantAssignment(BaseModel):
    tenant_id: int

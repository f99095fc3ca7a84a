from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1)
    drive_folder: str = Field(..., description="Drive folder id or folder URL")

class ClientUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    drive_folder: Optional[str] = None

class ClientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    drive_folder_id: str
    has_credentials: bool
    created_at: datetime
    updated_at: datetime

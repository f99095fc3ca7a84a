from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from isodoc.models.user import UserResponse

class RegisterRequest(BaseModel):
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=72)
    company_code: str = Field(..., min_length=1)

class LoginRequest(BaseModel):
    email: str
    password: str
    remember_me: bool = False

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse

class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6, max_length=72)

class ForgotPasswordRequest(BaseModel):
    email: str

class ResetLink(BaseModel):
    data: str
    expires: str
    signature: str

class ResetPasswordRequest(ResetLink):
    new_password: str = Field(..., min_length=6, max_length=72)

class ContactRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    message: str = Field(..., min_length=1, max_length=5000)

class MessageResponse(BaseModel):
    message: str
    detail: Optional[str] = None

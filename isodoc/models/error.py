from pydantic import BaseModel
from typing import List, Optional, Any

class FieldError(BaseModel):
    field: str
    message: str

class ErrorResponse(BaseModel):
    detail: str
    error_code: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    errors: Optional[List[FieldError]] = None

    @classmethod
    def from_validation_errors(cls, errors: List[dict]) -> "ErrorResponse":
        # "body.email" reads better than ("body", "email") in client forms
        return cls(
            detail="Request validation failed",
            error_code="VALIDATION_FAILED",
            errors=[
                FieldError(field=".".join(str(part) for part in error.get("loc", ())), message=error.get("msg", ""))
                for error in errors
            ],
        )

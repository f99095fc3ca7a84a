from fastapi import HTTPException, status
from typing import Optional, Any, Dict

class AppException(HTTPException):
    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail)
        self.error_code = error_code
        self.metadata = metadata or {}

class NotFoundError(AppException):
    def __init__(self, detail: str, metadata: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code="NOT_FOUND",
            metadata=metadata
        )

class ValidationFailedError(AppException):
    def __init__(self, detail: str, metadata: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="VALIDATION_FAILED",
            metadata=metadata
        )

class AuthenticationError(AppException):
    def __init__(self, detail: str = "Not authenticated", metadata: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="NOT_AUTHENTICATED",
            metadata=metadata
        )

class SessionExpiredError(AppException):
    def __init__(self, detail: str = "Session expired, please log in again"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="SESSION_EXPIRED"
        )

class PermissionDeniedError(AppException):
    def __init__(self, detail: str = "Not authorized", metadata: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="PERMISSION_DENIED",
            metadata=metadata
        )

class ConflictError(AppException):
    def __init__(self, detail: str, metadata: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="CONFLICT",
            metadata=metadata
        )

class SyncConfigurationError(Exception):
    """A tenant cannot be synced: missing tenant, credentials or folder id."""

class DriveError(Exception):
    """A remote Drive call failed or ran past its deadline."""

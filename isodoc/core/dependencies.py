from functools import lru_cache
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from isodoc.core.config import get_settings
from isodoc.core.database import get_session
from isodoc.core.exceptions import AuthenticationError, PermissionDeniedError, SessionExpiredError
from isodoc.core.security import decode_access_token
from isodoc.models.base import User, utcnow
from isodoc.repositories.log_repository import LogRepository
from isodoc.repositories.user_repository import UserRepository
from isodoc.services.auth_service import AuthService
from isodoc.services.backup_service import BackupService
from isodoc.services.crypto_service import FileCipher
from isodoc.services.document_service import DocumentService
from isodoc.services.email_service import EmailService
from isodoc.services.scheduler import SyncScheduler
from isodoc.services.secure_links import SecureLinkSigner

bearer_scheme = HTTPBearer(auto_error=False)

@lru_cache()
def get_link_signer() -> SecureLinkSigner:
    return SecureLinkSigner(get_settings().LINK_SECRET_KEY)

@lru_cache()
def get_file_cipher() -> FileCipher:
    return FileCipher(get_settings().ENCRYPTION_KEY)

def get_email_service() -> EmailService:
    return EmailService()

def get_scheduler(request: Request) -> SyncScheduler:
    return request.app.state.scheduler

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session),
) -> User:
    if credentials is None:
        raise AuthenticationError()
    payload = decode_access_token(credentials.credentials)

    user = await UserRepository(session).get(int(payload["sub"]))
    # logout clears the stored expiry
    if user is None or user.session_expiry is None:
        raise AuthenticationError()

    if user.session_expiry < utcnow():
        await LogRepository(session).add_entry(
            user.id, "session_expired", details={"email": user.email, "tenant_id": user.tenant_id}
        )
        raise SessionExpiredError()
    return user

async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise PermissionDeniedError("Administrator role required")
    return user

def get_auth_service(
    session: AsyncSession = Depends(get_session),
    signer: SecureLinkSigner = Depends(get_link_signer),
    email_service: EmailService = Depends(get_email_service),
) -> AuthService:
    return AuthService(session=session, signer=signer, email_service=email_service)

def get_document_service(
    session: AsyncSession = Depends(get_session),
    cipher: FileCipher = Depends(get_file_cipher),
    signer: SecureLinkSigner = Depends(get_link_signer),
) -> DocumentService:
    return DocumentService(session=session, cipher=cipher, signer=signer)

def get_backup_service(session: AsyncSession = Depends(get_session)) -> BackupService:
    return BackupService(session=session, backup_dir=get_settings().BACKUP_DIR)

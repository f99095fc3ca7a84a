from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
import asyncio
from isodoc.core.config import get_settings
from isodoc.core.database import get_session
from isodoc.core.dependencies import get_link_signer, get_scheduler, require_admin
from isodoc.core.exceptions import SyncConfigurationError, ValidationFailedError
from isodoc.models.base import User
from isodoc.repositories.client_repository import ClientRepository
from isodoc.repositories.log_repository import LogRepository
from isodoc.repositories.user_repository import UserRepository
from isodoc.services.google_drive_service import credentials_to_bundle, exchange_code, get_authorization_url
from isodoc.services.scheduler import SyncScheduler
from isodoc.services.secure_links import SecureLinkSigner
import logging

logger = logging.getLogger(__name__)
router = APIRouter()

def _redirect_to_frontend(result: str) -> RedirectResponse:
    return RedirectResponse(f"{get_settings().FRONTEND_URL}/settings?google={result}", status_code=302)

@router.get("/google/auth-url")
async def google_auth_url(
    admin: User = Depends(require_admin),
    signer: SecureLinkSigner = Depends(get_link_signer),
):
    """
    Consent URL for linking the admin's client to a Google Drive account
    """
    if admin.tenant_id is None:
        raise ValidationFailedError("Link a client before connecting Google Drive")
    try:
        return {"url": get_authorization_url(signer.sign_state(admin.tenant_id, admin.id))}
    except SyncConfigurationError as e:
        logger.error(f"Google OAuth is not configured: {e}")
        raise ValidationFailedError("Google OAuth is not configured")

@router.get("/google/auth-status")
async def google_auth_status(
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    client = await ClientRepository(session).get(admin.tenant_id) if admin.tenant_id else None
    return {"tenant_id": admin.tenant_id, "connected": bool(client and client.has_credentials)}

@router.get("/google/callback")
async def google_callback(
    code: str,
    state: str,
    session: AsyncSession = Depends(get_session),
    scheduler: SyncScheduler = Depends(get_scheduler),
    signer: SecureLinkSigner = Depends(get_link_signer),
):
    """
    OAuth redirect target; state is the signed (client, admin) pair from auth-url
    """
    verified = signer.verify_state(state)
    if verified is None:
        raise ValidationFailedError("Invalid OAuth state")
    tenant_id, admin_id = verified

    admin = await UserRepository(session).get(admin_id)
    if admin is None or admin.role != "admin" or admin.tenant_id != tenant_id:
        raise ValidationFailedError("Invalid OAuth state")
    clients = ClientRepository(session)
    client = await clients.get(tenant_id)
    if client is None:
        raise ValidationFailedError("Invalid OAuth state")

    try:
        creds = await asyncio.to_thread(exchange_code, code)
    except Exception as e:
        logger.error(f"Google token exchange failed for tenant {tenant_id}: {e}", exc_info=True)
        return _redirect_to_frontend("error")

    access_token, refresh_token, expiry_ms = credentials_to_bundle(creds)
    await clients.store_credentials(client, access_token, refresh_token, expiry_ms)
    await LogRepository(session).add_entry(
        admin_id, "google-drive-linked", details={"tenant_id": tenant_id}
    )
    logger.info(f"Google Drive linked for tenant {tenant_id}")

    scheduler.start(tenant_id)
    return _redirect_to_frontend("connected")

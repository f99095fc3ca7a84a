from fastapi import APIRouter, Depends, status
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from isodoc.core.database import get_session
from isodoc.core.dependencies import require_admin
from isodoc.core.exceptions import ConflictError, PermissionDeniedError, ValidationFailedError
from isodoc.models.base import Client, User
from isodoc.models.client import ClientCreate, ClientResponse, ClientUpdate
from isodoc.repositories.client_repository import ClientRepository
from isodoc.repositories.log_repository import LogRepository
from isodoc.repositories.user_repository import UserRepository
from isodoc.services.filename_parser import extract_folder_id
import logging

logger = logging.getLogger(__name__)
router = APIRouter()

INVALID_FOLDER_MESSAGE = "The Google Drive folder URL or id is not valid"

def _folder_id_or_400(value: str) -> str:
    folder_id = extract_folder_id(value)
    if not folder_id:
        raise ValidationFailedError(INVALID_FOLDER_MESSAGE, metadata={"drive_folder": value})
    return folder_id

async def _get_own_client(session: AsyncSession, admin: User, client_id: int) -> Client:
    if admin.tenant_id is None or admin.tenant_id != client_id:
        raise PermissionDeniedError("Access to this client is not allowed")
    client = await ClientRepository(session).get(client_id)
    if client is None:
        raise PermissionDeniedError("Access to this client is not allowed")
    return client

@router.get("/clients", response_model=List[ClientResponse])
async def list_clients(
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """
    The client linked to the calling admin, if any
    """
    if admin.tenant_id is None:
        return []
    client = await ClientRepository(session).get(admin.tenant_id)
    return [client] if client else []

@router.get("/clients/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: int,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await _get_own_client(session, admin, client_id)

@router.post("/clients", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    payload: ClientCreate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """
    Create a client and link the calling admin to it
    """
    if admin.tenant_id is not None:
        raise ValidationFailedError("This admin is already linked to a client")

    folder_id = _folder_id_or_400(payload.drive_folder)
    clients = ClientRepository(session)
    if await clients.get_by_name(payload.name):
        raise ConflictError("A client with this name already exists")
    if await clients.get_by_folder_id(folder_id):
        raise ConflictError("This Drive folder is already linked to another client")

    client = await clients.create({"name": payload.name, "drive_folder_id": folder_id})
    client_id = client.id
    await UserRepository(session).update(admin, {"tenant_id": client_id})
    await LogRepository(session).add_entry(
        admin.id, "client-creation",
        details={"message": f"Client created: {payload.name}", "folder_id": folder_id, "tenant_id": client_id},
    )
    logger.info(f"Client {client_id} created by admin {admin.id}")
    return await clients.get(client_id)

@router.put("/clients/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: int,
    payload: ClientUpdate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    client = await _get_own_client(session, admin, client_id)
    values = {}
    if payload.name is not None:
        values["name"] = payload.name
    if payload.drive_folder is not None:
        values["drive_folder_id"] = _folder_id_or_400(payload.drive_folder)
    if not values:
        return client

    clients = ClientRepository(session)
    client = await clients.update(client, values)
    await LogRepository(session).add_entry(
        admin.id, "client-update",
        details={"message": f"Client updated: {client.name}", "fields": sorted(values), "tenant_id": client_id},
    )
    return client

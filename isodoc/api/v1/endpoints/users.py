from fastapi import APIRouter, Depends, status
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from isodoc.core.database import get_session
from isodoc.core.dependencies import require_admin
from isodoc.core.exceptions import ConflictError, NotFoundError, ValidationFailedError
from isodoc.core.security import hash_password
from isodoc.models.base import User
from isodoc.models.user import RoleUpdate, TenantAssignment, UserCreate, UserResponse
from isodoc.repositories.client_repository import ClientRepository
from isodoc.repositories.log_repository import LogRepository
from isodoc.repositories.user_repository import UserRepository
import logging

logger = logging.getLogger(__name__)
router = APIRouter()

async def _get_managed_user(users: UserRepository, admin: User, user_id: int) -> User:
    user = await users.get(user_id)
    # unassigned users are visible to any admin so they can be linked
    if user is None or (user.tenant_id is not None and user.tenant_id != admin.tenant_id):
        raise NotFoundError("User not found", metadata={"user_id": user_id})
    return user

@router.get("/users", response_model=List[UserResponse])
async def list_users(
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    if admin.tenant_id is None:
        return [admin]
    return await UserRepository(session).list_by_tenant(admin.tenant_id)

@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """
    A new admin starts without a client; a viewer joins the creating admin's client
    """
    users = UserRepository(session)
    if await users.get_by_email(payload.email):
        raise ConflictError("Email already registered")

    tenant_id = None
    if payload.role == "viewer":
        if admin.tenant_id is None:
            raise ValidationFailedError("Link a client before creating viewers")
        tenant_id = admin.tenant_id

    user = await users.create({
        "email": payload.email.strip().lower(),
        "password_hash": hash_password(payload.password),
        "role": payload.role,
        "tenant_id": tenant_id,
    })
    await LogRepository(session).add_entry(
        admin.id, "user_created",
        details={"user_id": user.id, "role": user.role, "tenant_id": admin.tenant_id},
    )
    logger.info(f"Admin {admin.id} created user {user.id} ({user.role})")
    return user

@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def change_role(
    user_id: int,
    payload: RoleUpdate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    users = UserRepository(session)
    user = await _get_managed_user(users, admin, user_id)
    if user.id == admin.id and payload.role != "admin":
        raise ValidationFailedError("Administrators cannot demote themselves")

    values = {"role": payload.role}
    if payload.role == "viewer" and user.tenant_id is None:
        if admin.tenant_id is None:
            raise ValidationFailedError("A viewer must belong to a client")
        values["tenant_id"] = admin.tenant_id

    previous_role = user.role
    user = await users.update(user, values)
    await LogRepository(session).add_entry(
        admin.id, "role_change",
        details={"user_id": user.id, "from": previous_role, "to": user.role, "tenant_id": admin.tenant_id},
    )
    return user

@router.patch("/users/{user_id}/client", response_model=UserResponse)
async def assign_client(
    user_id: int,
    payload: TenantAssignment,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    users = UserRepository(session)
    user = await _get_managed_user(users, admin, user_id)
    if await ClientRepository(session).get(payload.tenant_id) is None:
        raise NotFoundError("Client not found", metadata={"tenant_id": payload.tenant_id})

    user = await users.update(user, {"tenant_id": payload.tenant_id})
    await LogRepository(session).add_entry(
        admin.id, "client_assigned", details={"user_id": user.id, "tenant_id": payload.tenant_id},
    )
    return user

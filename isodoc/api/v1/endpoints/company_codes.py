from fastapi import APIRouter, Depends, status
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from isodoc.core.database import get_session
from isodoc.core.dependencies import require_admin
from isodoc.core.exceptions import ConflictError, NotFoundError
from isodoc.models.auth import MessageResponse
from isodoc.models.base import CompanyCode, User
from isodoc.models.company_code import CompanyCodeCreate, CompanyCodeResponse, CompanyCodeUpdate
from isodoc.repositories.company_code_repository import CompanyCodeRepository
from isodoc.repositories.log_repository import LogRepository

router = APIRouter()

async def _get_visible_code(codes: CompanyCodeRepository, admin: User, code_id: int) -> CompanyCode:
    visible = {code.id: code for code in await codes.list_for_tenant(admin.tenant_id, admin.id)}
    if code_id not in visible:
        raise NotFoundError("Company code not found", metadata={"code_id": code_id})
    return visible[code_id]

@router.get("/company-codes", response_model=List[CompanyCodeResponse])
async def list_company_codes(
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await CompanyCodeRepository(session).list_for_tenant(admin.tenant_id, admin.id)

@router.post("/company-codes", response_model=CompanyCodeResponse, status_code=status.HTTP_201_CREATED)
async def create_company_code(
    payload: CompanyCodeCreate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """
    Registration code; viewers registering with it join the creator's client
    """
    codes = CompanyCodeRepository(session)
    if await codes.get_by_code(payload.code.strip()):
        raise ConflictError("Company code already exists")

    code = await codes.create({
        **payload.model_dump(),
        "code": payload.code.strip(),
        "usage_count": 0,
        "created_by": admin.id,
    })
    await LogRepository(session).add_entry(
        admin.id, "company_code_created",
        details={"code": code.code, "role": code.role, "tenant_id": admin.tenant_id},
    )
    return code

@router.patch("/company-codes/{code_id}", response_model=CompanyCodeResponse)
async def update_company_code(
    code_id: int,
    payload: CompanyCodeUpdate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    codes = CompanyCodeRepository(session)
    code = await _get_visible_code(codes, admin, code_id)
    values = payload.model_dump(exclude_unset=True)
    if not values:
        return code
    return await codes.update(code, values)

@router.delete("/company-codes/{code_id}", response_model=MessageResponse)
async def delete_company_code(
    code_id: int,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    codes = CompanyCodeRepository(session)
    code = await _get_visible_code(codes, admin, code_id)
    value = code.code
    await codes.delete(code)
    await LogRepository(session).add_entry(
        admin.id, "company_code_deleted", details={"code": value, "tenant_id": admin.tenant_id},
    )
    return MessageResponse(message="Company code deleted")

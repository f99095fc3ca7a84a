from typing import List, Optional
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from isodoc.models.base import CompanyCode, User
from isodoc.repositories.base import BaseRepository

class CompanyCodeRepository(BaseRepository[CompanyCode]):
    def __init__(self, session: AsyncSession):
        super().__init__(CompanyCode, session)

    async def get_by_code(self, code: str) -> Optional[CompanyCode]:
        result = await self.session.execute(select(CompanyCode).filter(CompanyCode.code == code))
        return result.scalar_one_or_none()

    async def list_for_tenant(self, tenant_id: Optional[int], creator_id: int) -> List[CompanyCode]:
        """Codes created by the caller or by anyone in the caller's tenant."""
        query = select(CompanyCode)
        if tenant_id is None:
            query = query.filter(CompanyCode.created_by == creator_id)
        else:
            tenant_users = select(User.id).filter(User.tenant_id == tenant_id)
            query = query.filter(
                (CompanyCode.created_by == creator_id) | CompanyCode.created_by.in_(tenant_users)
            )
        result = await self.session.execute(query.order_by(CompanyCode.id))
        return list(result.scalars().all())

    async def consume(self, company_code: CompanyCode) -> bool:
        """Increment usage unless the limit is already reached. Returns False when exhausted."""
        result = await self.session.execute(
            update(CompanyCode)
            .where(CompanyCode.id == company_code.id, CompanyCode.usage_count < CompanyCode.usage_limit)
            .values(usage_count=CompanyCode.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        if result.rowcount != 1:
            return False
        await self.session.refresh(company_code)
        return True

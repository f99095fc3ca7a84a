from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from isodoc.models.base import User
from isodoc.repositories.base import BaseRepository

class UserRepository(BaseRepository[User]):
    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(
            select(User).filter(User.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def list_by_tenant(self, tenant_id: int) -> List[User]:
        result = await self.session.execute(
            select(User).filter(User.tenant_id == tenant_id).order_by(User.id)
        )
        return list(result.scalars().all())

    async def list_tenant_admins(self, tenant_id: int) -> List[User]:
        result = await self.session.execute(
            select(User).filter(User.tenant_id == tenant_id, User.role == "admin").order_by(User.id)
        )
        return list(result.scalars().all())

    async def find_tenant_admin(self, tenant_id: int) -> Optional[User]:
        admins = await self.list_tenant_admins(tenant_id)
        return admins[0] if admins else None

    async def count(self) -> int:
        return len(await self.list())

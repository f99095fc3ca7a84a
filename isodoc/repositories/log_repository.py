from typing import Any, Dict, List, Optional
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from isodoc.models.base import Document, Log, User
from isodoc.repositories.base import BaseRepository

class LogRepository(BaseRepository[Log]):
    """Audit entries are append-only; there is no update or delete path."""

    def __init__(self, session: AsyncSession):
        super().__init__(Log, session)

    async def add_entry(
        self,
        user_id: Optional[int],
        action: str,
        document_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> Log:
        return await self.create(
            {
                "user_id": user_id,
                "action": action,
                "document_id": document_id,
                "details": details or {},
            },
            commit=commit,
        )

    async def list_for_tenant(self, tenant_id: int, limit: int = 500) -> List[Log]:
        tenant_documents = select(Document.id).filter(Document.tenant_id == tenant_id)
        tenant_users = select(User.id).filter(User.tenant_id == tenant_id)
        result = await self.session.execute(
            select(Log)
            .filter(or_(Log.document_id.in_(tenant_documents), Log.user_id.in_(tenant_users)))
            .order_by(Log.timestamp.desc(), Log.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_for_document(self, document_id: int) -> List[Log]:
        result = await self.session.execute(
            select(Log).filter(Log.document_id == document_id).order_by(Log.id)
        )
        return list(result.scalars().all())

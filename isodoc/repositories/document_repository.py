from typing import List, Optional, Tuple
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from isodoc.models.base import Document, parse_revision_number, utcnow
from isodoc.repositories.base import BaseRepository

def path_sort_key(path: str) -> Tuple[int, ...]:
    """Order '2.10' after '2.9' by comparing numeric segments."""
    return tuple(int(segment) for segment in path.split(".") if segment.isdigit())

def sort_by_path(documents: List[Document]) -> List[Document]:
    return sorted(documents, key=lambda doc: (path_sort_key(doc.path), doc.title, doc.revision_number))

def _tenant_clause(tenant_id: Optional[int]):
    if tenant_id is None:
        return Document.tenant_id.is_(None)
    return Document.tenant_id == tenant_id

class DocumentRepository(BaseRepository[Document]):
    def __init__(self, session: AsyncSession):
        super().__init__(Document, session)

    async def find_by_path_and_title(self, path: str, title: str, tenant_id: Optional[int]) -> List[Document]:
        result = await self.session.execute(
            select(Document)
            .filter(Document.path == path, Document.title == title, _tenant_clause(tenant_id))
            .order_by(Document.id)
        )
        return list(result.scalars().all())

    async def find_by_path_title_revision(
        self, path: str, title: str, revision: str, tenant_id: Optional[int]
    ) -> Optional[Document]:
        """Revisions compare by number, so Rev.03 finds a stored Rev.3."""
        wanted = parse_revision_number(revision)
        for document in await self.find_by_path_and_title(path, title, tenant_id):
            if document.revision_number == wanted:
                return document
        return None

    async def list_active(self, tenant_id: Optional[int]) -> List[Document]:
        result = await self.session.execute(
            select(Document).filter(Document.is_obsolete.is_(False), _tenant_clause(tenant_id))
        )
        return sort_by_path(list(result.scalars().all()))

    async def list_obsolete(self, tenant_id: Optional[int]) -> List[Document]:
        result = await self.session.execute(
            select(Document).filter(Document.is_obsolete.is_(True), _tenant_clause(tenant_id))
        )
        return sort_by_path(list(result.scalars().all()))

    async def list_with_expiry(self) -> List[Document]:
        result = await self.session.execute(
            select(Document).filter(Document.is_obsolete.is_(False), Document.expiry_date.is_not(None))
        )
        return list(result.scalars().all())

    async def get_for_tenant(self, id: int, tenant_id: Optional[int]) -> Optional[Document]:
        result = await self.session.execute(
            select(Document).filter(Document.id == id, _tenant_clause(tenant_id))
        )
        return result.scalar_one_or_none()

    async def mark_obsolete(self, document_id: int, commit: bool = True) -> None:
        await self.session.execute(
            update(Document)
            .where(Document.id == document_id)
            .values(is_obsolete=True, updated_at=utcnow())
        )
        if commit:
            await self.session.commit()

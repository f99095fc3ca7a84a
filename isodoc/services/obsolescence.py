import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from isodoc.models.base import Document
from isodoc.repositories.document_repository import DocumentRepository
from isodoc.repositories.log_repository import LogRepository

logger = logging.getLogger(__name__)

OBSOLETE_ACTION = "revision"


class ObsolescenceResolver:
    """Keeps one active revision per (path, title) within a tenant."""

    def __init__(self, documents: DocumentRepository, logs: LogRepository):
        self.documents = documents
        self.logs = logs

    async def resolve(self, document: Document, acting_user_id: Optional[int], commit: bool = True) -> List[int]:
        """Mark every lower revision obsolete. Returns the ids marked in this call.

        With commit=True each mark and its audit entry commit on their own; a
        failure is logged and the remaining documents are still processed.
        With commit=False nothing is committed and the first failure propagates,
        leaving the caller to commit or roll back the whole unit.
        """
        new_id = document.id
        new_revision = document.revision_number
        tenant_id = document.tenant_id

        siblings = [
            doc for doc in await self.documents.find_by_path_and_title(document.path, document.title, tenant_id)
            if doc.id != new_id
        ]

        targets = [
            (doc.id, doc.title, doc.revision)
            for doc in siblings
            if doc.revision_number < new_revision and not doc.is_obsolete
        ]
        # A late-arriving older revision is stored already superseded.
        if not document.is_obsolete and any(doc.revision_number > new_revision for doc in siblings):
            targets.append((new_id, document.title, document.revision))

        marked = []
        for target_id, title, revision in targets:
            try:
                await self.documents.mark_obsolete(target_id, commit=commit)
                await self.logs.add_entry(
                    acting_user_id,
                    OBSOLETE_ACTION,
                    document_id=target_id,
                    details={
                        "message": f"Obsolete: {title} {revision}",
                        "tenant_id": tenant_id,
                        "superseded_by": new_id if target_id != new_id else None,
                    },
                    commit=commit,
                )
                marked.append(target_id)
                logger.info(f"Marked obsolete: document {target_id} ({title} {revision})")
            except SQLAlchemyError as e:
                if not commit:
                    raise
                await self.documents.session.rollback()
                logger.error(f"Failed to mark document {target_id} obsolete: {e}", exc_info=True)
        return marked

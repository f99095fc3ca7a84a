from typing import List, Optional, Tuple
from datetime import datetime, timezone
import asyncio
import logging
import os
from sqlalchemy.ext.asyncio import AsyncSession
from isodoc.core.config import Settings, get_settings
from isodoc.core.exceptions import NotFoundError, ValidationFailedError
from isodoc.models.base import Document, User
from isodoc.repositories.document_repository import DocumentRepository
from isodoc.repositories.log_repository import LogRepository
from isodoc.services.crypto_service import FileCipher, IntegrityError
from isodoc.services.filename_parser import is_valid_upload_filename
from isodoc.services.obsolescence import ObsolescenceResolver
from isodoc.services.secure_links import DEFAULT_LINK_HOURS, SecureLinkSigner

logger = logging.getLogger(__name__)

ALLOWED_UPLOAD_MIME_TYPES = {
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'application/vnd.ms-powerpoint',
    'application/vnd.openxmlformats-officedocument.presentationml.presentation',
    'text/plain',
    'text/csv',
    'image/jpeg',
    'image/png',
    'image/gif',
}

class DocumentService:
    def __init__(
        self,
        session: AsyncSession,
        cipher: FileCipher,
        signer: SecureLinkSigner,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.cipher = cipher
        self.signer = signer
        self.settings = settings or get_settings()
        self.documents = DocumentRepository(session)
        self.logs = LogRepository(session)

    async def list_active(self, user: User) -> List[Document]:
        return await self.documents.list_active(user.tenant_id)

    async def list_obsolete(self, user: User) -> List[Document]:
        return await self.documents.list_obsolete(user.tenant_id)

    async def get(self, user: User, document_id: int) -> Document:
        document = await self.documents.get_for_tenant(document_id, user.tenant_id)
        if document is None:
            raise NotFoundError("Document not found", metadata={"document_id": document_id})
        return document

    async def create(self, user: User, data: dict) -> Document:
        """Direct write; the new revision supersedes older ones like a synced file does."""
        existing = await self.documents.find_by_path_title_revision(
            data["path"], data["title"], data["revision"], user.tenant_id
        )
        if existing is not None:
            raise ValidationFailedError("A document with this path, title and revision already exists")

        document = await self.documents.create({
            **data,
            "file_type": data["file_type"].lower(),
            "tenant_id": user.tenant_id,
            "owner_id": user.id,
            "is_obsolete": False,
        })
        document_id = document.id
        await self.logs.add_entry(
            user.id, "upload", document_id=document_id,
            details={"message": f"Created: {document.title} {document.revision}", "tenant_id": user.tenant_id},
        )
        await ObsolescenceResolver(self.documents, self.logs).resolve(document, user.id)
        return await self.documents.get(document_id)

    async def update(self, user: User, document_id: int, data: dict) -> Document:
        document = await self.get(user, document_id)
        if not data:
            return document
        if "title" in data and not data["title"]:
            raise ValidationFailedError("Title cannot be empty")

        renamed = "title" in data and data["title"] != document.title
        if renamed:
            clash = await self.documents.find_by_path_title_revision(
                document.path, data["title"], document.revision, user.tenant_id
            )
            if clash is not None:
                raise ValidationFailedError("A document with this path, title and revision already exists")

        document = await self.documents.update(document, data)
        await self.logs.add_entry(
            user.id, "update", document_id=document_id,
            details={"fields": sorted(data), "tenant_id": user.tenant_id},
        )
        if renamed and not document.is_obsolete:
            # the new title can join an existing revision history
            await ObsolescenceResolver(self.documents, self.logs).resolve(document, user.id)
            return await self.documents.get(document_id)
        return document

    async def mark_deleted(self, user: User, document_id: int) -> None:
        """Documents are never removed, only retired."""
        document = await self.get(user, document_id)
        title, revision = document.title, document.revision
        await self.documents.mark_obsolete(document_id)
        await self.logs.add_entry(
            user.id, "delete", document_id=document_id,
            details={"message": f"Deleted: {title} {revision}", "tenant_id": user.tenant_id},
        )

    async def set_warning_days(self, user: User, document_id: int, warning_days: int) -> Document:
        document = await self.get(user, document_id)
        document = await self.documents.update(document, {"warning_days": warning_days})
        await self.logs.add_entry(
            user.id, "warning_days", document_id=document.id,
            details={"warning_days": warning_days, "tenant_id": user.tenant_id},
        )
        return document

    async def encrypt(self, user: User, document_id: int, file_path: str) -> Document:
        document = await self.get(user, document_id)
        if not os.path.isfile(file_path):
            raise ValidationFailedError("File not found", metadata={"file_path": file_path})

        cache_path = os.path.join(
            self.settings.ENCRYPTED_CACHE_DIR, f"doc_{document.id}_{os.path.basename(file_path)}.enc"
        )
        integrity_hash = await asyncio.to_thread(self.cipher.encrypt_file, file_path, cache_path)
        document = await self.documents.update(
            document, {"encrypted_cache_path": cache_path, "integrity_hash": integrity_hash}
        )
        await self.logs.add_entry(
            user.id, "encrypt", document_id=document.id,
            details={"integrity_hash": integrity_hash, "tenant_id": user.tenant_id},
        )
        logger.info(f"Encrypted document {document.id} into {cache_path}")
        return document

    async def verify_integrity(self, user: User, document_id: int) -> bool:
        document = await self.get(user, document_id)
        if not document.encrypted_cache_path or not document.integrity_hash:
            raise ValidationFailedError("Document has no encrypted copy")
        return await asyncio.to_thread(
            self.cipher.verify_file, document.encrypted_cache_path, document.integrity_hash
        )

    async def read_decrypted(self, document: Document) -> bytes:
        try:
            return await asyncio.to_thread(self.cipher.decrypt_file, document.encrypted_cache_path)
        except (IntegrityError, OSError) as e:
            logger.error(f"Could not decrypt document {document.id}: {e}")
            raise ValidationFailedError("Encrypted copy is unreadable")

    async def create_share_link(
        self, user: User, document_id: int, action: str, expiry_hours: float = DEFAULT_LINK_HOURS
    ) -> Tuple[str, datetime]:
        document = await self.get(user, document_id)
        path = self.signer.generate(document.id, user.id, action, expiry_hours=expiry_hours)
        url = f"{self.settings.PUBLIC_API_URL}{self.settings.API_V1_STR}{path}"
        expires = int(path.rsplit("/", 2)[1])
        await self.logs.add_entry(
            user.id, "create-secure-link", document_id=document.id,
            details={"action": action, "expires": expires, "tenant_id": user.tenant_id},
        )
        return url, datetime.fromtimestamp(expires / 1000, tz=timezone.utc).replace(tzinfo=None)

    def validate_upload(self, filename: str, size: int, mime_type: str) -> List[str]:
        errors = []
        if size > self.settings.MAX_UPLOAD_BYTES:
            errors.append(f"File exceeds the {self.settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit")
        if mime_type not in ALLOWED_UPLOAD_MIME_TYPES:
            errors.append(f"File type {mime_type} is not allowed")
        if not is_valid_upload_filename(filename):
            errors.append("Filename must follow <path>_<title>_Rev.<n>_<YYYY-MM-DD>.<ext>")
        return errors

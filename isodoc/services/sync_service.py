"""
One sync pass for one tenant: walk the tenant's Drive folder tree and ingest
every not-yet-seen file whose name follows the ISO naming convention.

Files are handled strictly one after another. A file is persisted only once
its alert status is known, so a failure at any step leaves nothing behind and
the next pass picks the file up again.
"""

import asyncio
import logging
import os
import tempfile
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, List, Optional

from isodoc.core.config import Settings, get_settings
from isodoc.core.exceptions import DriveError, SyncConfigurationError
from isodoc.core.monitoring import SYNC_FILES, SYNC_PASS_DURATION, SYNC_PASS_ERRORS, track_time
from isodoc.models.base import Client, utcnow
from isodoc.repositories.client_repository import ClientRepository
from isodoc.repositories.document_repository import DocumentRepository
from isodoc.repositories.log_repository import LogRepository
from isodoc.repositories.user_repository import UserRepository
from isodoc.services.alert_classifier import classify_alert
from isodoc.services.filename_parser import extract_folder_id, parse_filename
from isodoc.services.google_drive_service import GoogleDriveService, RemoteFile
from isodoc.services.obsolescence import ObsolescenceResolver

logger = logging.getLogger(__name__)

OUTCOME_CREATED = "created"
OUTCOME_SKIPPED = "skipped"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_FAILED = "failed"


@dataclass
class FileOutcome:
    file_id: str
    name: str
    status: str
    document_id: Optional[int] = None
    error: Optional[str] = None


@dataclass
class SyncReport:
    tenant_id: int
    folder_id: str
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    files: List[FileOutcome] = field(default_factory=list)
    obsoleted: int = 0

    def count(self, status: str) -> int:
        return sum(1 for outcome in self.files if outcome.status == status)

    def summary(self) -> str:
        return (
            f"{len(self.files)} files, created {self.count(OUTCOME_CREATED)}, "
            f"skipped {self.count(OUTCOME_SKIPPED)}, duplicates {self.count(OUTCOME_DUPLICATE)}, "
            f"failed {self.count(OUTCOME_FAILED)}, obsoleted {self.obsoleted}"
        )


def _scratch_name(name: str) -> str:
    return f"{uuid.uuid4()}-{name.replace('/', '_').replace(os.sep, '_')}"


class SyncService:
    def __init__(
        self,
        session_factory,
        drive_factory: Optional[Callable[[Client], GoogleDriveService]] = None,
        settings: Optional[Settings] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.drive_factory = drive_factory or (lambda client: GoogleDriveService.for_client(client, self.settings))
        self.scratch_dir = self.settings.SCRATCH_DIR or tempfile.gettempdir()
        self.today = today or date.today

    @track_time(SYNC_PASS_DURATION)
    async def run_sync(
        self,
        folder_id_or_url: Optional[str],
        tenant_id: int,
        acting_user_id: Optional[int] = None,
    ) -> Optional[SyncReport]:
        """Run one pass. Returns None when the pass could not start or was aborted."""
        try:
            async with self.session_factory() as session:
                return await self._run(session, folder_id_or_url, tenant_id, acting_user_id)
        except SyncConfigurationError as e:
            SYNC_PASS_ERRORS.labels(error_type="configuration").inc()
            logger.warning(f"Sync for tenant {tenant_id} not started: {e}")
        except DriveError as e:
            SYNC_PASS_ERRORS.labels(error_type="drive").inc()
            logger.error(f"Sync pass for tenant {tenant_id} aborted: {e}")
        except Exception as e:
            SYNC_PASS_ERRORS.labels(error_type="unexpected").inc()
            logger.error(f"Sync pass for tenant {tenant_id} failed: {e}", exc_info=True)
        return None

    async def _run(self, session, folder_id_or_url, tenant_id, acting_user_id) -> SyncReport:
        clients = ClientRepository(session)
        users = UserRepository(session)
        documents = DocumentRepository(session)
        logs = LogRepository(session)

        client = await clients.get(tenant_id)
        if client is None:
            raise SyncConfigurationError(f"Client {tenant_id} does not exist")

        folder_id = extract_folder_id(folder_id_or_url) if folder_id_or_url else None
        folder_id = folder_id or extract_folder_id(client.drive_folder_id or "")
        if not folder_id:
            raise SyncConfigurationError(f"Client {tenant_id} has no valid Drive folder id")

        if acting_user_id is None:
            admin = await users.find_tenant_admin(tenant_id)
            if admin is None:
                raise SyncConfigurationError(f"Client {tenant_id} has no admin user")
            acting_user_id = admin.id

        drive = self.drive_factory(client)
        os.makedirs(self.scratch_dir, exist_ok=True)

        report = SyncReport(tenant_id=tenant_id, folder_id=folder_id)
        logger.info(f"Sync pass started for tenant {tenant_id} (folder {folder_id})")

        remote_files = await self.collect_files(drive, folder_id)
        logger.info(f"Found {len(remote_files)} files for tenant {tenant_id}")

        resolver = ObsolescenceResolver(documents, logs)
        for remote in remote_files:
            outcome = await self._process_file(drive, remote, tenant_id, acting_user_id, documents, resolver, report)
            report.files.append(outcome)
            SYNC_FILES.labels(outcome=outcome.status).inc()

        # per-file rollbacks expire loaded rows, reload before comparing tokens
        client = await clients.get(tenant_id)
        await self._store_refreshed_credentials(drive, client, clients)

        report.finished_at = utcnow()
        logger.info(f"Sync pass completed for tenant {tenant_id}: {report.summary()}")
        return report

    async def collect_files(self, drive, root_folder_id: str) -> List[RemoteFile]:
        """Breadth-first walk of the folder tree; folders themselves are not returned."""
        files = []
        queue = deque([root_folder_id])
        seen = {root_folder_id}
        while queue:
            folder_id = queue.popleft()
            for entry in await drive.list_files(folder_id):
                if entry.is_folder:
                    if entry.id not in seen:
                        seen.add(entry.id)
                        queue.append(entry.id)
                else:
                    files.append(entry)
        return files

    async def _process_file(self, drive, remote, tenant_id, acting_user_id, documents, resolver, report) -> FileOutcome:
        parsed = parse_filename(remote.name)
        if parsed is None:
            logger.debug(f"Skipping {remote.name}: not an ISO document name")
            return FileOutcome(remote.id, remote.name, OUTCOME_SKIPPED)

        existing = await documents.find_by_path_title_revision(parsed.path, parsed.title, parsed.revision, tenant_id)
        if existing is not None:
            return FileOutcome(remote.id, remote.name, OUTCOME_DUPLICATE, document_id=existing.id)

        scratch_path = os.path.join(self.scratch_dir, _scratch_name(remote.name))
        try:
            await drive.download_file(remote.id, scratch_path, remote.mime_type)
            alert = await asyncio.to_thread(classify_alert, scratch_path, parsed.file_type, self.today())

            document = await documents.create({
                "title": parsed.title,
                "path": parsed.path,
                "revision": parsed.revision,
                "source_url": remote.view_url,
                "file_type": parsed.file_type,
                "alert_status": alert.alert_status,
                "expiry_date": alert.expiry_date,
                "is_obsolete": False,
                "tenant_id": tenant_id,
                "owner_id": acting_user_id,
            }, commit=False)
            document_id = document.id
            marked = await resolver.resolve(document, acting_user_id, commit=False)
            # one commit per file, covering the document and the marks it caused
            await documents.session.commit()

            logger.info(f"Created document {document_id}: {parsed.path} {parsed.title} {parsed.revision}")
            report.obsoleted += len(marked)
            return FileOutcome(remote.id, remote.name, OUTCOME_CREATED, document_id=document_id)
        except Exception as e:
            await documents.session.rollback()
            logger.error(f"Failed to ingest {remote.name}: {e}", exc_info=True)
            return FileOutcome(remote.id, remote.name, OUTCOME_FAILED, error=str(e))
        finally:
            try:
                os.remove(scratch_path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Could not remove scratch file {scratch_path}: {e}")

    async def _store_refreshed_credentials(self, drive, client: Client, clients: ClientRepository) -> None:
        token, refresh_token, expiry_ms = drive.credential_bundle()
        if token and token != client.google_access_token:
            await clients.store_credentials(client, token, refresh_token, expiry_ms)
            logger.info(f"Stored refreshed Google token for tenant {client.id}")

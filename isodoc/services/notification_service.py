import asyncio
import html
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from isodoc.core.config import Settings, get_settings
from isodoc.models.base import Document
from isodoc.repositories.client_repository import ClientRepository
from isodoc.repositories.document_repository import DocumentRepository, sort_by_path
from isodoc.repositories.user_repository import UserRepository
from isodoc.services.alert_classifier import ALERT_EXPIRED, ALERT_WARNING, status_for_expiry
from isodoc.services.email_service import EmailService

logger = logging.getLogger(__name__)


@dataclass
class ExpiryFindings:
    expired: List[Document] = field(default_factory=list)
    expiring: List[Document] = field(default_factory=list)


def documents_table(documents: List[Document]) -> str:
    rows = "".join(
        "<tr>"
        f"<td>{html.escape(doc.path)}</td>"
        f"<td>{html.escape(doc.title)}</td>"
        f"<td>{html.escape(doc.revision)}</td>"
        f"<td>{doc.expiry_date.strftime('%d/%m/%Y') if doc.expiry_date else 'N/A'}</td>"
        "</tr>"
        for doc in sort_by_path(documents)
    )
    return (
        '<table style="border-collapse: collapse; width: 100%;" border="1" cellpadding="6">'
        "<tr><th>Path</th><th>Title</th><th>Revision</th><th>Expiry</th></tr>"
        f"{rows}</table>"
    )


class ExpiryMonitor:
    """Periodic re-check of document expiry dates, emailing each tenant's admins."""

    def __init__(self, session_factory, email_service: EmailService, settings: Optional[Settings] = None):
        self.session_factory = session_factory
        self.email_service = email_service
        self.settings = settings or get_settings()
        self._task: Optional[asyncio.Task] = None

    def classify(self, documents: List[Document], today: date) -> Dict[Optional[int], ExpiryFindings]:
        findings: Dict[Optional[int], ExpiryFindings] = defaultdict(ExpiryFindings)
        for doc in documents:
            warning_days = doc.warning_days or self.settings.DEFAULT_WARNING_DAYS
            status = status_for_expiry(doc.expiry_date, today, warning_days)
            if status == ALERT_EXPIRED:
                findings[doc.tenant_id].expired.append(doc)
            elif status == ALERT_WARNING:
                findings[doc.tenant_id].expiring.append(doc)
        return dict(findings)

    async def check_document_expirations(self, today: Optional[date] = None) -> Dict[Optional[int], ExpiryFindings]:
        today = today or date.today()
        async with self.session_factory() as session:
            documents = await DocumentRepository(session).list_with_expiry()
            findings = self.classify(documents, today)

            clients = ClientRepository(session)
            users = UserRepository(session)
            for tenant_id, found in findings.items():
                if tenant_id is None:
                    logger.warning(f"{len(found.expired) + len(found.expiring)} expiring documents have no client")
                    continue
                client = await clients.get(tenant_id)
                admins = await users.list_tenant_admins(tenant_id)
                recipients = [admin.email for admin in admins]
                if not recipients:
                    logger.warning(f"No admin to notify for client {tenant_id}")
                    continue
                client_name = html.escape(client.name) if client else str(tenant_id)
                if found.expired:
                    await self.email_service.send_template(
                        "documents_expired", recipients,
                        count=len(found.expired), client_name=client_name, table=documents_table(found.expired),
                    )
                if found.expiring:
                    await self.email_service.send_template(
                        "documents_expiring", recipients,
                        count=len(found.expiring), client_name=client_name, table=documents_table(found.expiring),
                    )

        expired = sum(len(found.expired) for found in findings.values())
        expiring = sum(len(found.expiring) for found in findings.values())
        logger.info(f"Expiry check completed: {expired} expired, {expiring} expiring")
        return findings

    async def _loop(self) -> None:
        while True:
            try:
                await self.check_document_expirations()
            except Exception as e:
                logger.error(f"Expiry check failed: {e}", exc_info=True)
            await asyncio.sleep(self.settings.EXPIRY_CHECK_INTERVAL_SECONDS)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop(), name="expiry-monitor")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

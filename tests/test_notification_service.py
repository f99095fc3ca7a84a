from datetime import date, timedelta
from unittest.mock import AsyncMock, Mock
from conftest import create_user
from isodoc.repositories.document_repository import DocumentRepository
from isodoc.services.email_service import EmailService
from isodoc.services.notification_service import ExpiryMonitor

TODAY = date(2024, 6, 1)

async def add_document(session, tenant_id, owner_id, title, expiry_date, warning_days=None, is_obsolete=False):
    return await DocumentRepository(session).create({
        "title": title,
        "path": "7.1",
        "revision": "Rev.1",
        "file_type": "xlsx",
        "expiry_date": expiry_date,
        "warning_days": warning_days,
        "is_obsolete": is_obsolete,
        "tenant_id": tenant_id,
        "owner_id": owner_id,
    })

async def test_admins_are_emailed_expired_and_expiring_documents(session_factory, session, tenant, settings):
    tenant_id, admin_id = tenant
    await create_user(session_factory, "viewer@acme.test", role="viewer", tenant_id=tenant_id)
    await add_document(session, tenant_id, admin_id, "Scaduto", TODAY - timedelta(days=1))
    await add_document(session, tenant_id, admin_id, "In scadenza", TODAY + timedelta(days=10))
    await add_document(session, tenant_id, admin_id, "Lontano", TODAY + timedelta(days=90))
    await add_document(session, tenant_id, admin_id, "Vecchio", TODAY - timedelta(days=5), is_obsolete=True)
    email_service = Mock(spec=EmailService)
    email_service.send_template = AsyncMock(return_value=True)

    findings = await ExpiryMonitor(session_factory, email_service, settings).check_document_expirations(TODAY)

    assert [doc.title for doc in findings[tenant_id].expired] == ["Scaduto"]
    assert [doc.title for doc in findings[tenant_id].expiring] == ["In scadenza"]
    templates = [call.args[0] for call in email_service.send_template.await_args_list]
    assert templates == ["documents_expired", "documents_expiring"]
    for call in email_service.send_template.await_args_list:
        assert call.args[1] == ["admin@acme.test"]
        assert call.kwargs["count"] == 1

async def test_document_warning_days_override_default(session_factory, session, tenant, settings):
    tenant_id, admin_id = tenant
    await add_document(session, tenant_id, admin_id, "Lungo preavviso", TODAY + timedelta(days=50), warning_days=60)
    email_service = Mock(spec=EmailService)
    email_service.send_template = AsyncMock(return_value=True)

    findings = await ExpiryMonitor(session_factory, email_service, settings).check_document_expirations(TODAY)

    assert [doc.title for doc in findings[tenant_id].expiring] == ["Lungo preavviso"]

async def test_nothing_to_report_sends_nothing(session_factory, tenant, settings):
    email_service = Mock(spec=EmailService)
    email_service.send_template = AsyncMock(return_value=True)

    findings = await ExpiryMonitor(session_factory, email_service, settings).check_document_expirations(TODAY)

    assert findings == {}
    email_service.send_template.assert_not_awaited()

def test_expired_template_subject(settings):
    rendered = EmailService(settings).render("documents_expired", count=3, client_name="Acme", table="<table></table>")

    assert rendered["subject"] == "URGENT: 3 documents expired"
    assert "<table></table>" in rendered["html"]

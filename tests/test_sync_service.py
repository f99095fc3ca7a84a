import os
from datetime import date, datetime
from openpyxl import Workbook
from conftest import XLSX_MIME, create_client, folder, remote
from isodoc.models.base import Document
from isodoc.repositories.client_repository import ClientRepository
from isodoc.repositories.document_repository import DocumentRepository
from isodoc.repositories.log_repository import LogRepository
from isodoc.services.obsolescence import ObsolescenceResolver
from isodoc.services.sync_service import OUTCOME_CREATED, OUTCOME_DUPLICATE, OUTCOME_FAILED, OUTCOME_SKIPPED, SyncService
from sqlalchemy.future import select

async def all_documents(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(Document).order_by(Document.id))
        return list(result.scalars().all())

def spreadsheet(tmp_path, expiry):
    workbook = Workbook()
    workbook.active.append(["Registro", "Scadenza", expiry])
    path = tmp_path / "register.xlsx"
    workbook.save(path)
    return str(path)

async def test_pass_ingests_matching_files_across_subfolders(sync_service, fake_drive, tenant, session_factory):
    tenant_id, admin_id = tenant
    fake_drive.tree = {
        "rootFolder": [
            remote("f1", "1_Manuale Qualità_Rev.1_2024-01-10.pdf"),
            folder("sub"),
            remote("f2", "notes.txt"),
        ],
        "sub": [remote("f3", "8.2.1_Gestione Ordini_Rev.3_2024-01-15.pdf")],
    }

    report = await sync_service.run_sync(None, tenant_id)

    assert report.count(OUTCOME_CREATED) == 2
    assert report.count(OUTCOME_SKIPPED) == 1
    assert fake_drive.listed == ["rootFolder", "sub"]
    documents = await all_documents(session_factory)
    assert [(doc.path, doc.title, doc.revision) for doc in documents] == [
        ("1", "Manuale Qualità", "Rev.1"),
        ("8.2.1", "Gestione Ordini", "Rev.3"),
    ]
    assert all(doc.tenant_id == tenant_id and doc.owner_id == admin_id for doc in documents)
    assert documents[0].source_url == "https://drive.google.com/file/d/f1/view"

async def test_rejected_names_are_not_downloaded(sync_service, fake_drive, tenant):
    tenant_id, _ = tenant
    fake_drive.tree = {"rootFolder": [remote("f1", "random.pdf")]}

    await sync_service.run_sync(None, tenant_id)

    assert fake_drive.downloaded == []

async def test_second_pass_is_idempotent(sync_service, fake_drive, tenant, session_factory):
    tenant_id, _ = tenant
    fake_drive.tree = {"rootFolder": [
        remote("f1", "8.2.1_Gestione Ordini_Rev.1_2024-01-15.pdf"),
        remote("f2", "8.2.1_Gestione Ordini_Rev.2_2024-02-15.pdf"),
    ]}

    first = await sync_service.run_sync(None, tenant_id)
    async with session_factory() as session:
        logs_after_first = len(await LogRepository(session).list())
    second = await sync_service.run_sync(None, tenant_id)

    assert first.obsoleted == 1
    assert second.count(OUTCOME_CREATED) == 0
    assert second.count(OUTCOME_DUPLICATE) == 2
    assert second.obsoleted == 0
    assert len(await all_documents(session_factory)) == 2
    async with session_factory() as session:
        assert len(await LogRepository(session).list()) == logs_after_first

async def test_listing_order_does_not_break_monotonicity(sync_service, fake_drive, tenant, session_factory):
    tenant_id, _ = tenant
    fake_drive.tree = {"rootFolder": [
        remote("f3", "8.2.1_Gestione Ordini_Rev.3_2024-03-15.pdf"),
        remote("f1", "8.2.1_Gestione Ordini_Rev.1_2024-01-15.pdf"),
        remote("f2", "8.2.1_Gestione Ordini_Rev.2_2024-02-15.pdf"),
    ]}

    await sync_service.run_sync(None, tenant_id)

    active = [doc.revision for doc in await all_documents(session_factory) if not doc.is_obsolete]
    assert active == ["Rev.3"]

async def test_failed_download_is_skipped_and_cleaned_up(sync_service, fake_drive, tenant, session_factory, settings):
    tenant_id, _ = tenant
    fake_drive.tree = {"rootFolder": [
        remote("bad", "1_Manuale_Rev.1_2024-01-10.pdf"),
        remote("good", "2_Procedura_Rev.1_2024-01-10.pdf"),
    ]}
    fake_drive.failing = {"bad"}

    report = await sync_service.run_sync(None, tenant_id)

    assert report.count(OUTCOME_FAILED) == 1
    assert report.count(OUTCOME_CREATED) == 1
    assert [doc.title for doc in await all_documents(session_factory)] == ["Procedura"]
    assert os.listdir(settings.SCRATCH_DIR) == []

async def test_failed_file_is_retried_on_next_pass(sync_service, fake_drive, tenant, session_factory):
    tenant_id, _ = tenant
    fake_drive.tree = {"rootFolder": [remote("f1", "1_Manuale_Rev.1_2024-01-10.pdf")]}
    fake_drive.failing = {"f1"}
    await sync_service.run_sync(None, tenant_id)

    fake_drive.failing = set()
    report = await sync_service.run_sync(None, tenant_id)

    assert report.count(OUTCOME_CREATED) == 1
    assert len(await all_documents(session_factory)) == 1

async def test_failed_resolution_leaves_nothing_behind(sync_service, fake_drive, tenant, session_factory, monkeypatch):
    tenant_id, _ = tenant
    fake_drive.tree = {"rootFolder": [remote("f1", "8.2.1_Gestione Ordini_Rev.1_2024-01-15.pdf")]}
    await sync_service.run_sync(None, tenant_id)
    async with session_factory() as session:
        logs_before = len(await LogRepository(session).list())

    async def broken_resolve(self, document, acting_user_id, commit=True):
        for sibling in await self.documents.find_by_path_and_title(document.path, document.title, document.tenant_id):
            if sibling.id != document.id:
                await self.documents.mark_obsolete(sibling.id, commit=commit)
        raise RuntimeError("resolver crashed")
    monkeypatch.setattr(ObsolescenceResolver, "resolve", broken_resolve)
    fake_drive.tree["rootFolder"].append(remote("f2", "8.2.1_Gestione Ordini_Rev.2_2024-02-15.pdf"))

    report = await sync_service.run_sync(None, tenant_id)

    assert report.count(OUTCOME_FAILED) == 1
    documents = await all_documents(session_factory)
    assert [(doc.revision, doc.is_obsolete) for doc in documents] == [("Rev.1", False)]
    async with session_factory() as session:
        assert len(await LogRepository(session).list()) == logs_before

    monkeypatch.undo()
    retry = await sync_service.run_sync(None, tenant_id)

    assert retry.count(OUTCOME_CREATED) == 1
    assert retry.obsoleted == 1
    active = [doc.revision for doc in await all_documents(session_factory) if not doc.is_obsolete]
    assert active == ["Rev.2"]

async def test_padded_stored_revision_counts_as_duplicate(sync_service, fake_drive, tenant, session_factory):
    tenant_id, admin_id = tenant
    async with session_factory() as session:
        await DocumentRepository(session).create({
            "title": "Gestione Ordini", "path": "8.2.1", "revision": "Rev.03", "file_type": "pdf",
            "tenant_id": tenant_id, "owner_id": admin_id, "is_obsolete": False,
        })
    fake_drive.tree = {"rootFolder": [remote("f1", "8.2.1_Gestione Ordini_Rev.3_2024-01-15.pdf")]}

    report = await sync_service.run_sync(None, tenant_id)

    assert report.count(OUTCOME_DUPLICATE) == 1
    assert len(await all_documents(session_factory)) == 1

async def test_scratch_files_are_removed_after_success(sync_service, fake_drive, tenant, settings):
    tenant_id, _ = tenant
    fake_drive.tree = {"rootFolder": [remote("f1", "1_Manuale_Rev.1_2024-01-10.pdf")]}

    await sync_service.run_sync(None, tenant_id)

    _, scratch_path = fake_drive.downloaded[0]
    assert os.path.dirname(scratch_path) == settings.SCRATCH_DIR
    assert not os.path.exists(scratch_path)

async def test_spreadsheet_alert_is_stored(session_factory, fake_drive, tenant, settings, tmp_path):
    tenant_id, _ = tenant
    fake_drive.tree = {"rootFolder": [remote("x1", "7.1_Registro Tarature_Rev.2_2024-01-10.xlsx", XLSX_MIME)]}
    fake_drive.contents = {"x1": spreadsheet(tmp_path, datetime(2024, 6, 20))}
    service = SyncService(
        session_factory, drive_factory=lambda client: fake_drive, settings=settings, today=lambda: date(2024, 6, 1)
    )

    await service.run_sync(None, tenant_id)

    document = (await all_documents(session_factory))[0]
    assert document.alert_status == "warning"
    assert document.expiry_date == date(2024, 6, 20)

async def test_explicit_folder_url_wins_over_client_folder(sync_service, fake_drive, tenant):
    tenant_id, _ = tenant
    fake_drive.tree = {"otherRoot": [remote("f1", "1_Manuale_Rev.1_2024-01-10.pdf")]}

    report = await sync_service.run_sync("https://drive.google.com/drive/folders/otherRoot", tenant_id)

    assert report.folder_id == "otherRoot"
    assert report.count(OUTCOME_CREATED) == 1

async def test_missing_tenant_aborts_pass(sync_service, fake_drive):
    assert await sync_service.run_sync(None, 999) is None
    assert fake_drive.listed == []

async def test_tenant_without_admin_aborts_pass(sync_service, fake_drive, session_factory):
    tenant_id = await create_client(session_factory, name="Lonely")

    assert await sync_service.run_sync(None, tenant_id) is None
    assert fake_drive.listed == []

async def test_tenant_without_credentials_aborts_pass(session_factory, settings):
    from conftest import create_user
    tenant_id = await create_client(session_factory, name="NoCreds", credentials=False)
    await create_user(session_factory, "admin@nocreds.test", tenant_id=tenant_id)
    service = SyncService(session_factory, settings=settings)

    assert await service.run_sync(None, tenant_id) is None

async def test_listing_failure_aborts_pass(sync_service, fake_drive, tenant):
    from isodoc.core.exceptions import DriveError
    tenant_id, _ = tenant

    async def broken_listing(folder_id):
        raise DriveError("Drive call timed out")
    fake_drive.list_files = broken_listing

    assert await sync_service.run_sync(None, tenant_id) is None

async def test_refreshed_token_is_written_back(sync_service, fake_drive, tenant, session_factory):
    tenant_id, _ = tenant
    fake_drive.bundle = ("new-access-token", None, 1767225600000)

    await sync_service.run_sync(None, tenant_id)

    async with session_factory() as session:
        client = await ClientRepository(session).get(tenant_id)
    assert client.google_access_token == "new-access-token"
    assert client.google_refresh_token == "refresh-token"
    assert client.google_token_expiry == 1767225600000

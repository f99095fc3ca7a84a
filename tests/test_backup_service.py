import json
import pytest
from isodoc.core.exceptions import ValidationFailedError
from isodoc.repositories.document_repository import DocumentRepository
from isodoc.repositories.log_repository import LogRepository
from isodoc.repositories.user_repository import UserRepository
from isodoc.services.backup_service import BACKUP_VERSION, BackupService

async def add_document(session, tenant_id, owner_id, title="Manuale"):
    return await DocumentRepository(session).create({
        "title": title,
        "path": "1",
        "revision": "Rev.1",
        "file_type": "pdf",
        "tenant_id": tenant_id,
        "owner_id": owner_id,
    })

async def test_backup_contains_every_section(session, tenant, tmp_path):
    tenant_id, admin_id = tenant
    await add_document(session, tenant_id, admin_id)
    service = BackupService(session, str(tmp_path / "backups"))

    path = await service.create_backup()

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["version"] == BACKUP_VERSION
    assert {"timestamp", "counters", "clients", "users", "company_codes", "documents", "logs"} <= set(data)
    assert data["documents"][0]["title"] == "Manuale"
    assert service.list_backups() == [path.name]

async def test_restore_replaces_current_data(session_factory, tenant, tmp_path):
    tenant_id, admin_id = tenant
    backup_dir = str(tmp_path / "backups")
    async with session_factory() as session:
        await add_document(session, tenant_id, admin_id, title="Before")
        backup = await BackupService(session, backup_dir).create_backup()
        await add_document(session, tenant_id, admin_id, title="After")
        await LogRepository(session).add_entry(admin_id, "upload")

    async with session_factory() as session:
        counts = await BackupService(session, backup_dir).restore_backup(backup.name)

    async with session_factory() as session:
        titles = [doc.title for doc in await DocumentRepository(session).list()]
        assert titles == ["Before"]
        assert await LogRepository(session).list() == []
        assert await UserRepository(session).get(admin_id) is not None
        # the restored counters keep new ids clear of restored rows
        created = await add_document(session, tenant_id, admin_id, title="Next")
        assert created.id == 2
    assert counts["documents"] == 1
    assert len(BackupService(None, backup_dir).list_backups()) == 2

async def test_restore_rejects_paths_outside_backup_dir(session, tmp_path):
    (tmp_path / "outside.json").write_text("{}", encoding="utf-8")
    service = BackupService(session, str(tmp_path / "backups"))

    with pytest.raises(ValidationFailedError):
        await service.restore_backup("../outside.json")

async def test_restore_rejects_invalid_structure(session, tenant, tmp_path):
    backup_dir = tmp_path / "backups"
    backup_dir.mkdir()
    (backup_dir / "backup-broken.json").write_text(json.dumps({"users": []}), encoding="utf-8")
    service = BackupService(session, str(backup_dir))

    with pytest.raises(ValidationFailedError):
        await service.restore_backup("backup-broken.json")

    assert await UserRepository(session).count() == 1

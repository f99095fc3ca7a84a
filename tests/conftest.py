import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="isodoc-tests-")
os.environ["SECRET_KEY"] = "test-secret-key-0123456789abcdef0123456789"
os.environ["ENVIRONMENT"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/app.db"
os.environ["LINK_SECRET_KEY"] = "test-link-secret-0123456789abcdef0123"
os.environ["ENCRYPTION_KEY"] = "test-encryption-key-0123456789abcdef"
os.environ["SYNC_ON_STARTUP"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENCRYPTED_CACHE_DIR"] = os.path.join(_TEST_DIR, "encrypted_cache")
os.environ["BACKUP_DIR"] = os.path.join(_TEST_DIR, "backups")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from isodoc.core.config import get_settings
from isodoc.core.database import get_session, init_db
from isodoc.core.exceptions import DriveError
from isodoc.core.security import hash_password
from isodoc.repositories.client_repository import ClientRepository
from isodoc.repositories.user_repository import UserRepository
from isodoc.services.google_drive_service import RemoteFile
from isodoc.services.scheduler import SyncScheduler
from isodoc.services.sync_service import SyncService

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MIME = "application/pdf"
FOLDER_MIME = "application/vnd.google-apps.folder"

class FakeDrive:
    """In-memory stand-in for GoogleDriveService."""

    def __init__(self, tree=None, contents=None, failing=()):
        self.tree = tree or {}
        self.contents = contents or {}
        self.failing = set(failing)
        self.listed = []
        self.downloaded = []
        self.bundle = (None, None, None)

    async def list_files(self, folder_id):
        self.listed.append(folder_id)
        return list(self.tree.get(folder_id, []))

    async def download_file(self, file_id, dest_path, mime_type):
        self.downloaded.append((file_id, dest_path))
        if file_id in self.failing:
            raise DriveError(f"Download of {file_id} failed")
        content = self.contents.get(file_id, b"%PDF-1.4 test")
        if isinstance(content, str):
            with open(content, "rb") as fh:
                content = fh.read()
        with open(dest_path, "wb") as fh:
            fh.write(content)

    def credential_bundle(self):
        return self.bundle

def remote(file_id, name, mime_type=PDF_MIME):
    return RemoteFile(id=file_id, name=name, mime_type=mime_type, view_url=f"https://drive.google.com/file/d/{file_id}/view")

def folder(folder_id, name="folder"):
    return RemoteFile(id=folder_id, name=name, mime_type=FOLDER_MIME)

@pytest.fixture
def settings(tmp_path):
    return get_settings().model_copy(update={
        "SCRATCH_DIR": str(tmp_path / "scratch"),
        "BACKUP_DIR": str(tmp_path / "backups"),
        "ENCRYPTED_CACHE_DIR": str(tmp_path / "encrypted_cache"),
    })

@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()

@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)

@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session

@pytest.fixture
def fake_drive():
    return FakeDrive()

@pytest.fixture
def sync_service(session_factory, fake_drive, settings):
    return SyncService(session_factory, drive_factory=lambda client: fake_drive, settings=settings)

@pytest.fixture
async def scheduler(sync_service, session_factory):
    scheduler = SyncScheduler(sync_service, session_factory, interval_seconds=3600)
    yield scheduler
    await scheduler.stop_all()

async def create_client(session_factory, name="Acme", folder_id="rootFolder", credentials=True):
    async with session_factory() as session:
        values = {"name": name, "drive_folder_id": folder_id}
        if credentials:
            values.update({"google_access_token": "access-token", "google_refresh_token": "refresh-token"})
        client = await ClientRepository(session).create(values)
        return client.id

async def create_user(session_factory, email, password="secret123", role="admin", tenant_id=None):
    async with session_factory() as session:
        user = await UserRepository(session).create({
            "email": email,
            "password_hash": hash_password(password),
            "role": role,
            "tenant_id": tenant_id,
        })
        return user.id

@pytest.fixture
async def tenant(session_factory):
    """A client with credentials and one admin: (tenant_id, admin_id)."""
    tenant_id = await create_client(session_factory)
    admin_id = await create_user(session_factory, "admin@acme.test", tenant_id=tenant_id)
    return tenant_id, admin_id

@pytest.fixture
async def api_client(session_factory, scheduler, monkeypatch, tmp_path):
    from isodoc.main import app

    async def override_get_session():
        async with session_factory() as session:
            yield session

    monkeypatch.setattr(get_settings(), "BACKUP_DIR", str(tmp_path / "backups"))
    monkeypatch.setattr(get_settings(), "ENCRYPTED_CACHE_DIR", str(tmp_path / "encrypted_cache"))
    app.dependency_overrides[get_session] = override_get_session
    app.state.scheduler = scheduler
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()

async def login(client, email, password="secret123", remember_me=False):
    response = await client.post(
        "/api/v1/login", json={"email": email, "password": password, "remember_me": remember_me}
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}

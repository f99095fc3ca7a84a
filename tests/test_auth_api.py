from datetime import datetime, timedelta
from unittest.mock import AsyncMock, Mock
from urllib.parse import urlparse
import pytest
from conftest import login
from isodoc.core.dependencies import get_email_service
from isodoc.models.base import utcnow
from isodoc.repositories.company_code_repository import CompanyCodeRepository
from isodoc.repositories.log_repository import LogRepository
from isodoc.repositories.user_repository import UserRepository
from isodoc.services.email_service import EmailService

async def create_code(session_factory, created_by, code="WELCOME-1", role="viewer", usage_limit=1, **extra):
    async with session_factory() as session:
        company_code = await CompanyCodeRepository(session).create({
            "code": code,
            "role": role,
            "usage_limit": usage_limit,
            "usage_count": 0,
            "created_by": created_by,
            **extra,
        })
        return company_code.id

async def actions(session_factory):
    async with session_factory() as session:
        return [entry.action for entry in await LogRepository(session).list()]

@pytest.fixture
def mail_outbox():
    from isodoc.main import app
    email_service = Mock(spec=EmailService)
    email_service.send_template = AsyncMock(return_value=True)
    app.dependency_overrides[get_email_service] = lambda: email_service
    return email_service

async def test_register_with_viewer_code_joins_creator_client(api_client, session_factory, tenant):
    tenant_id, admin_id = tenant
    await create_code(session_factory, admin_id)

    response = await api_client.post(
        "/api/v1/register",
        json={"email": "New.Viewer@acme.test", "password": "secret123", "company_code": "WELCOME-1"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "new.viewer@acme.test"
    assert body["role"] == "viewer"
    assert body["tenant_id"] == tenant_id
    assert "company_code_used" in await actions(session_factory)

async def test_register_with_invalid_code_is_rejected_and_audited(api_client, session_factory, tenant):
    response = await api_client.post(
        "/api/v1/register",
        json={"email": "someone@acme.test", "password": "secret123", "company_code": "NOPE"},
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_FAILED"
    assert await actions(session_factory) == ["invalid_company_code_attempt"]

async def test_company_code_cannot_be_used_past_its_limit(api_client, session_factory, tenant):
    _, admin_id = tenant
    await create_code(session_factory, admin_id)
    first = await api_client.post(
        "/api/v1/register", json={"email": "a@acme.test", "password": "secret123", "company_code": "WELCOME-1"}
    )
    second = await api_client.post(
        "/api/v1/register", json={"email": "b@acme.test", "password": "secret123", "company_code": "WELCOME-1"}
    )

    assert first.status_code == 201
    assert second.status_code == 400
    async with session_factory() as session:
        code = await CompanyCodeRepository(session).get_by_code("WELCOME-1")
    assert code.usage_count == 1

async def test_expired_company_code_is_rejected(api_client, session_factory, tenant):
    _, admin_id = tenant
    await create_code(session_factory, admin_id, expires_at=utcnow() - timedelta(days=1))

    response = await api_client.post(
        "/api/v1/register", json={"email": "late@acme.test", "password": "secret123", "company_code": "WELCOME-1"}
    )

    assert response.status_code == 400

async def test_duplicate_email_conflicts(api_client, session_factory, tenant):
    _, admin_id = tenant
    await create_code(session_factory, admin_id)

    response = await api_client.post(
        "/api/v1/register", json={"email": "admin@acme.test", "password": "secret123", "company_code": "WELCOME-1"}
    )

    assert response.status_code == 409

async def test_login_and_current_user(api_client, tenant):
    headers = await login(api_client, "admin@acme.test")

    response = await api_client.get("/api/v1/user", headers=headers)

    assert response.status_code == 200
    assert response.json()["email"] == "admin@acme.test"
    assert response.json()["role"] == "admin"

async def test_login_with_wrong_password(api_client, tenant):
    response = await api_client.post(
        "/api/v1/login", json={"email": "admin@acme.test", "password": "wrong-password"}
    )

    assert response.status_code == 401
    assert response.json()["error_code"] == "NOT_AUTHENTICATED"

async def test_requests_without_token_are_rejected(api_client):
    response = await api_client.get("/api/v1/user")

    assert response.status_code == 401

async def test_session_lengths(api_client, tenant):
    short = await api_client.post("/api/v1/login", json={"email": "admin@acme.test", "password": "secret123"})
    long = await api_client.post(
        "/api/v1/login", json={"email": "admin@acme.test", "password": "secret123", "remember_me": True}
    )

    now = utcnow()
    short_expiry = short.json()["expires_at"]
    long_expiry = long.json()["expires_at"]
    assert datetime.fromisoformat(short_expiry) - now <= timedelta(hours=1)
    assert datetime.fromisoformat(long_expiry) - now > timedelta(days=6)

async def test_logout_ends_the_session(api_client, tenant):
    headers = await login(api_client, "admin@acme.test")

    assert (await api_client.post("/api/v1/logout", headers=headers)).status_code == 200
    assert (await api_client.get("/api/v1/user", headers=headers)).status_code == 401

async def test_expired_session_is_rejected_and_audited(api_client, session_factory, tenant):
    _, admin_id = tenant
    headers = await login(api_client, "admin@acme.test")
    async with session_factory() as session:
        users = UserRepository(session)
        await users.update(await users.get(admin_id), {"session_expiry": utcnow() - timedelta(minutes=1)})

    response = await api_client.get("/api/v1/user", headers=headers)

    assert response.status_code == 401
    assert response.json()["error_code"] == "SESSION_EXPIRED"
    assert "session_expired" in await actions(session_factory)

async def test_extend_session_issues_a_new_token(api_client, tenant):
    headers = await login(api_client, "admin@acme.test")

    response = await api_client.post("/api/v1/extend-session", headers=headers)

    assert response.status_code == 200
    new_headers = {"Authorization": f"Bearer {response.json()['access_token']}"}
    assert (await api_client.get("/api/v1/user", headers=new_headers)).status_code == 200

async def test_change_password(api_client, tenant):
    headers = await login(api_client, "admin@acme.test")

    wrong = await api_client.post(
        "/api/v1/change-password", headers=headers,
        json={"current_password": "nope", "new_password": "another123"},
    )
    ok = await api_client.post(
        "/api/v1/change-password", headers=headers,
        json={"current_password": "secret123", "new_password": "another123"},
    )

    assert wrong.status_code == 400
    assert ok.status_code == 200
    await login(api_client, "admin@acme.test", password="another123")

async def test_forgot_password_answers_the_same_for_unknown_emails(api_client, tenant, mail_outbox):
    known = await api_client.post("/api/v1/forgot-password", json={"email": "admin@acme.test"})
    unknown = await api_client.post("/api/v1/forgot-password", json={"email": "ghost@acme.test"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert mail_outbox.send_template.await_count == 1

async def test_password_reset_flow(api_client, tenant, mail_outbox):
    await api_client.post("/api/v1/forgot-password", json={"email": "admin@acme.test"})
    call = mail_outbox.send_template.await_args
    assert call.args[0] == "password_reset"
    reset_path = urlparse(call.kwargs["reset_url"]).path
    assert reset_path.startswith("/api/v1/secure/")

    redirect = await api_client.get(reset_path)
    assert redirect.status_code == 302
    assert "/reset-password?" in redirect.headers["location"]

    data, expires, signature = reset_path.rsplit("/", 3)[1:]
    link = {"data": data, "expires": expires, "signature": signature}
    assert (await api_client.post("/api/v1/verify-reset-link", json=link)).status_code == 200

    response = await api_client.post("/api/v1/reset-password", json={**link, "new_password": "brand-new-1"})
    assert response.status_code == 200
    await login(api_client, "admin@acme.test", password="brand-new-1")

async def test_reset_with_forged_signature_fails(api_client, tenant, mail_outbox):
    await api_client.post("/api/v1/forgot-password", json={"email": "admin@acme.test"})
    reset_path = urlparse(mail_outbox.send_template.await_args.kwargs["reset_url"]).path
    data, expires, _ = reset_path.rsplit("/", 3)[1:]

    response = await api_client.post(
        "/api/v1/reset-password",
        json={"data": data, "expires": expires, "signature": "forged", "new_password": "brand-new-1"},
    )

    assert response.status_code == 400

async def test_contact_requires_configured_address(api_client):
    response = await api_client.post(
        "/api/v1/contact", json={"name": "Mario", "email": "mario@example.com", "message": "Ciao"}
    )

    assert response.status_code == 400

async def test_contact_escapes_user_input(api_client, mail_outbox, monkeypatch):
    from isodoc.core.config import get_settings
    monkeypatch.setattr(get_settings(), "CONTACT_EMAIL", "support@isodocs.test")

    response = await api_client.post(
        "/api/v1/contact", json={"name": "<b>Mario</b>", "email": "mario@example.com", "message": "Ciao"}
    )

    assert response.status_code == 200
    call = mail_outbox.send_template.await_args
    assert call.args[1] == ["support@isodocs.test"]
    assert call.kwargs["name"] == "&lt;b&gt;Mario&lt;/b&gt;"
    assert call.kwargs["reply_to"] == "mario@example.com"

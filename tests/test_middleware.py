from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from isodoc.core.middleware import RateLimitMiddleware, SecurityHeadersMiddleware

def build_app(**limits):
    app = FastAPI()
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RateLimitMiddleware, **limits)

    @app.post("/api/v1/login")
    async def login():
        return {"ok": True}

    @app.get("/api/v1/documents")
    async def documents():
        return []

    return app

async def test_auth_paths_have_their_own_tighter_limit():
    app = build_app(auth_limit=(2, 60), default_limit=(100, 60))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        statuses = [(await client.post("/api/v1/login")).status_code for _ in range(3)]
        other = await client.get("/api/v1/documents")

    assert statuses == [200, 200, 429]
    assert other.status_code == 200

async def test_limited_response_carries_retry_after():
    app = build_app(auth_limit=(100, 60), default_limit=(1, 300))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.get("/api/v1/documents")
        response = await client.get("/api/v1/documents")

    assert response.status_code == 429
    assert response.json()["error_code"] == "RATE_LIMITED"
    assert 0 < int(response.headers["retry-after"]) <= 301

async def test_security_headers():
    async with AsyncClient(transport=ASGITransport(app=build_app()), base_url="http://test") as client:
        response = await client.get("/api/v1/documents")

    assert response.headers["x-frame-options"] == "DENY"
    assert response.headers["x-content-type-options"] == "nosniff"

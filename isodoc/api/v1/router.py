from fastapi import APIRouter
from isodoc.api.v1.endpoints import (
    auth,
    backup,
    clients,
    company_codes,
    documents,
    google,
    health,
    logs,
    secure,
    sync,
    users,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router, tags=["auth"])
api_router.include_router(users.router, tags=["users"])
api_router.include_router(clients.router, tags=["clients"])
api_router.include_router(documents.router, tags=["documents"])
api_router.include_router(company_codes.router, tags=["company-codes"])
api_router.include_router(sync.router, tags=["sync"])
api_router.include_router(google.router, tags=["google"])
api_router.include_router(secure.router, tags=["secure-links"])
api_router.include_router(logs.router, tags=["logs"])
api_router.include_router(backup.router, tags=["backup"])

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from isodoc.core.config import get_settings, validate_production_settings
from isodoc.api.v1.router import api_router
from isodoc.core.database import SessionLocal, init_db
from isodoc.core.dependencies import get_link_signer
from isodoc.core.exceptions import AppException
from isodoc.core.logging_config import setup_logging
from isodoc.core.middleware import MetricsMiddleware, RateLimitMiddleware, SecurityHeadersMiddleware
from isodoc.models.error import ErrorResponse
from isodoc.services.auth_service import AuthService
from isodoc.services.email_service import EmailService
from isodoc.services.notification_service import ExpiryMonitor
from isodoc.services.scheduler import SyncScheduler
from isodoc.services.sync_service import SyncService
import logging

settings = get_settings()
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="""
    ISO compliance document manager.

    Features:
    * Google Drive folder ingestion with ISO filename parsing
    * Expiry alerts read from spreadsheet headers
    * Automatic obsolescence of superseded revisions
    * Per-client access, audit log, secure links, backup and restore
    """,
    version="1.0.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
)

# CORS middleware configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(MetricsMiddleware)
if settings.rate_limit_enabled:
    app.add_middleware(RateLimitMiddleware)

@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(detail=exc.detail, error_code=exc.error_code, metadata=exc.metadata).model_dump(),
        headers=exc.headers,
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content=ErrorResponse.from_validation_errors(exc.errors()).model_dump(exclude_none=True),
    )

# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )

# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)
app.mount("/metrics", make_asgi_app())

app.state.scheduler = SyncScheduler(SyncService(SessionLocal), SessionLocal)
app.state.expiry_monitor = ExpiryMonitor(SessionLocal, EmailService())

# Startup event
@app.on_event("startup")
async def startup_event():
    setup_logging()
    problems = validate_production_settings(settings)
    if problems:
        for problem in problems:
            logger.critical(f"Configuration error: {problem}")
        raise RuntimeError("Refusing to start with an unsafe production configuration")

    await init_db()
    async with SessionLocal() as session:
        await AuthService(session, get_link_signer(), EmailService()).ensure_default_admin()

    if settings.SYNC_ON_STARTUP:
        await app.state.scheduler.start_all()
    app.state.expiry_monitor.start()
    logger.info("Application startup")

# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    await app.state.scheduler.stop_all()
    await app.state.expiry_monitor.stop()
    logger.info("Application shutdown")

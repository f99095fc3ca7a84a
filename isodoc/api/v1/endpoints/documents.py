from fastapi import APIRouter, HTTPException, Depends, status
from typing import List
from isodoc.core.dependencies import get_current_user, get_document_service, require_admin
from isodoc.core.exceptions import AppException
from isodoc.models.auth import MessageResponse
from isodoc.models.base import User
from isodoc.models.document import (
    DocumentCreate,
    DocumentResponse,
    DocumentUpdate,
    EncryptRequest,
    FileValidationRequest,
    FileValidationResponse,
    IntegrityResponse,
    ShareRequest,
    ShareResponse,
    WarningDaysUpdate,
)
from isodoc.services.document_service import DocumentService
import logging

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/documents", response_model=List[DocumentResponse])
async def list_documents(
    user: User = Depends(get_current_user),
    document_service: DocumentService = Depends(get_document_service),
):
    """
    Active documents of the caller's client, ordered by hierarchical path
    """
    try:
        return await document_service.list_active(user)
    except Exception as e:
        logger.error(f"Error listing documents: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to list documents"
        )

@router.get("/documents/obsolete", response_model=List[DocumentResponse])
async def list_obsolete_documents(
    user: User = Depends(require_admin),
    document_service: DocumentService = Depends(get_document_service),
):
    return await document_service.list_obsolete(user)

@router.get("/documents/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: int,
    user: User = Depends(get_current_user),
    document_service: DocumentService = Depends(get_document_service),
):
    return await document_service.get(user, document_id)

@router.post("/documents", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    payload: DocumentCreate,
    user: User = Depends(require_admin),
    document_service: DocumentService = Depends(get_document_service),
):
    """
    Create a document directly; older revisions of the same path and title become obsolete
    """
    return await document_service.create(user, payload.model_dump())

@router.put("/documents/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: int,
    payload: DocumentUpdate,
    user: User = Depends(require_admin),
    document_service: DocumentService = Depends(get_document_service),
):
    return await document_service.update(user, document_id, payload.model_dump(exclude_unset=True))

@router.delete("/documents/{document_id}", response_model=MessageResponse)
async def delete_document(
    document_id: int,
    user: User = Depends(require_admin),
    document_service: DocumentService = Depends(get_document_service),
):
    """
    Mark a document obsolete; it stays available in the obsolete listing
    """
    await document_service.mark_deleted(user, document_id)
    return MessageResponse(message="Document marked as obsolete")

@router.put("/documents/{document_id}/warning-days", response_model=DocumentResponse)
async def set_warning_days(
    document_id: int,
    payload: WarningDaysUpdate,
    user: User = Depends(require_admin),
    document_service: DocumentService = Depends(get_document_service),
):
    """
    Days of notice used by the daily expiry check for this document
    """
    return await document_service.set_warning_days(user, document_id, payload.warning_days)

@router.post("/documents/{document_id}/encrypt", response_model=DocumentResponse)
async def encrypt_document(
    document_id: int,
    payload: EncryptRequest,
    user: User = Depends(require_admin),
    document_service: DocumentService = Depends(get_document_service),
):
    try:
        return await document_service.encrypt(user, document_id, payload.file_path)
    except AppException:
        raise
    except Exception as e:
        logger.error(f"Error encrypting document {document_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Failed to encrypt document"
        )

@router.get("/documents/{document_id}/verify", response_model=IntegrityResponse)
async def verify_document(
    document_id: int,
    user: User = Depends(require_admin),
    document_service: DocumentService = Depends(get_document_service),
):
    valid = await document_service.verify_integrity(user, document_id)
    return IntegrityResponse(document_id=document_id, valid=valid)

@router.post("/documents/{document_id}/share", response_model=ShareResponse)
async def share_document(
    document_id: int,
    payload: ShareRequest,
    user: User = Depends(get_current_user),
    document_service: DocumentService = Depends(get_document_service),
):
    url, expires_at = await document_service.create_share_link(
        user, document_id, payload.action, payload.expiry_hours
    )
    return ShareResponse(url=url, expires_at=expires_at)

@router.post("/validate-file", response_model=FileValidationResponse)
async def validate_file(
    payload: FileValidationRequest,
    user: User = Depends(get_current_user),
    document_service: DocumentService = Depends(get_document_service),
):
    errors = document_service.validate_upload(payload.filename, payload.size, payload.mime_type)
    return FileValidationResponse(valid=not errors, errors=errors)

from fastapi import APIRouter, Depends, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from urllib.parse import quote
from isodoc.core.config import get_settings
from isodoc.core.database import get_session
from isodoc.core.dependencies import get_auth_service, get_document_service, get_link_signer
from isodoc.core.exceptions import AuthenticationError, NotFoundError, ValidationFailedError
from isodoc.repositories.document_repository import DocumentRepository
from isodoc.repositories.log_repository import LogRepository
from isodoc.services.auth_service import AuthService
from isodoc.services.document_service import DocumentService
from isodoc.services.secure_links import ACTION_DOWNLOAD, ACTION_RESET_PASSWORD, ACTION_VIEW, SecureLinkSigner

router = APIRouter()

@router.get("/secure/{data}/{expires}/{signature}")
async def open_secure_link(
    data: str,
    expires: str,
    signature: str,
    session: AsyncSession = Depends(get_session),
    signer: SecureLinkSigner = Depends(get_link_signer),
    auth_service: AuthService = Depends(get_auth_service),
    document_service: DocumentService = Depends(get_document_service),
):
    """
    Resolve a signed link: reset links go to the frontend reset page, view links
    to the document page, downloads return the decrypted copy when one exists
    """
    link = signer.verify(data, expires, signature)
    if link is None:
        raise AuthenticationError("Invalid or expired link")

    if link.action == ACTION_RESET_PASSWORD:
        return RedirectResponse(auth_service.reset_page_url(data, expires, signature), status_code=302)

    if link.document_id is None:
        raise ValidationFailedError("Link does not reference a document")
    document = await DocumentRepository(session).get(link.document_id)
    if document is None:
        raise NotFoundError("Document not found", metadata={"document_id": link.document_id})

    await LogRepository(session).add_entry(
        link.user_id, f"secure-link-{link.action}", document_id=document.id,
        details={"message": f"Secure link access: {document.title}", "tenant_id": document.tenant_id},
    )

    if link.action == ACTION_VIEW:
        return RedirectResponse(
            f"{get_settings().FRONTEND_URL}/documents/view/{document.id}?secure=true", status_code=302
        )

    if link.action == ACTION_DOWNLOAD and document.encrypted_cache_path:
        content = await document_service.read_decrypted(document)
        filename = f"{document.path}_{document.title}_{document.revision}.{document.file_type}"
        return Response(
            content=content,
            media_type="application/octet-stream",
            headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
        )

    if not document.source_url:
        raise NotFoundError("Document has no downloadable source")
    return RedirectResponse(document.source_url, status_code=302)

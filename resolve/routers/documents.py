"""
Document upload and management endpoints.

POST   /upload          upload a file, optionally attached to a case or contract
GET    /                list the caller's documents
GET    /{id}            document metadata
GET    /{id}/download   stream the file back (``?preview=true`` for inline)
DELETE /{id}            delete the record, then the stored object
"""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import Response

from resolve.dependencies.auth import get_current_context, get_download_context
from resolve.models.schemas import DocumentDeleteResponse, DocumentResponse
from resolve.services.document_service import (
    DocumentService,
    document_response,
    get_document_service,
)
from resolve.services.policy import RequestContext

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/upload",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_document(
    file: UploadFile = File(...),
    category: Optional[str] = Form(None),
    case_id: Optional[int] = Form(None),
    contract_id: Optional[int] = Form(None),
    description: Optional[str] = Form(None),
    context: RequestContext = Depends(get_current_context),
    service: DocumentService = Depends(get_document_service),
) -> DocumentResponse:
    """
    Upload one file to object storage and record it.

    - Max file size: 10 MB (configurable via MAX_UPLOAD_SIZE)
    - Only the allow-listed MIME types are accepted
    - When ``case_id`` / ``contract_id`` is given the caller must own it
    """
    document = await service.upload(
        context,
        file,
        category=category,
        case_id=case_id,
        contract_id=contract_id,
        description=description,
    )
    return document_response(document)


@router.get("", response_model=List[DocumentResponse])
async def list_documents(
    case_id: Optional[int] = Query(None),
    contract_id: Optional[int] = Query(None),
    category: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    context: RequestContext = Depends(get_current_context),
    service: DocumentService = Depends(get_document_service),
) -> List[DocumentResponse]:
    """The caller's documents, newest first."""
    documents = await service.list_documents(
        context.user_id,
        case_id=case_id,
        contract_id=contract_id,
        category=category,
        skip=skip,
        limit=limit,
    )
    return [document_response(d) for d in documents]


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: int,
    context: RequestContext = Depends(get_current_context),
    service: DocumentService = Depends(get_document_service),
) -> DocumentResponse:
    return document_response(await service.get(document_id, context))


@router.get("/{document_id}/download")
async def download_document(
    document_id: int,
    preview: bool = Query(False),
    context: RequestContext = Depends(get_download_context),
    service: DocumentService = Depends(get_document_service),
) -> Response:
    """
    Proxy the stored bytes back to the caller.

    ``preview=true`` asks for ``Content-Disposition: inline``; it is honoured
    for images and PDFs only.  ``?token=`` may replace the Authorization
    header for ``<img>`` / ``<iframe>`` embeds.
    """
    document, data, disposition = await service.fetch_content(document_id, context, preview)
    return Response(
        content=data,
        media_type=document.mime_type,
        headers={
            "Content-Disposition": disposition,
            "Cache-Control": "private, max-age=300",
        },
    )


@router.delete("/{document_id}", response_model=DocumentDeleteResponse)
async def delete_document(
    document_id: int,
    context: RequestContext = Depends(get_current_context),
    service: DocumentService = Depends(get_document_service),
) -> DocumentDeleteResponse:
    storage_deleted = await service.delete(document_id, context)
    message = (
        "Document deleted successfully"
        if storage_deleted
        else "Document deleted; stored file could not be removed"
    )
    return DocumentDeleteResponse(id=document_id, message=message, storage_deleted=storage_deleted)

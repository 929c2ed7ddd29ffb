"""
Document transfer proxy.

Uploads are validated and size-checked here before any byte reaches object
storage; downloads, metadata reads and deletes all go through the same
owner-or-admin check.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from fastapi import Depends, UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.config import settings
from resolve.database import get_db
from resolve.errors import NotFound, UpstreamFailure, ValidationFailed
from resolve.models.database_models import Case, Contract, Document
from resolve.models.schemas import DocumentResponse
from resolve.services.policy import RequestContext, ensure_owner_or_admin
from resolve.services.storage import SupabaseStorageClient, get_object_store
from resolve.services.timeline import record_event
from resolve.utils.file_types import (
    can_preview,
    classify_file,
    default_category,
    get_file_extension,
    get_file_type,
    guess_mime_type,
)
from resolve.utils.helpers import epoch_millis, random_token, safe_path_segment

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 1024 * 1024  # 1 MB slices


async def read_limited(file: UploadFile, limit: Optional[int] = None) -> bytes:
    """Read *file* in 1 MB slices, rejecting it as soon as it passes *limit*."""
    limit = limit or settings.MAX_UPLOAD_SIZE
    buf = bytearray()
    while True:
        chunk = await file.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > limit:
            raise ValidationFailed(
                f"File exceeds the {limit // (1024 * 1024)} MB size limit.",
                status_code=413,
            )
    return bytes(buf)


def build_storage_path(
    owner_id: str,
    filename: str,
    category: str,
    case_id: Optional[int] = None,
    contract_id: Optional[int] = None,
) -> str:
    """``users/<owner>/<scope>/<category>/<millis>_<random><ext>``"""
    if case_id is not None:
        scope = f"cases/{case_id}"
    elif contract_id is not None:
        scope = f"contracts/{contract_id}"
    else:
        scope = "general"
    ext = get_file_extension(filename)
    suffix = f".{ext}" if ext else ""
    stored_name = f"{epoch_millis()}_{random_token().lower()}{suffix}"
    return f"users/{safe_path_segment(owner_id)}/{scope}/{safe_path_segment(category)}/{stored_name}"


def disposition_for(document: Document, preview: bool) -> str:
    """``inline`` only when a preview was asked for and the type supports it."""
    mode = "inline" if preview and can_preview(document.mime_type) else "attachment"
    name = document.original_name.replace('"', "")
    return f'{mode}; filename="{name}"'


class DocumentService:
    """Document operations for one request."""

    def __init__(self, db: AsyncSession, store: SupabaseStorageClient) -> None:
        self.db = db
        self.store = store

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _owned_case(self, case_id: int, context: RequestContext) -> Case:
        case = await self.db.get(Case, case_id)
        if case is None:
            raise NotFound("Case not found")
        ensure_owner_or_admin(case.user_id, context)
        return case

    async def _owned_contract(self, contract_id: int, context: RequestContext) -> Contract:
        contract = await self.db.get(Contract, contract_id)
        if contract is None:
            raise NotFound("Contract not found")
        ensure_owner_or_admin(contract.user_id, context)
        return contract

    async def get(self, document_id: int, context: RequestContext) -> Document:
        document = await self.db.get(Document, document_id)
        if document is None:
            raise NotFound("Document not found")
        ensure_owner_or_admin(document.user_id, context)
        return document

    async def list_documents(
        self,
        owner_id: str,
        case_id: Optional[int] = None,
        contract_id: Optional[int] = None,
        category: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Document]:
        stmt = select(Document).where(Document.user_id == owner_id)
        if case_id is not None:
            stmt = stmt.where(Document.case_id == case_id)
        if contract_id is not None:
            stmt = stmt.where(Document.contract_id == contract_id)
        if category:
            stmt = stmt.where(Document.category == category)
        stmt = stmt.order_by(Document.created_at.desc(), Document.id.desc()).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_for_case(self, case_id: int, context: RequestContext) -> List[Document]:
        case = await self._owned_case(case_id, context)
        return await self.list_documents(case.user_id, case_id=case.id)

    async def list_for_contract(self, contract_id: int, context: RequestContext) -> List[Document]:
        contract = await self._owned_contract(contract_id, context)
        return await self.list_documents(contract.user_id, contract_id=contract.id)

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload(
        self,
        context: RequestContext,
        file: UploadFile,
        category: Optional[str] = None,
        case_id: Optional[int] = None,
        contract_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> Document:
        """
        Validate, store and record one uploaded file.

        Attached documents belong to the owner of the case or contract, so an
        admin uploading on a user's behalf does not take the file away from
        them.
        """
        if not file.filename or not file.filename.strip():
            raise ValidationFailed("Upload must include a filename.")

        mime_type = guess_mime_type(file.filename, file.content_type)
        if mime_type not in settings.ALLOWED_MIME_TYPES:
            raise ValidationFailed(f"File type '{mime_type}' is not allowed.")

        owner_id = context.user_id
        case: Optional[Case] = None
        contract: Optional[Contract] = None
        if case_id is not None:
            case = await self._owned_case(case_id, context)
            owner_id = case.user_id
        if contract_id is not None:
            contract = await self._owned_contract(contract_id, context)
            owner_id = contract.user_id

        data = await read_limited(file)

        file_type = get_file_type(mime_type)
        category = default_category(file_type, category)
        path = build_storage_path(owner_id, file.filename, category, case_id, contract_id)

        stored = await self.store.upload(path, data, mime_type)

        document = Document(
            user_id=owner_id,
            case_id=case_id,
            contract_id=contract_id,
            filename=path.rsplit("/", 1)[-1],
            original_name=file.filename,
            storage_path=stored.path,
            storage_url=stored.url,
            file_type=file_type,
            mime_type=mime_type,
            file_size=len(data),
            category=category,
            description=description,
        )
        self.db.add(document)
        await self.db.flush()

        if case is not None or contract is not None:
            await record_event(
                self.db,
                user_id=owner_id,
                case_id=case_id,
                contract_id=contract_id,
                event_type="document_uploaded",
                title=f"Document uploaded: {file.filename}",
                description=description,
            )

        await self.db.refresh(document)
        logger.info(
            "Uploaded document id=%d owner=%s size=%d path=%s",
            document.id, owner_id, document.file_size, document.storage_path,
        )
        return document

    # ------------------------------------------------------------------
    # Download / delete
    # ------------------------------------------------------------------

    async def fetch_content(
        self, document_id: int, context: RequestContext, preview: bool = False
    ) -> Tuple[Document, bytes, str]:
        """Return the record, its bytes and the Content-Disposition to send."""
        document = await self.get(document_id, context)
        data = await self.store.download(document.storage_path)
        return document, data, disposition_for(document, preview)

    async def delete(self, document_id: int, context: RequestContext) -> bool:
        """
        Remove the row, then the stored object.

        Returns False when the object could not be removed; the row stays
        deleted either way.
        """
        document = await self.get(document_id, context)
        path = document.storage_path
        await self.db.delete(document)
        await self.db.flush()

        try:
            await self.store.delete(path)
        except UpstreamFailure as exc:
            logger.warning("Document %d deleted but storage object %s remains: %s", document_id, path, exc)
            return False
        logger.info("Deleted document id=%d path=%s", document_id, path)
        return True


def document_response(document: Document) -> DocumentResponse:
    response = DocumentResponse.model_validate(document)
    response.previewable = can_preview(document.mime_type)
    response.kind = classify_file(document.original_name)
    return response


def get_document_service(
    db: AsyncSession = Depends(get_db),
    store: SupabaseStorageClient = Depends(get_object_store),
) -> DocumentService:
    return DocumentService(db, store)

"""
Contract endpoints: CRUD, timeline and contract-scoped documents.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.database import get_db
from resolve.dependencies.auth import get_current_context
from resolve.dependencies.records import get_authorized_contract
from resolve.models.database_models import Contract
from resolve.models.schemas import (
    ContractCreateRequest,
    ContractResponse,
    ContractUpdateRequest,
    DocumentResponse,
    TimelineEventResponse,
)
from resolve.services.document_service import (
    DocumentService,
    document_response,
    get_document_service,
)
from resolve.services.policy import RequestContext
from resolve.services.timeline import list_events, record_event
from resolve.utils.helpers import apply_partial_update, generate_reference_number

logger = logging.getLogger(__name__)

router = APIRouter()

# Edits to these fields produce a new contract version.
_VERSIONED_FIELDS = {"project_description", "value", "payment_terms", "start_date", "end_date"}


@router.post("", response_model=ContractResponse, status_code=status.HTTP_201_CREATED)
async def create_contract(
    body: ContractCreateRequest,
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
) -> Contract:
    contract = Contract(
        user_id=context.user_id,
        contract_number=generate_reference_number("CONTRACT"),
        **body.model_dump(),
    )
    db.add(contract)
    await db.flush()

    await record_event(
        db,
        user_id=context.user_id,
        contract_id=contract.id,
        event_type="contract_created",
        title="Contract created",
        description=f"{contract.title} with {contract.client_name}",
    )
    await db.refresh(contract)
    logger.info("Created contract id=%d number=%s for user=%s", contract.id, contract.contract_number, context.user_id)
    return contract


@router.get("", response_model=List[ContractResponse])
async def list_contracts(
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
) -> List[Contract]:
    """The caller's contracts, newest first."""
    result = await db.execute(
        select(Contract)
        .where(Contract.user_id == context.user_id)
        .order_by(Contract.created_at.desc(), Contract.id.desc())
    )
    return list(result.scalars().all())


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(contract: Contract = Depends(get_authorized_contract)) -> Contract:
    return contract


@router.put("/{contract_id}", response_model=ContractResponse)
async def update_contract(
    body: ContractUpdateRequest,
    contract: Contract = Depends(get_authorized_contract),
    db: AsyncSession = Depends(get_db),
) -> Contract:
    changed = apply_partial_update(contract, body)
    if _VERSIONED_FIELDS.intersection(changed):
        contract.version = (contract.version or 1) + 1
    if changed:
        await record_event(
            db,
            user_id=contract.user_id,
            contract_id=contract.id,
            event_type="contract_updated",
            title=f"Contract updated (v{contract.version})",
            description=", ".join(sorted(changed)),
        )
    await db.flush()
    await db.refresh(contract)
    return contract


@router.get("/{contract_id}/timeline", response_model=List[TimelineEventResponse])
async def get_contract_timeline(
    contract: Contract = Depends(get_authorized_contract),
    db: AsyncSession = Depends(get_db),
):
    return await list_events(db, contract_id=contract.id)


@router.post(
    "/{contract_id}/upload",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_contract_document(
    contract_id: int,
    file: UploadFile = File(...),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    context: RequestContext = Depends(get_current_context),
    service: DocumentService = Depends(get_document_service),
) -> DocumentResponse:
    document = await service.upload(
        context, file, category=category, contract_id=contract_id, description=description
    )
    return document_response(document)


@router.get("/{contract_id}/documents", response_model=List[DocumentResponse])
async def list_contract_documents(
    contract_id: int,
    context: RequestContext = Depends(get_current_context),
    service: DocumentService = Depends(get_document_service),
) -> List[DocumentResponse]:
    return [document_response(d) for d in await service.list_for_contract(contract_id, context)]

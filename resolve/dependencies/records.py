"""
Path-parameter dependencies that load a case or contract and check that the
caller owns it (or is an admin).
"""
from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.database import get_db
from resolve.dependencies.auth import get_current_context
from resolve.errors import NotFound
from resolve.models.database_models import Case, Contract
from resolve.services.policy import RequestContext, ensure_owner_or_admin


async def get_authorized_case(
    case_id: int,
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
) -> Case:
    case = await db.get(Case, case_id)
    if case is None:
        raise NotFound("Case not found")
    ensure_owner_or_admin(case.user_id, context)
    return case


async def get_authorized_contract(
    contract_id: int,
    context: RequestContext = Depends(get_current_context),
    db: AsyncSession = Depends(get_db),
) -> Contract:
    contract = await db.get(Contract, contract_id)
    if contract is None:
        raise NotFound("Contract not found")
    ensure_owner_or_admin(contract.user_id, context)
    return contract

"""Supplier panel commission API endpoints.

Suppliers see the rules that can apply to their products, their own
commission summary, and manage product-level (Specific) overrides for their
own supplier account.
"""

from dataclasses import asdict
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.errors import to_http_exception
from src.auth.dependencies import require_supplier
from src.db import get_db
from src.models import CommissionRule, ScopeTier
from src.schemas.auth import TokenPayload
from src.schemas.commission import (
    ApplicableRuleResponse,
    CommissionRuleInput,
    CommissionRuleResponse,
    CommissionSummaryResponse,
)
from src.services import rule_store
from src.services.errors import CommissionError
from src.services.rule_lifecycle import delete_rule, upsert_rule
from src.services.summary import get_supplier_category_ids, get_supplier_summary
from src.utils.audit import get_client_ip

router = APIRouter(prefix="/commission")


def _own_specific_input(data: CommissionRuleInput, actor: TokenPayload) -> CommissionRuleInput:
    """Suppliers may only write Specific rules for their own account."""
    if data.scope != ScopeTier.SPECIFIC.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Suppliers can only manage specific (product or category) rates",
        )
    if data.supplier_id is None:
        data = data.model_copy(update={"supplier_id": actor.supplier_id})
    if data.supplier_id != actor.supplier_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access limited to your own supplier account",
        )
    return data


def _check_owned(rule: CommissionRule, actor: TokenPayload) -> None:
    if rule.scope != ScopeTier.SPECIFIC or rule.supplier_id != actor.supplier_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Rule does not belong to your supplier account",
        )


@router.get("/summary", response_model=CommissionSummaryResponse)
async def get_my_commission_summary(
    db: AsyncSession = Depends(get_db),
    current_user: TokenPayload = Depends(require_supplier),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
):
    """Commission summary for the supplier dashboard."""
    summary = await get_supplier_summary(db, current_user.supplier_id, start_date, end_date)

    return CommissionSummaryResponse(
        supplier_id=current_user.supplier_id,
        start_date=start_date,
        end_date=end_date,
        **asdict(summary),
    )


@router.get("/rules", response_model=List[ApplicableRuleResponse])
async def list_my_applicable_rules(
    db: AsyncSession = Depends(get_db),
    current_user: TokenPayload = Depends(require_supplier),
    category_ids: Optional[List[int]] = Query(None),
):
    """
    Rules that can apply to the supplier's products, by priority.

    Without category_ids, the categories the supplier has sold in are used.
    """
    if category_ids is None:
        category_ids = await get_supplier_category_ids(db, current_user.supplier_id)

    rules = await rule_store.list_applicable_rules(db, current_user.supplier_id, category_ids)
    return [ApplicableRuleResponse.model_validate(r) for r in rules]


@router.post(
    "/rules",
    response_model=CommissionRuleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_my_rule(
    request: Request,
    data: CommissionRuleInput,
    db: AsyncSession = Depends(get_db),
    current_user: TokenPayload = Depends(require_supplier),
):
    """Create a product or category override for the supplier."""
    data = _own_specific_input(data, current_user)

    try:
        rule = await upsert_rule(
            db,
            data,
            actor=current_user,
            ip_address=get_client_ip(request),
        )
    except CommissionError as e:
        raise to_http_exception(e)

    return CommissionRuleResponse.model_validate(rule)


@router.put("/rules/{rule_id}", response_model=CommissionRuleResponse)
async def update_my_rule(
    request: Request,
    rule_id: int,
    data: CommissionRuleInput,
    db: AsyncSession = Depends(get_db),
    current_user: TokenPayload = Depends(require_supplier),
):
    """Update one of the supplier's overrides."""
    data = _own_specific_input(data, current_user)

    try:
        _check_owned(await rule_store.get_rule(db, rule_id), current_user)
        rule = await upsert_rule(
            db,
            data,
            rule_id=rule_id,
            actor=current_user,
            ip_address=get_client_ip(request),
        )
    except CommissionError as e:
        raise to_http_exception(e)

    return CommissionRuleResponse.model_validate(rule)


@router.delete("/rules/{rule_id}")
async def delete_my_rule(
    request: Request,
    rule_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: TokenPayload = Depends(require_supplier),
):
    """Delete one of the supplier's overrides."""
    try:
        _check_owned(await rule_store.get_rule(db, rule_id), current_user)
        await delete_rule(
            db,
            rule_id,
            actor=current_user,
            ip_address=get_client_ip(request),
        )
    except CommissionError as e:
        raise to_http_exception(e)

    return {"success": True, "rule_id": rule_id}

"""Admin commission rule API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.errors import to_http_exception
from src.auth.dependencies import require_admin
from src.db import get_db
from src.models import ScopeTier
from src.schemas.auth import TokenPayload
from src.schemas.commission import (
    CommissionRuleInput,
    CommissionRuleListResponse,
    CommissionRuleResponse,
)
from src.services import rule_store
from src.services.errors import CommissionError
from src.services.rule_lifecycle import delete_rule, upsert_rule
from src.utils.audit import get_client_ip

router = APIRouter(prefix="/commission-rules")


@router.get("", response_model=CommissionRuleListResponse)
async def list_commission_rules(
    db: AsyncSession = Depends(get_db),
    current_user: TokenPayload = Depends(require_admin),
    category_id: Optional[int] = Query(None, gt=0),
    supplier_id: Optional[int] = Query(None, gt=0),
    active: Optional[bool] = Query(None),
    scope: Optional[ScopeTier] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
):
    """List commission rules with optional filters."""
    rules, total = await rule_store.list_rules(
        db,
        category_id=category_id,
        supplier_id=supplier_id,
        active=active,
        scope=scope,
        page=page,
        per_page=per_page,
    )

    return CommissionRuleListResponse(
        items=[CommissionRuleResponse.model_validate(r) for r in rules],
        total=total,
        page=page,
        per_page=per_page,
        pages=(total + per_page - 1) // per_page if total else 0,
    )


@router.get("/{rule_id}", response_model=CommissionRuleResponse)
async def get_commission_rule(
    rule_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: TokenPayload = Depends(require_admin),
):
    """Get a single rule."""
    try:
        rule = await rule_store.get_rule(db, rule_id)
    except CommissionError as e:
        raise to_http_exception(e)

    return CommissionRuleResponse.model_validate(rule)


@router.post(
    "",
    response_model=CommissionRuleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_commission_rule(
    request: Request,
    data: CommissionRuleInput,
    db: AsyncSession = Depends(get_db),
    current_user: TokenPayload = Depends(require_admin),
):
    """Create a rule; an active rule already holding the scope is superseded."""
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


@router.put("/{rule_id}", response_model=CommissionRuleResponse)
async def update_commission_rule(
    request: Request,
    rule_id: int,
    data: CommissionRuleInput,
    db: AsyncSession = Depends(get_db),
    current_user: TokenPayload = Depends(require_admin),
):
    """Update a rule in place. Settled sales keep their frozen rates."""
    try:
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


@router.delete("/{rule_id}")
async def delete_commission_rule(
    request: Request,
    rule_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: TokenPayload = Depends(require_admin),
):
    """Delete a rule. Only future settlements are affected."""
    try:
        await delete_rule(
            db,
            rule_id,
            actor=current_user,
            ip_address=get_client_ip(request),
        )
    except CommissionError as e:
        raise to_http_exception(e)

    return {"success": True, "rule_id": rule_id}

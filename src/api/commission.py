"""Rate resolution and settlement API endpoints."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.errors import to_http_exception
from src.auth.dependencies import get_current_actor, require_settlement_client
from src.db import get_db
from src.models import SaleRecord
from src.schemas.auth import ActorRole, TokenPayload
from src.schemas.commission import (
    ResolveResponse,
    SaleRecordListResponse,
    SaleRecordResponse,
    SettleRequest,
)
from src.services.errors import CommissionError
from src.services.resolver import resolve_rate
from src.services.settlement import settle_sale
from src.services.summary import settled_between
from src.utils.audit import get_client_ip

router = APIRouter(prefix="/commission", tags=["Commission"])


def _check_supplier_access(actor: TokenPayload, supplier_id: Optional[int]) -> None:
    """Suppliers may only see their own data."""
    if actor.role == ActorRole.SUPPLIER and supplier_id != actor.supplier_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access limited to your own supplier account",
        )


@router.get("/resolve", response_model=ResolveResponse)
async def resolve_commission_rate(
    product_id: int = Query(..., gt=0),
    supplier_id: int = Query(..., gt=0),
    category_id: int = Query(..., gt=0),
    db: AsyncSession = Depends(get_db),
    actor: TokenPayload = Depends(get_current_actor),
):
    """Rate a sale of this product would be settled at right now."""
    _check_supplier_access(actor, supplier_id)

    try:
        resolution = await resolve_rate(db, product_id, supplier_id, category_id)
    except CommissionError as e:
        raise to_http_exception(e)

    return ResolveResponse(
        rate=resolution.rate,
        scope_tier=resolution.scope_tier,
        rule_id=resolution.rule_id,
    )


@router.post(
    "/settlements",
    response_model=SaleRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_settlement(
    request: Request,
    data: SettleRequest,
    db: AsyncSession = Depends(get_db),
    actor: TokenPayload = Depends(require_settlement_client),
):
    """Settle a completed sale and freeze its commission split."""
    try:
        record = await settle_sale(
            db,
            product_id=data.product_id,
            supplier_id=data.supplier_id,
            category_id=data.category_id,
            gross_amount=data.gross_amount,
            quantity=data.quantity,
            buyer_id=data.buyer_id,
            default_rate=data.default_rate,
            actor=actor,
            ip_address=get_client_ip(request),
        )
    except CommissionError as e:
        raise to_http_exception(e)

    return SaleRecordResponse.model_validate(record)


@router.get("/settlements", response_model=SaleRecordListResponse)
async def list_settlements(
    db: AsyncSession = Depends(get_db),
    actor: TokenPayload = Depends(get_current_actor),
    supplier_id: Optional[int] = Query(None, gt=0),
    product_id: Optional[int] = Query(None, gt=0),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
):
    """List settled sales, newest first."""
    if actor.role == ActorRole.SUPPLIER:
        supplier_id = supplier_id or actor.supplier_id
        _check_supplier_access(actor, supplier_id)

    query = select(SaleRecord)

    if supplier_id:
        query = query.where(SaleRecord.supplier_id == supplier_id)

    if product_id:
        query = query.where(SaleRecord.product_id == product_id)

    query = settled_between(query, start_date, end_date)

    # Count total
    count_query = select(func.count()).select_from(query.subquery())
    total = await db.scalar(count_query)

    # Apply sorting and pagination
    query = query.order_by(SaleRecord.settled_at.desc(), SaleRecord.id.desc())
    query = query.offset((page - 1) * per_page).limit(per_page)

    result = await db.execute(query)
    records = result.scalars().all()

    return SaleRecordListResponse(
        items=[SaleRecordResponse.model_validate(r) for r in records],
        total=total or 0,
        page=page,
        per_page=per_page,
        pages=(total + per_page - 1) // per_page if total else 0,
    )

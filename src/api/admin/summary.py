"""Admin commission summary API endpoints."""

from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import require_admin
from src.db import get_db
from src.schemas.auth import TokenPayload
from src.schemas.commission import CommissionSummaryResponse
from src.services.summary import get_supplier_summary

router = APIRouter(prefix="/commission-summary")


@router.get("/{supplier_id}", response_model=CommissionSummaryResponse)
async def get_commission_summary(
    supplier_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: TokenPayload = Depends(require_admin),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
):
    """Commission summary of one supplier over an optional date range."""
    summary = await get_supplier_summary(db, supplier_id, start_date, end_date)

    return CommissionSummaryResponse(
        supplier_id=supplier_id,
        start_date=start_date,
        end_date=end_date,
        **asdict(summary),
    )

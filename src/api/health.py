"""
Health check endpoints for the commission engine.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.db import get_db
from src.models import CommissionRule

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """Process is up; does not touch the database."""
    return {"status": "healthy", "service": "commission-engine"}


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """
    Ready to resolve and settle.

    Queries the rule table, so a missing migration fails the check as well
    as a lost connection. Answers 503 when the database cannot be used.
    """
    try:
        active_rules = await db.scalar(
            select(func.count(CommissionRule.id)).where(
                CommissionRule.active == True,  # noqa: E712
                CommissionRule.deleted_at.is_(None),
            )
        )
    except SQLAlchemyError as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "database": "unavailable"},
        )

    return {
        "status": "ready",
        "database": "connected",
        "active_rules": active_rules or 0,
    }


@router.get("/live")
async def liveness_check():
    """Liveness check for the container orchestrator."""
    return {"status": "alive"}

"""Admin API router aggregation."""

from fastapi import APIRouter

from src.api.admin.rules import router as rules_router
from src.api.admin.summary import router as summary_router

admin_router = APIRouter(prefix="/admin", tags=["Admin"])

admin_router.include_router(rules_router)
admin_router.include_router(summary_router)

__all__ = ["admin_router"]

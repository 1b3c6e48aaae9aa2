"""Supplier panel API router aggregation."""

from fastapi import APIRouter

from src.api.panel.commission import router as commission_router

panel_router = APIRouter(prefix="/panel", tags=["Supplier Panel"])

panel_router.include_router(commission_router)

__all__ = ["panel_router"]

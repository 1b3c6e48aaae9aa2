"""Pydantic schemas for request/response validation."""

from src.schemas.auth import ActorRole, TokenPayload
from src.schemas.commission import (
    ApplicableRuleResponse,
    CommissionRuleInput,
    CommissionRuleListResponse,
    CommissionRuleResponse,
    CommissionSummaryResponse,
    ResolveResponse,
    SaleRecordListResponse,
    SaleRecordResponse,
    SettleRequest,
)

__all__ = [
    # Auth
    "ActorRole",
    "TokenPayload",
    # Rules
    "CommissionRuleInput",
    "CommissionRuleResponse",
    "CommissionRuleListResponse",
    "ApplicableRuleResponse",
    # Settlement
    "ResolveResponse",
    "SettleRequest",
    "SaleRecordResponse",
    "SaleRecordListResponse",
    # Summary
    "CommissionSummaryResponse",
]

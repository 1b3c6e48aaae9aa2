"""
Database models for the commission engine.

All models are exported here for convenient imports:
    from src.models import CommissionRule, SaleRecord, etc.
"""

from src.models.audit import AuditAction, AuditLog
from src.models.base import Base, TimestampMixin
from src.models.commission import TIER_PRIORITY, CommissionRule, ScopeTier, build_scope_key
from src.models.sale import SaleRecord, SaleStatus

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Commission rules
    "CommissionRule",
    "ScopeTier",
    "TIER_PRIORITY",
    "build_scope_key",
    # Sales
    "SaleRecord",
    "SaleStatus",
    # Audit
    "AuditLog",
    "AuditAction",
]

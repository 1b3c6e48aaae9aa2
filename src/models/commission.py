"""
CommissionRule model: a configured commission rate for one scope.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, Numeric, String, text
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TimestampMixin


class ScopeTier(str, Enum):
    """Granularity at which a rule applies, highest priority first."""
    SPECIFIC = "specific"
    SUPPLIER = "supplier"
    CATEGORY = "category"
    GLOBAL = "global"


# 1 = evaluated first
TIER_PRIORITY = {
    ScopeTier.SPECIFIC: 1,
    ScopeTier.SUPPLIER: 2,
    ScopeTier.CATEGORY: 3,
    ScopeTier.GLOBAL: 4,
}


def build_scope_key(
    scope: ScopeTier,
    category_id: Optional[int] = None,
    supplier_id: Optional[int] = None,
    product_id: Optional[int] = None,
) -> str:
    """
    Canonical key of the exact scope a rule targets.

    At most one active rule may exist per key:
        global, category:<c>, supplier:<s>, specific:<c>:<s>, product:<p>
    """
    if scope == ScopeTier.GLOBAL:
        return "global"
    if scope == ScopeTier.CATEGORY:
        return f"category:{category_id}"
    if scope == ScopeTier.SUPPLIER:
        return f"supplier:{supplier_id}"
    if product_id is not None:
        return f"product:{product_id}"
    return f"specific:{category_id}:{supplier_id}"


class CommissionRule(Base, TimestampMixin):
    """
    Commission rate configured for a scope.

    Rules are never physically removed: deactivated and deleted rules stay in
    the table for audit. Sales keep their own copy of the rate, so editing or
    deleting a rule only affects future settlements.
    """

    __tablename__ = "commission_rules"
    __table_args__ = (
        # Persistence-level guard for the single-active-rule invariant
        Index(
            "uq_commission_rules_active_scope",
            "scope_key",
            unique=True,
            postgresql_where=text("active"),
            sqlite_where=text("active = 1"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    scope: Mapped[ScopeTier] = mapped_column(
        SQLAlchemyEnum(
            ScopeTier,
            name="scopetier",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        index=True,
    )
    scope_key: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    category_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        index=True,
    )
    supplier_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        index=True,
    )
    product_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        index=True,
    )
    rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        comment="Commission rate in percent (4.50 = 4.5%)",
    )
    active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    valid_until: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        comment="Last day the rule is eligible",
    )
    remarks: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    created_by: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )
    deactivated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def priority(self) -> int:
        return TIER_PRIORITY[self.scope]

    def is_eligible(self, on: date) -> bool:
        """Active, not deleted and not expired on the given date."""
        if not self.active or self.deleted_at is not None:
            return False
        return self.valid_until is None or on <= self.valid_until

    def __repr__(self) -> str:
        return (
            f"<CommissionRule(id={self.id}, scope_key='{self.scope_key}', "
            f"rate={self.rate}, active={self.active})>"
        )

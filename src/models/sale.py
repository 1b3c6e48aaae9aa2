"""
SaleRecord model: the settled commission split of one sale.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, utcnow


class SaleStatus(str, Enum):
    """Sale lifecycle states."""
    COMPLETED = "completed"


class SaleRecord(Base):
    """
    Point-in-time settlement of a sale.

    The resolved rate and the amounts derived from it are written once and
    never recomputed. rule_id is kept for audit only (no foreign key), so rule
    edits and deletions never cascade here.

    resolved_scope holds the ScopeTier value that produced the rate, or
    "default" when the caller supplied a platform fallback rate.
    """

    __tablename__ = "sale_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    product_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
    )
    supplier_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
    )
    category_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Product category at sale time",
    )
    buyer_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )
    quantity: Mapped[int] = mapped_column(
        Integer,
        default=1,
        server_default="1",
        nullable=False,
    )
    gross_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    resolved_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
    )
    commission_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    net_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    resolved_scope: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    rule_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Rule that produced the rate (audit reference)",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=SaleStatus.COMPLETED.value,
        server_default=SaleStatus.COMPLETED.value,
        nullable=False,
    )
    settled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<SaleRecord(id={self.id}, product_id={self.product_id}, "
            f"rate={self.resolved_rate}, commission={self.commission_amount})>"
        )

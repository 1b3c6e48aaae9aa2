"""
Commission summary for supplier and admin dashboards.

Read-only; computed on every request from settled sales and active rules.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models import SaleRecord, ScopeTier
from src.services import rule_store
from src.services.money import ZERO, quantize_money, quantize_rate


@dataclass(frozen=True)
class CommissionSummary:
    avg_rate: Decimal = ZERO
    most_common_rate: Decimal = ZERO
    most_common_rate_count: int = 0
    total_commission: Decimal = ZERO
    total_gross: Decimal = ZERO
    total_net: Decimal = ZERO
    sales_count: int = 0
    total_products: int = 0
    categories_count: int = 0
    specific_rates_count: int = 0


def _average_rate(sales: list) -> Decimal:
    """Commission-weighted mean of resolved rates.

    Falls back to the plain mean when every sale rounded to zero commission.
    """
    if not sales:
        return ZERO
    total_weight = sum((s.commission_amount for s in sales), Decimal("0"))
    if total_weight > 0:
        weighted = sum((s.resolved_rate * s.commission_amount for s in sales), Decimal("0"))
        return quantize_rate(weighted / total_weight)
    return quantize_rate(sum((s.resolved_rate for s in sales), Decimal("0")) / len(sales))


def summarize(
    sale_records: Iterable,
    active_rules: Iterable = (),
    on: Optional[date] = None,
) -> CommissionSummary:
    """
    Aggregate settled sales and active rules.

    Args:
        sale_records: SaleRecords in the reporting window
        active_rules: Active rules relevant to the supplier; only Specific
            ones still eligible on `on` are counted
        on: Date for expiry checks (defaults to today, UTC)

    Returns:
        CommissionSummary (all zeros for an empty window)
    """
    sales = list(sale_records)
    on = on or datetime.now(timezone.utc).date()
    specific_count = sum(
        1 for r in active_rules if r.scope == ScopeTier.SPECIFIC and r.is_eligible(on)
    )

    if not sales:
        return CommissionSummary(specific_rates_count=specific_count)

    # Mode of the frozen rates; ties go to the lowest rate
    rate_counts = Counter(quantize_rate(s.resolved_rate) for s in sales)
    most_common_rate, most_common_count = min(
        rate_counts.items(), key=lambda item: (-item[1], item[0])
    )

    return CommissionSummary(
        avg_rate=_average_rate(sales),
        most_common_rate=most_common_rate,
        most_common_rate_count=most_common_count,
        total_commission=quantize_money(sum((s.commission_amount for s in sales), Decimal("0"))),
        total_gross=quantize_money(sum((s.gross_amount for s in sales), Decimal("0"))),
        total_net=quantize_money(sum((s.net_amount for s in sales), Decimal("0"))),
        sales_count=len(sales),
        total_products=len({s.product_id for s in sales}),
        categories_count=len({s.category_id for s in sales}),
        specific_rates_count=specific_count,
    )


DateBound = Union[date, datetime]


def settled_between(query, start_date: Optional[DateBound], end_date: Optional[DateBound]):
    """
    Restrict a SaleRecord query to an inclusive settlement window.

    A plain date covers the whole UTC day: as a start it means midnight, as
    an end it reaches up to (not including) the following midnight. Datetime
    bounds are compared as given.
    """
    if start_date:
        if not isinstance(start_date, datetime):
            start_date = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
        query = query.where(SaleRecord.settled_at >= start_date)
    if end_date:
        if isinstance(end_date, datetime):
            query = query.where(SaleRecord.settled_at <= end_date)
        else:
            next_day = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
            query = query.where(SaleRecord.settled_at < next_day)
    return query


async def get_supplier_summary(
    db: AsyncSession,
    supplier_id: int,
    start_date: Optional[DateBound] = None,
    end_date: Optional[DateBound] = None,
) -> CommissionSummary:
    """
    Summarize a supplier's settled sales within an optional date range.

    Both range ends are inclusive; see settled_between.
    """
    query = select(SaleRecord).where(SaleRecord.supplier_id == supplier_id)
    query = settled_between(query, start_date, end_date)

    result = await db.execute(query)
    sales = result.scalars().all()

    category_ids = {s.category_id for s in sales}
    rules = await rule_store.list_applicable_rules(db, supplier_id, category_ids)

    return summarize(sales, rules)


async def get_supplier_category_ids(db: AsyncSession, supplier_id: int) -> set:
    """Categories a supplier has sold in, from its settled sales."""
    result = await db.execute(
        select(SaleRecord.category_id)
        .where(SaleRecord.supplier_id == supplier_id)
        .distinct()
    )
    return {row[0] for row in result.all()}

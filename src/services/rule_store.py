"""
Commission rule queries.

Deleted rules (deleted_at set) are invisible to every lookup here; they stay
in the table only for audit.
"""

from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models import CommissionRule, ScopeTier
from src.services.errors import NotFoundError


def _not_deleted():
    return CommissionRule.deleted_at.is_(None)


async def get_rule(
    db: AsyncSession,
    rule_id: int,
    for_update: bool = False,
) -> CommissionRule:
    """Get a rule by id or raise NotFoundError."""
    query = select(CommissionRule).where(
        and_(CommissionRule.id == rule_id, _not_deleted())
    )
    if for_update:
        query = query.with_for_update()

    result = await db.execute(query)
    rule = result.scalar_one_or_none()
    if rule is None:
        raise NotFoundError("Commission rule", rule_id)
    return rule


async def get_active_rules_for_scope(
    db: AsyncSession,
    scope_key: str,
    for_update: bool = False,
) -> List[CommissionRule]:
    """
    Active rules holding a scope key.

    Normally zero or one; a list so callers can repair a scope that somehow
    ended up with more.
    """
    query = select(CommissionRule).where(
        and_(
            CommissionRule.scope_key == scope_key,
            CommissionRule.active == True,  # noqa: E712
            _not_deleted(),
        )
    )
    if for_update:
        query = query.with_for_update()

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_candidate_rules(
    db: AsyncSession,
    product_id: int,
    supplier_id: int,
    category_id: int,
) -> List[CommissionRule]:
    """
    Active rules at any tier that could apply to this product.

    Expiry is not filtered here; the resolver checks it against the
    resolution date.
    """
    query = select(CommissionRule).where(
        and_(
            CommissionRule.active == True,  # noqa: E712
            _not_deleted(),
            or_(
                CommissionRule.scope == ScopeTier.GLOBAL,
                and_(
                    CommissionRule.scope == ScopeTier.CATEGORY,
                    CommissionRule.category_id == category_id,
                ),
                and_(
                    CommissionRule.scope == ScopeTier.SUPPLIER,
                    CommissionRule.supplier_id == supplier_id,
                ),
                and_(
                    CommissionRule.scope == ScopeTier.SPECIFIC,
                    CommissionRule.supplier_id == supplier_id,
                    or_(
                        CommissionRule.product_id == product_id,
                        CommissionRule.category_id == category_id,
                    ),
                ),
            ),
        )
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_rules(
    db: AsyncSession,
    category_id: Optional[int] = None,
    supplier_id: Optional[int] = None,
    active: Optional[bool] = None,
    scope: Optional[ScopeTier] = None,
    page: int = 1,
    per_page: int = 50,
) -> Tuple[List[CommissionRule], int]:
    """
    List rules for the admin screen.

    A category or supplier filter also matches rules without that id, i.e.
    every rule that could apply within that category or supplier.
    """
    query = select(CommissionRule).where(_not_deleted())

    if category_id is not None:
        query = query.where(
            or_(
                CommissionRule.category_id == category_id,
                CommissionRule.category_id.is_(None),
            )
        )
    if supplier_id is not None:
        query = query.where(
            or_(
                CommissionRule.supplier_id == supplier_id,
                CommissionRule.supplier_id.is_(None),
            )
        )
    if active is not None:
        query = query.where(CommissionRule.active == active)
    if scope is not None:
        query = query.where(CommissionRule.scope == scope)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    query = query.order_by(CommissionRule.id)
    query = query.offset((page - 1) * per_page).limit(per_page)
    result = await db.execute(query)

    return list(result.scalars().all()), total or 0


async def list_applicable_rules(
    db: AsyncSession,
    supplier_id: int,
    category_ids: Iterable[int] = (),
    on: Optional[date] = None,
) -> List[CommissionRule]:
    """
    Active rules that can apply to a supplier's products, by priority.

    Category-scoped rules are included only for the given categories (the
    categories the supplier sells in). Product overrides of the supplier are
    always included. Rules whose valid_until is before `on` (default: today,
    UTC) are left out, as the resolver would skip them.
    """
    category_ids = list(category_ids)
    on = on or datetime.now(timezone.utc).date()

    conditions = [
        CommissionRule.scope == ScopeTier.GLOBAL,
        and_(
            CommissionRule.scope.in_([ScopeTier.SUPPLIER, ScopeTier.SPECIFIC]),
            CommissionRule.supplier_id == supplier_id,
        ),
    ]
    if category_ids:
        conditions.append(
            and_(
                CommissionRule.scope == ScopeTier.CATEGORY,
                CommissionRule.category_id.in_(category_ids),
            )
        )

    result = await db.execute(
        select(CommissionRule).where(
            and_(
                CommissionRule.active == True,  # noqa: E712
                _not_deleted(),
                or_(
                    CommissionRule.valid_until.is_(None),
                    CommissionRule.valid_until >= on,
                ),
                or_(*conditions),
            )
        )
    )
    rules = list(result.scalars().all())
    rules.sort(key=lambda r: (r.priority, r.id))
    return rules

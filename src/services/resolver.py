"""
Commission rate resolution.

Rules are evaluated in a fixed priority order and the first tier with an
eligible rule wins; rates from different tiers are never blended:

1. Specific: a product override, then a (category, supplier) pair
2. Supplier
3. Category
4. Global
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from src.models import CommissionRule, ScopeTier
from src.services import rule_store
from src.services.errors import NoApplicableRuleError
from src.services.money import quantize_rate

logger = logging.getLogger(__name__)

# resolved_scope value used when the caller's fallback rate was applied
DEFAULT_SCOPE = "default"


@dataclass(frozen=True)
class SaleContext:
    product_id: int
    supplier_id: int
    category_id: int


@dataclass(frozen=True)
class Resolution:
    """Rate chosen for a sale and where it came from."""

    rate: Decimal
    scope_tier: str
    rule_id: Optional[int] = None


Matcher = Callable[[CommissionRule, SaleContext], bool]

TIERS: Sequence[Tuple[ScopeTier, Matcher]] = (
    (
        ScopeTier.SPECIFIC,
        lambda r, s: r.product_id == s.product_id and r.supplier_id == s.supplier_id,
    ),
    (
        ScopeTier.SPECIFIC,
        lambda r, s: (
            r.product_id is None
            and r.category_id == s.category_id
            and r.supplier_id == s.supplier_id
        ),
    ),
    (ScopeTier.SUPPLIER, lambda r, s: r.supplier_id == s.supplier_id),
    (ScopeTier.CATEGORY, lambda r, s: r.category_id == s.category_id),
    (ScopeTier.GLOBAL, lambda r, s: True),
)


def _created_key(rule: CommissionRule):
    created = rule.created_at
    if created is None:
        created = datetime.min
    elif created.tzinfo is not None:
        created = created.astimezone(timezone.utc).replace(tzinfo=None)
    return created, rule.id or 0


def resolve(
    product_id: int,
    supplier_id: int,
    category_id: int,
    rules: Iterable[CommissionRule],
    on: Optional[date] = None,
) -> Resolution:
    """
    Select the single applicable rule for a sale.

    Args:
        product_id: Product being sold
        supplier_id: Supplier of the product at sale time
        category_id: Category of the product at sale time
        rules: Candidate rules (inactive/expired ones are skipped)
        on: Resolution date for expiry checks (defaults to today, UTC)

    Returns:
        Resolution with the rate, tier and rule id

    Raises:
        NoApplicableRuleError: No eligible rule at any tier
    """
    on = on or datetime.now(timezone.utc).date()
    sale = SaleContext(product_id, supplier_id, category_id)
    eligible = [r for r in rules if r.is_eligible(on)]

    for tier, matches in TIERS:
        candidates = [r for r in eligible if r.scope == tier and matches(r, sale)]
        if not candidates:
            continue

        # More than one means the single-active invariant was broken upstream
        if len(candidates) > 1:
            logger.warning(
                f"{len(candidates)} active {tier.value} rules match product {product_id} "
                f"(ids={[r.id for r in candidates]}), using the newest"
            )
        rule = max(candidates, key=_created_key)
        return Resolution(rate=quantize_rate(rule.rate), scope_tier=tier.value, rule_id=rule.id)

    raise NoApplicableRuleError(product_id, supplier_id, category_id)


async def resolve_rate(
    db: AsyncSession,
    product_id: int,
    supplier_id: int,
    category_id: int,
    default_rate: Optional[Decimal] = None,
    on: Optional[date] = None,
) -> Resolution:
    """
    Resolve the commission rate for a sale from stored rules.

    When no rule applies and the caller passed default_rate, that rate is
    returned with scope "default"; otherwise NoApplicableRuleError propagates.
    """
    rules = await rule_store.get_candidate_rules(db, product_id, supplier_id, category_id)
    try:
        return resolve(product_id, supplier_id, category_id, rules, on=on)
    except NoApplicableRuleError:
        if default_rate is None:
            logger.warning(
                f"No commission rule for product {product_id} "
                f"(supplier={supplier_id}, category={category_id})"
            )
            raise
        logger.info(f"No commission rule for product {product_id}, using caller default {default_rate}")
        return Resolution(rate=quantize_rate(default_rate), scope_tier=DEFAULT_SCOPE)

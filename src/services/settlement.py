"""
Sale settlement: commission/net split with the rate frozen onto the record.

commission = round_half_even(gross * rate / 100, 2), with the rate fraction
held at four decimals; net = gross - commission, so the two always add back
to the gross amount exactly.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, settings as default_settings
from src.models import AuditAction, SaleRecord
from src.schemas.auth import TokenPayload
from src.services.errors import FieldError, ValidationError
from src.services.money import CENT, Number, decimal_places, quantize_rate, rate_fraction, to_decimal
from src.services.resolver import resolve_rate
from src.utils.audit import log_action

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Split:
    gross_amount: Decimal
    rate: Decimal
    commission_amount: Decimal
    net_amount: Decimal


def compute_split(gross_amount: Number, rate: Number) -> Split:
    """
    Split a gross amount into platform commission and supplier net.

    >>> compute_split("199.99", "4.5").commission_amount
    Decimal('9.00')
    """
    gross = to_decimal(gross_amount).quantize(CENT, rounding=ROUND_HALF_EVEN)
    commission = (gross * rate_fraction(rate)).quantize(CENT, rounding=ROUND_HALF_EVEN)
    return Split(
        gross_amount=gross,
        rate=quantize_rate(rate),
        commission_amount=commission,
        net_amount=gross - commission,
    )


def validate_gross_amount(gross_amount: Number, config: Optional[Settings] = None) -> Decimal:
    """Check a gross amount is a positive cent value within the accepted range."""
    config = config or default_settings
    try:
        gross = to_decimal(gross_amount)
    except (TypeError, ValueError) as e:
        raise ValidationError([FieldError("gross_amount", str(e))]) from e

    if not gross.is_finite() or decimal_places(gross) > 2:
        raise ValidationError([FieldError("gross_amount", "At most two decimal places")])
    if gross < CENT or gross > config.max_gross_amount:
        raise ValidationError([
            FieldError("gross_amount", f"Must be between {CENT} and {config.max_gross_amount}")
        ])
    return gross


async def settle_sale(
    db: AsyncSession,
    product_id: int,
    supplier_id: int,
    category_id: int,
    gross_amount: Number,
    quantity: int = 1,
    buyer_id: Optional[int] = None,
    default_rate: Optional[Decimal] = None,
    actor: Optional[TokenPayload] = None,
    ip_address: Optional[str] = None,
) -> SaleRecord:
    """
    Settle one completed sale.

    Resolves the rate, computes the split and inserts the SaleRecord together
    with its audit entry in a single transaction. Nothing is written when
    resolution fails or the insert fails.

    Args:
        db: Database session
        product_id: Product sold
        supplier_id: Supplier of the product at sale time
        category_id: Category of the product at sale time
        gross_amount: Amount charged to the buyer
        quantity: Units sold
        buyer_id: Buyer, when known
        default_rate: Platform fallback rate for sales no rule covers
        actor: Calling actor, for the audit log
        ip_address: Caller IP, for the audit log

    Returns:
        The persisted SaleRecord

    Raises:
        ValidationError: Malformed gross amount or quantity
        NoApplicableRuleError: No rule applies and no default_rate was given
    """
    gross = validate_gross_amount(gross_amount)
    if quantity < 1:
        raise ValidationError([FieldError("quantity", "Must be at least 1")])

    resolution = await resolve_rate(
        db, product_id, supplier_id, category_id, default_rate=default_rate
    )
    split = compute_split(gross, resolution.rate)

    record = SaleRecord(
        product_id=product_id,
        supplier_id=supplier_id,
        category_id=category_id,
        buyer_id=buyer_id,
        quantity=quantity,
        gross_amount=split.gross_amount,
        resolved_rate=split.rate,
        commission_amount=split.commission_amount,
        net_amount=split.net_amount,
        resolved_scope=resolution.scope_tier,
        rule_id=resolution.rule_id,
    )

    try:
        db.add(record)
        await db.flush()
        await log_action(
            db=db,
            action=AuditAction.SETTLE_SALE,
            actor=actor,
            target_type="sale",
            target_id=record.id,
            action_metadata={
                "product_id": product_id,
                "rule_id": resolution.rule_id,
                "scope": resolution.scope_tier,
                "rate": str(split.rate),
                "gross_amount": str(split.gross_amount),
                "commission_amount": str(split.commission_amount),
            },
            ip_address=ip_address,
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception(f"Settlement of product {product_id} rolled back")
        raise

    logger.info(
        f"Sale {record.id} settled: product={product_id} gross={split.gross_amount} "
        f"rate={split.rate} ({resolution.scope_tier}) commission={split.commission_amount}"
    )
    return record

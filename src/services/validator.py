"""
Commission rule input validation.

Checks run in a fixed order and stop at the first failure:
1. rate format (number with at most two decimals)
2. rate bounds (inclusive, from settings)
3. scope consistency (which ids each scope carries)
4. remarks length
5. valid_until is an ISO date and not in the past
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from src.config import Settings, settings as default_settings
from src.models.commission import ScopeTier, build_scope_key
from src.schemas.commission import CommissionRuleInput
from src.services.errors import FieldError, ValidationError
from src.services.money import quantize_rate

RATE_PATTERN = re.compile(r"^\d+(\.\d{1,2})?$")

# Which id fields each scope requires / forbids. Specific needs supplier_id
# plus exactly one of category_id / product_id.
_SCOPE_FIELDS = {
    ScopeTier.GLOBAL: ((), ("category_id", "supplier_id", "product_id")),
    ScopeTier.CATEGORY: (("category_id",), ("supplier_id", "product_id")),
    ScopeTier.SUPPLIER: (("supplier_id",), ("category_id", "product_id")),
    ScopeTier.SPECIFIC: (("supplier_id",), ()),
}


@dataclass(frozen=True)
class ValidatedRule:
    """Normalized rule ready to be stored."""

    scope: ScopeTier
    scope_key: str
    rate: Decimal
    category_id: Optional[int] = None
    supplier_id: Optional[int] = None
    product_id: Optional[int] = None
    active: bool = True
    remarks: Optional[str] = None
    valid_until: Optional[date] = None


@dataclass
class ValidationResult:
    rule: Optional[ValidatedRule] = None
    errors: List[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.rule is not None and not self.errors

    def raise_for_errors(self) -> ValidatedRule:
        if not self.ok:
            raise ValidationError(self.errors)
        return self.rule


def _fail(field_name: str, message: str) -> ValidationResult:
    return ValidationResult(errors=[FieldError(field_name, message)])


def _check_scope(data: CommissionRuleInput) -> Optional[FieldError]:
    try:
        scope = ScopeTier(data.scope)
    except ValueError:
        allowed = ", ".join(t.value for t in ScopeTier)
        return FieldError("scope", f"Unknown scope '{data.scope}', expected one of: {allowed}")

    required, forbidden = _SCOPE_FIELDS[scope]
    for name in required:
        if getattr(data, name) is None:
            return FieldError(name, f"Required for {scope.value} scope")
    for name in forbidden:
        if getattr(data, name) is not None:
            return FieldError(name, f"Not allowed for {scope.value} scope")

    if scope == ScopeTier.SPECIFIC:
        has_category = data.category_id is not None
        has_product = data.product_id is not None
        if has_category == has_product:
            return FieldError(
                "product_id" if has_product else "category_id",
                "Specific scope needs exactly one of category_id or product_id",
            )

    for name in ("category_id", "supplier_id", "product_id"):
        value = getattr(data, name)
        if value is not None and value <= 0:
            return FieldError(name, "Must be a positive id")
    return None


def validate_rule(
    data: CommissionRuleInput,
    today: Optional[date] = None,
    check_valid_until: bool = True,
    config: Optional[Settings] = None,
) -> ValidationResult:
    """
    Validate rule input and normalize it.

    Args:
        data: Raw rule input
        today: Reference date for the valid_until check (defaults to today)
        check_valid_until: Skip the "not in the past" check, used when an
            update keeps an already stored expiry date
        config: Settings providing bounds (defaults to application settings)

    Returns:
        ValidationResult with either the normalized rule or field errors
    """
    config = config or default_settings
    today = today or datetime.now(timezone.utc).date()

    raw_rate = (data.rate or "").strip()
    if not RATE_PATTERN.match(raw_rate):
        return _fail("rate", "Invalid format, use a number with at most two decimals (e.g. 2.5)")

    rate = Decimal(raw_rate)
    if rate < config.commission_min_rate or rate > config.commission_max_rate:
        return _fail(
            "rate",
            f"Rate must be between {config.commission_min_rate} and {config.commission_max_rate}",
        )

    scope_error = _check_scope(data)
    if scope_error:
        return ValidationResult(errors=[scope_error])

    remarks = data.remarks.strip() if data.remarks else None
    if remarks and len(remarks) > config.remarks_max_length:
        return _fail("remarks", f"At most {config.remarks_max_length} characters")

    valid_until = None
    if data.valid_until:
        try:
            valid_until = date.fromisoformat(data.valid_until.strip())
        except ValueError:
            return _fail("valid_until", "Invalid date, expected YYYY-MM-DD")
        if check_valid_until and valid_until < today:
            return _fail("valid_until", "Date must not be in the past")

    scope = ScopeTier(data.scope)
    return ValidationResult(
        rule=ValidatedRule(
            scope=scope,
            scope_key=build_scope_key(scope, data.category_id, data.supplier_id, data.product_id),
            rate=quantize_rate(rate),
            category_id=data.category_id,
            supplier_id=data.supplier_id,
            product_id=data.product_id,
            active=data.active,
            remarks=remarks or None,
            valid_until=valid_until,
        )
    )

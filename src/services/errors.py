"""
Domain errors raised by the commission services.

Routes translate these into HTTP responses; services never return error
values silently.
"""

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class FieldError:
    """A single field-level validation failure."""

    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class CommissionError(Exception):
    """Base class for commission engine errors."""

    code = "commission_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CommissionError):
    """Input rejected before any write happened."""

    code = "validation_error"

    def __init__(self, errors: List[FieldError]):
        summary = "; ".join(f"{e.field}: {e.message}" for e in errors)
        super().__init__(f"Invalid input ({summary})")
        self.errors = errors


class NoApplicableRuleError(CommissionError):
    """No eligible rule at any tier for a product/supplier/category triple."""

    code = "no_applicable_rule"

    def __init__(self, product_id: int, supplier_id: int, category_id: int):
        super().__init__(
            f"No applicable commission rule for product={product_id} "
            f"supplier={supplier_id} category={category_id}"
        )
        self.product_id = product_id
        self.supplier_id = supplier_id
        self.category_id = category_id


class ScopeConflictError(CommissionError):
    """Persistence layer refused a second active rule for one scope."""

    code = "scope_conflict"

    def __init__(self, scope_key: str):
        super().__init__(f"Another active rule already exists for scope '{scope_key}'")
        self.scope_key = scope_key


class NotFoundError(CommissionError):
    """Referenced entity does not exist (or was deleted)."""

    code = "not_found"

    def __init__(self, entity: str, entity_id: Optional[int]):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id

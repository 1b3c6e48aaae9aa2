"""Commission rule, settlement and summary schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.commission import ScopeTier


class CommissionRuleInput(BaseModel):
    """
    Create or update a commission rule.

    rate and valid_until are kept as raw strings; their format is checked by
    the rule validator so errors come back as field-level feedback.
    """

    scope: str = Field(..., description="global | category | supplier | specific")
    rate: str = Field(..., description="Percentage with at most two decimals")
    category_id: Optional[int] = None
    supplier_id: Optional[int] = None
    product_id: Optional[int] = None
    active: bool = True
    remarks: Optional[str] = None
    valid_until: Optional[str] = Field(None, description="ISO date, YYYY-MM-DD")

    @field_validator("rate", mode="before")
    @classmethod
    def rate_as_text(cls, v):
        if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("valid_until", mode="before")
    @classmethod
    def valid_until_as_text(cls, v):
        if isinstance(v, date):
            return v.isoformat()
        return v


class CommissionRuleResponse(BaseModel):
    """Stored commission rule."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    scope: ScopeTier
    scope_key: str
    category_id: Optional[int]
    supplier_id: Optional[int]
    product_id: Optional[int]
    rate: Decimal
    active: bool
    valid_until: Optional[date]
    remarks: Optional[str]
    created_by: Optional[int]
    created_at: datetime
    updated_at: Optional[datetime]
    deactivated_at: Optional[datetime]


class ApplicableRuleResponse(CommissionRuleResponse):
    """Rule annotated with its priority for a supplier."""

    priority: int


class CommissionRuleListResponse(BaseModel):
    """Paginated rule list."""

    items: List[CommissionRuleResponse]
    total: int
    page: int
    per_page: int
    pages: int


class ResolveResponse(BaseModel):
    """Rate that would apply to a sale right now."""

    rate: Decimal
    scope_tier: str
    rule_id: Optional[int]


class SettleRequest(BaseModel):
    """Settle one completed sale."""

    product_id: int = Field(..., gt=0)
    supplier_id: int = Field(..., gt=0)
    category_id: int = Field(..., gt=0)
    gross_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    quantity: int = Field(default=1, ge=1)
    buyer_id: Optional[int] = Field(None, gt=0)
    default_rate: Optional[Decimal] = Field(
        None,
        gt=0,
        le=100,
        decimal_places=2,
        description="Platform fallback used only when no rule applies",
    )


class SaleRecordResponse(BaseModel):
    """Settled sale."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    supplier_id: int
    category_id: int
    buyer_id: Optional[int]
    quantity: int
    gross_amount: Decimal
    resolved_rate: Decimal
    commission_amount: Decimal
    net_amount: Decimal
    resolved_scope: str
    rule_id: Optional[int]
    status: str
    settled_at: datetime


class SaleRecordListResponse(BaseModel):
    """Paginated sale records."""

    items: List[SaleRecordResponse]
    total: int
    page: int
    per_page: int
    pages: int


class CommissionSummaryResponse(BaseModel):
    """Supplier commission summary for dashboards."""

    supplier_id: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    avg_rate: Decimal = Decimal("0.00")
    most_common_rate: Decimal = Decimal("0.00")
    most_common_rate_count: int = 0
    total_commission: Decimal = Decimal("0.00")
    total_gross: Decimal = Decimal("0.00")
    total_net: Decimal = Decimal("0.00")
    sales_count: int = 0
    total_products: int = 0
    categories_count: int = 0
    specific_rates_count: int = 0

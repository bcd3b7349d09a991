# backend/folio/schemas/valuation.py
"""
Pydantic schemas for position metrics, balance checks and summaries.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class PositionMetricsDetail(BaseModel):
    """Derived state of one position; recomputed from its entries on every request."""

    model_config = ConfigDict(from_attributes=True)

    quantity: Decimal
    average_cost: Decimal = Field(..., description="Weighted-average cost per unit")
    total_invested: Decimal = Field(..., description="Cost basis of the units held")
    current_price: Decimal | None = Field(
        ...,
        description="Latest quote (1 for currencies); null when never quoted"
    )
    current_value: Decimal
    unrealized_gain_loss: Decimal
    unrealized_percentage: Decimal
    realized_gain_loss: Decimal
    total_sold_value: Decimal


class PositionValuationResponse(BaseModel):
    position_id: int
    asset_id: int
    asset_code: str
    asset_class: str
    platform_id: int
    metrics: PositionMetricsDetail


class BalanceCheckResponse(BaseModel):
    position_id: int
    available: Decimal
    requested: Decimal
    is_sufficient: bool


class AggregateSummaryDetail(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_assets: int = Field(..., description="Number of open positions")
    total_invested: Decimal
    total_current_value: Decimal
    total_unrealized_gain_loss: Decimal
    total_unrealized_percentage: Decimal
    total_realized_gain_loss: Decimal


class AggregateValuationResponse(BaseModel):
    scope: str = Field(..., examples=["platform", "owner"])
    scope_id: int
    summary: AggregateSummaryDetail
    positions: list[PositionValuationResponse]

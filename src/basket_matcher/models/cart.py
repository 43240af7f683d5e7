"""
Match and result models.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List

from pydantic import BaseModel, Field, field_validator, model_validator

from .candidate import MatchTier
from .product import Product

CENT = Decimal("0.01")


def line_total(units_needed: int, price: Decimal) -> Decimal:
    """Price of buying ``units_needed`` packs, rounded to cents."""
    return (Decimal(units_needed) * price).quantize(CENT, rounding=ROUND_HALF_UP)


class ProductMatch(BaseModel):
    """Final resolution of one shopping item."""
    product: Product
    units_needed: int = Field(ge=1)
    actual_amount: float
    actual_unit: str
    total_price: Decimal
    confidence: float
    tier: MatchTier
    reasoning: str = ""

    @model_validator(mode="after")
    def check_total_price(self) -> "ProductMatch":
        expected = line_total(self.units_needed, self.product.price)
        if self.total_price != expected:
            raise ValueError(
                f"total_price {self.total_price} != {self.units_needed} x {self.product.price}"
            )
        return self

    @classmethod
    def build(
        cls,
        product: Product,
        units_needed: int,
        actual_amount: float,
        actual_unit: str,
        confidence: float,
        tier: MatchTier,
        reasoning: str = "",
    ) -> "ProductMatch":
        return cls(
            product=product,
            units_needed=units_needed,
            actual_amount=actual_amount,
            actual_unit=actual_unit,
            total_price=line_total(units_needed, product.price),
            confidence=confidence,
            tier=tier,
            reasoning=reasoning,
        )


class ConsideredCandidate(BaseModel):
    """Top candidate kept in the result log for inspection."""
    title: str
    score: float
    tier: MatchTier


class ResultSummary(BaseModel):
    total_items_requested: int
    items_found: int
    items_not_found: int
    success_rate: float

    @field_validator("success_rate")
    @classmethod
    def check_rate(cls, v: float) -> float:
        if not 0 <= v <= 100:
            raise ValueError("Success rate must be between 0 and 100")
        return v


class ShoppingResult(BaseModel):
    """Complete (possibly partial) outcome of processing one shopping list."""
    found_items: List[ProductMatch] = Field(default_factory=list)
    not_found: List[str] = Field(default_factory=list)
    total_cost: Decimal = Decimal("0.00")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    original_list: str = ""
    candidates_considered: Dict[str, List[ConsideredCandidate]] = Field(default_factory=dict)
    summary: ResultSummary = Field(
        default_factory=lambda: ResultSummary(
            total_items_requested=0, items_found=0, items_not_found=0, success_rate=0.0
        )
    )
    cancelled: bool = False

    def add_match(self, match: ProductMatch):
        self.found_items.append(match)
        self.recalculate_total()

    def recalculate_total(self):
        self.total_cost = sum((m.total_price for m in self.found_items), Decimal("0.00"))

    def finalize(self, total_items_requested: int):
        self.recalculate_total()
        self.summary = ResultSummary(
            total_items_requested=total_items_requested,
            items_found=len(self.found_items),
            items_not_found=len(self.not_found),
            success_rate=len(self.found_items) / max(1, total_items_requested) * 100,
        )

"""
Search candidate models.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .product import Product


class MatchTier(str, Enum):
    """How a product was found (or how its quantity was resolved)."""
    TIER1 = "tier1"
    TIER2 = "tier2"
    TIER3 = "tier3"
    AI_SMART = "ai_smart"


SEARCH_TIERS = (MatchTier.TIER1, MatchTier.TIER2, MatchTier.TIER3)


class RelevanceBreakdown(BaseModel):
    """Per-signal relevance scores behind a candidate's final score."""
    tfidf: float = 0.0
    fuzzy: float = 0.0
    exact: float = 0.0
    attribute: float = 0.0
    semantic: float = 0.0
    category: float = 0.0
    final: float = 0.0


class Candidate(BaseModel):
    """Scored product considered for one shopping item."""
    product_index: int
    product: Product
    score: float
    tier: MatchTier
    breakdown: RelevanceBreakdown = Field(default_factory=RelevanceBreakdown)
    reasoning: Optional[str] = None

    @field_validator("tier")
    @classmethod
    def check_search_tier(cls, v: MatchTier) -> MatchTier:
        if v not in SEARCH_TIERS:
            raise ValueError(f"Candidates can only carry a search tier, got {v.value}")
        return v

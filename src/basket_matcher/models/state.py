"""
Per-item matching state carried through the item graph.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .candidate import Candidate
from .cart import ProductMatch
from .grocery_list import ShoppingItem
from .llm import SearchTiers


class ItemMatchState(BaseModel):
    """State of one shopping item while it moves through the tiers."""
    item: ShoppingItem
    target_categories: List[str] = Field(default_factory=list)
    search_tiers: Optional[SearchTiers] = None
    candidates: List[Candidate] = Field(default_factory=list)
    ranked: List[Candidate] = Field(default_factory=list)
    match: Optional[ProductMatch] = None
    failure_reason: Optional[str] = None
    degraded_stages: List[str] = Field(default_factory=list)

    def degrade(self, stage: str):
        if stage not in self.degraded_stages:
            self.degraded_stages.append(stage)

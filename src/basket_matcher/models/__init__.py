"""
Models package - all data validation schemas for the basket matcher.
"""

# Catalog models
from .product import Unit, ParsedQuantity, Product

# Shopping list models
from .grocery_list import ItemType, ShoppingItem, ParsedGroceryItem, ParsedShoppingList

# Search models
from .candidate import MatchTier, SEARCH_TIERS, RelevanceBreakdown, Candidate

# Result models
from .cart import ProductMatch, ConsideredCandidate, ResultSummary, ShoppingResult, line_total

# Collaborator response models
from .llm import (
    CategorySelection, SearchTiers, QualitySelection, QualityFilterResult, SmartQuantityResult
)

# State models
from .state import ItemMatchState

__all__ = [
    # Catalog
    "Unit",
    "ParsedQuantity",
    "Product",
    # Shopping list
    "ItemType",
    "ShoppingItem",
    "ParsedGroceryItem",
    "ParsedShoppingList",
    # Search
    "MatchTier",
    "SEARCH_TIERS",
    "RelevanceBreakdown",
    "Candidate",
    # Results
    "ProductMatch",
    "ConsideredCandidate",
    "ResultSummary",
    "ShoppingResult",
    "line_total",
    # Collaborator responses
    "CategorySelection",
    "SearchTiers",
    "QualitySelection",
    "QualityFilterResult",
    "SmartQuantityResult",
    # State
    "ItemMatchState",
]

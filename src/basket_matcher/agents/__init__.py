"""
Agents module initialization.
"""

from .item_graph import ItemMatcher, route_after_tier1, route_after_tier2, route_after_tier3, route_after_rank
from .list_processor import GroceryMatcher, InvalidRequestError, validate_shopping_list, to_shopping_item

__all__ = [
    "ItemMatcher",
    "route_after_tier1",
    "route_after_tier2",
    "route_after_tier3",
    "route_after_rank",
    "GroceryMatcher",
    "InvalidRequestError",
    "validate_shopping_list",
    "to_shopping_item",
]

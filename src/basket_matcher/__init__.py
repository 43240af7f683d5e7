"""
Grocery basket matcher - matches free-text shopping lists against a product catalog.
"""

from .agents.list_processor import GroceryMatcher, InvalidRequestError
from .core.catalog import CatalogError, load_products
from .core.llm_engine import LLMEngine
from .models.cart import ShoppingResult

__version__ = "0.1.0"

__all__ = [
    "GroceryMatcher",
    "InvalidRequestError",
    "CatalogError",
    "load_products",
    "LLMEngine",
    "ShoppingResult",
]

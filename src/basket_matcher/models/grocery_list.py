"""
Shopping list models.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .product import Unit


class ItemType(str, Enum):
    FRESH_PRODUCE = "fresh_produce"
    DRY_GOODS = "dry_goods"
    DAIRY = "dairy"
    MEAT = "meat"
    HERBS_SPICES = "herbs_spices"
    CANNED = "canned"
    CONDIMENTS = "condiments"
    UNKNOWN = "unknown"


class ShoppingItem(BaseModel):
    """One normalized request from the user's shopping list."""
    model_config = ConfigDict(frozen=True)

    item: str
    amount: float = Field(default=1.0, gt=0)
    unit: Unit = Unit.PIECE
    original_text: str
    attributes: List[str] = Field(default_factory=list)
    alternatives: List[str] = Field(default_factory=list)
    item_type: ItemType = ItemType.UNKNOWN

    @field_validator("item", "original_text")
    @classmethod
    def check_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Must not be blank")
        return v.strip()


class ParsedGroceryItem(BaseModel):
    """Item as returned by the list-parsing collaborator."""
    item: str
    amount: float = Field(default=1.0, gt=0)
    unit: str = "piece"
    original: str = ""
    attributes: List[str] = Field(default_factory=list)
    alternatives: List[str] = Field(default_factory=list)
    item_type: str = "unknown"


class ParsedShoppingList(BaseModel):
    """Structured shopping list produced by the list-parsing collaborator."""
    items: List[ParsedGroceryItem]

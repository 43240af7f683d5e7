"""
Catalog product and quantity models.
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator


class Unit(str, Enum):
    """Canonical quantity units understood by the engine."""
    G = "g"
    KG = "kg"
    ML = "ml"
    L = "l"
    PIECE = "piece"


class ParsedQuantity(BaseModel):
    """Amount and unit extracted from a free-text size descriptor."""
    model_config = ConfigDict(frozen=True)

    amount: float
    unit: Unit


class Product(BaseModel):
    """Single immutable catalog entry."""
    model_config = ConfigDict(frozen=True)

    category: str
    title: str
    price: Decimal
    volume: str
    url: str

    @field_validator("price")
    @classmethod
    def check_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Price must be non-negative")
        return v

    @property
    def search_text(self) -> str:
        """Text the lexical index and similarity scorers look at."""
        return f"{self.title} {self.category} {self.volume}"

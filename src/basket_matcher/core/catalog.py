"""
Catalog loading and structural validation.
A catalog that fails validation is rejected outright.
"""

import json
import logging
from collections import Counter
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Sequence, Tuple, Union

from pydantic import ValidationError

from basket_matcher.core.config import LOG_DATEFMT, LOG_FORMAT, LOG_LEVEL
from basket_matcher.models.product import Product

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {
    "category": str,
    "title": str,
    "price": (int, float),
    "volume": str,
    "url": str,
}
VALIDATION_SAMPLE_SIZE = 5


class CatalogError(Exception):
    """The product catalog is missing, empty or structurally invalid."""


def validate_products(records: Any, sample_size: int = VALIDATION_SAMPLE_SIZE) -> bool:
    """
    Check field presence and types on the first ``sample_size`` records.

    Raises CatalogError instead of returning False so a bad catalog can
    never be used by accident.
    """
    if not isinstance(records, list):
        raise CatalogError(f"Catalog must be a JSON array, got {type(records).__name__}")

    if not records:
        raise CatalogError("Catalog is empty")

    for i, record in enumerate(records[:sample_size]):
        check_record(record, i)

    logger.info(f"[CATALOG] Structure check passed on {min(sample_size, len(records))} records")
    return True


def check_record(record: Any, position: int):
    """Field presence and JSON types of one record; no coercion."""
    if not isinstance(record, dict):
        raise CatalogError(f"Product {position} is not an object")

    for field, expected in REQUIRED_FIELDS.items():
        if field not in record:
            raise CatalogError(f"Missing required field '{field}' in product {position}")
        value = record[field]
        if isinstance(value, bool) or not isinstance(value, expected):
            raise CatalogError(
                f"Invalid type for '{field}' in product {position}: {type(value).__name__}"
            )


def _to_product(record: Dict[str, Any], position: int) -> Product:
    check_record(record, position)
    try:
        price = record["price"]
        if isinstance(price, float):
            price = Decimal(str(price))
        return Product(
            category=record["category"],
            title=record["title"],
            price=price,
            volume=record["volume"],
            url=record["url"],
        )
    except (KeyError, TypeError, ValidationError) as e:
        raise CatalogError(f"Invalid product at position {position}: {e}") from e


def build_catalog(records: Any) -> Tuple[Product, ...]:
    """Validate raw records and turn them into an immutable product tuple."""
    validate_products(records)
    return tuple(_to_product(record, i) for i, record in enumerate(records))


def load_products(path: Union[str, Path]) -> Tuple[Product, ...]:
    """Load and validate a catalog JSON file."""
    catalog_path = Path(path)

    if not catalog_path.exists():
        raise CatalogError(f"Catalog file not found: {catalog_path}")

    try:
        with open(catalog_path, "r", encoding="utf-8") as f:
            records = json.load(f)
    except json.JSONDecodeError as e:
        raise CatalogError(f"Catalog file is not valid JSON: {e}") from e

    products = build_catalog(records)
    logger.info(f"[CATALOG] Loaded {len(products)} products from {catalog_path}")
    return products


def category_stats(products: Sequence[Product]) -> Dict[str, int]:
    return dict(Counter(p.category for p in products))

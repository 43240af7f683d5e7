"""
Shopping list processor - turns a free-text list into a priced basket.

Parses the list (collaborator or line-based fallback), matches every
item through the item graph and collects matches, misses and the top
candidates considered into a ShoppingResult.
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from basket_matcher.agents.item_graph import ItemMatcher
from basket_matcher.core.catalog import load_products
from basket_matcher.core.config import (
    CATALOG_PATH,
    LOG_DATEFMT,
    LOG_FORMAT,
    LOG_LEVEL,
    MAX_LIST_LENGTH,
)
from basket_matcher.core.fallbacks import fallback_parse
from basket_matcher.core.llm_engine import LLMEngine
from basket_matcher.core.retry_utils import LLMUnavailableError
from basket_matcher.core.search_engine import AdvancedSearchEngine
from basket_matcher.core.volume_parser import normalize_unit
from basket_matcher.models.cart import ConsideredCandidate, ShoppingResult
from basket_matcher.models.grocery_list import ItemType, ParsedGroceryItem, ShoppingItem
from basket_matcher.models.product import Product, Unit
from basket_matcher.models.state import ItemMatchState

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
logger = logging.getLogger(__name__)

CANDIDATES_LOGGED = 3


class InvalidRequestError(ValueError):
    """Malformed shopping list request; rejected without retry."""
    pass


def validate_shopping_list(shopping_list: object, max_length: int = MAX_LIST_LENGTH) -> str:
    if not isinstance(shopping_list, str):
        raise InvalidRequestError("Shopping list must be a string")
    if not shopping_list.strip():
        raise InvalidRequestError("Shopping list is empty")
    if len(shopping_list) > max_length:
        raise InvalidRequestError(f"Shopping list too long (max {max_length} characters)")
    return shopping_list


def to_shopping_item(parsed: ParsedGroceryItem) -> Optional[ShoppingItem]:
    """Normalize a collaborator-parsed item; None when it is unusable."""
    try:
        item_type = ItemType(parsed.item_type)
    except ValueError:
        item_type = ItemType.UNKNOWN

    try:
        return ShoppingItem(
            item=parsed.item,
            amount=parsed.amount,
            unit=normalize_unit(parsed.unit) or Unit.PIECE,
            original_text=parsed.original or parsed.item,
            attributes=parsed.attributes,
            alternatives=parsed.alternatives,
            item_type=item_type,
        )
    except ValidationError as e:
        logger.warning(f"[LIST-PROCESSOR] Dropping unusable parsed item {parsed.item!r}: {e}")
        return None


def _considered_key(result: ShoppingResult, text: str) -> str:
    """Repeated lines get an occurrence suffix: "milk", "milk #2", "milk #3"."""
    key, occurrence = text, 1
    while key in result.candidates_considered:
        occurrence += 1
        key = f"{text} #{occurrence}"
    return key


class GroceryMatcher:
    """Matches shopping lists against one immutable product catalog."""

    def __init__(self, products: List[Product], llm: Optional[LLMEngine] = None):
        self.engine = AdvancedSearchEngine(products)
        self.products = self.engine.products
        self.llm = llm
        self.item_matcher = ItemMatcher(self.engine, llm)

    @classmethod
    def from_catalog_file(
        cls, path: Union[str, Path] = CATALOG_PATH, llm: Optional[LLMEngine] = None
    ) -> "GroceryMatcher":
        return cls(load_products(path), llm)

    def parse_shopping_list(self, shopping_list: str) -> List[ShoppingItem]:
        if self.llm is not None:
            try:
                parsed = self.llm.parse_shopping_list(shopping_list)
                items = [i for i in (to_shopping_item(p) for p in parsed.items) if i is not None]
                if items:
                    return items
                logger.warning("[LIST-PROCESSOR] Collaborator parsed no items, parsing line by line")
            except LLMUnavailableError as e:
                logger.warning(f"[LIST-PROCESSOR] List parsing failed ({e.message}), parsing line by line")

        return fallback_parse(shopping_list)

    def match_item(self, item: ShoppingItem) -> ItemMatchState:
        return self.item_matcher.match(item)

    def process_shopping_list(
        self, shopping_list: str, cancel_event: Optional[threading.Event] = None
    ) -> ShoppingResult:
        """
        Match every item of a shopping list.

        Misses are values in ``not_found``, never exceptions. When
        ``cancel_event`` is set, processing stops before the next item and
        the partial result (with ``cancelled`` set) is returned.
        """
        validate_shopping_list(shopping_list)
        logger.info(f"[LIST-PROCESSOR] Processing shopping list ({len(shopping_list)} chars)")

        items = self.parse_shopping_list(shopping_list)
        logger.info(f"[LIST-PROCESSOR] Parsed {len(items)} items")

        result = ShoppingResult(original_list=shopping_list)

        for item in items:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning("[LIST-PROCESSOR] Cancelled, returning partial result")
                result.cancelled = True
                break

            state = self.match_item(item)

            result.candidates_considered[_considered_key(result, item.original_text)] = [
                ConsideredCandidate(title=c.product.title, score=c.score, tier=c.tier)
                for c in state.ranked[:CANDIDATES_LOGGED]
            ]

            if state.match is not None:
                result.add_match(state.match)
            else:
                logger.info(f"[LIST-PROCESSOR] Not found: '{item.original_text}' ({state.failure_reason})")
                result.not_found.append(item.original_text)

        result.finalize(total_items_requested=len(items))
        logger.info(
            f"[LIST-PROCESSOR] Done: {result.summary.items_found}/{len(items)} found, "
            f"total €{result.total_cost}"
        )
        return result

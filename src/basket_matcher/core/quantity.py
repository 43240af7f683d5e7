"""
Purchase quantity resolution for a chosen candidate.
"""

import logging
from typing import Optional

from basket_matcher.core.config import LOG_DATEFMT, LOG_FORMAT, LOG_LEVEL
from basket_matcher.core.volume_parser import calculate_units_needed, display_quantity, parse_volume
from basket_matcher.models.candidate import Candidate, MatchTier
from basket_matcher.models.cart import ProductMatch
from basket_matcher.models.grocery_list import ShoppingItem
from basket_matcher.models.llm import SmartQuantityResult

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
logger = logging.getLogger(__name__)

ESTIMATED_CONFIDENCE_FACTOR = 0.75


def _with_note(reasoning: str, candidate: Candidate) -> str:
    if candidate.reasoning:
        return f"{reasoning}. {candidate.reasoning}"
    return reasoning


def deterministic_match(item: ShoppingItem, candidate: Candidate) -> Optional[ProductMatch]:
    """Pack-count arithmetic; None when the pack size is unknown or incompatible."""
    product = candidate.product
    pack = parse_volume(f"{product.title} {product.volume}")
    if pack is None:
        return None

    units = calculate_units_needed(item.amount, item.unit, pack.amount, pack.unit)
    if units is None:
        return None

    actual_amount, actual_unit = display_quantity(units * pack.amount, pack.unit)
    reasoning = f"Deterministic calculation: {units} units = {actual_amount:g}{actual_unit}"

    return ProductMatch.build(
        product=product,
        units_needed=units,
        actual_amount=actual_amount,
        actual_unit=actual_unit,
        confidence=candidate.score,
        tier=candidate.tier,
        reasoning=_with_note(reasoning, candidate),
    )


def estimated_match(candidate: Candidate, estimate: SmartQuantityResult) -> ProductMatch:
    """Match built from a collaborator estimate; confidence is discounted."""
    return ProductMatch.build(
        product=candidate.product,
        units_needed=estimate.units_needed,
        actual_amount=estimate.actual_amount,
        actual_unit=estimate.actual_unit,
        confidence=candidate.score * ESTIMATED_CONFIDENCE_FACTOR,
        tier=MatchTier.AI_SMART,
        reasoning=_with_note(estimate.reasoning or "Estimated quantity", candidate),
    )

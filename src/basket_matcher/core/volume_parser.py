"""
Volume/weight parsing and pack-count arithmetic.
Extracts (amount, unit) from free-text size descriptors and works out
how many packs cover a requested quantity.
"""

import logging
import math
import re
from typing import Callable, List, Optional, Tuple, Union

from basket_matcher.core.config import LOG_DATEFMT, LOG_FORMAT, LOG_LEVEL
from basket_matcher.models.product import ParsedQuantity, Unit

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
logger = logging.getLogger(__name__)

_AMOUNT = r"(\d+(?:[.,]\d+)?)"
_UNIT_END = r"(?![a-zäöüß])"

UNIT_SYNONYMS = {
    "g": Unit.G,
    "gr": Unit.G,
    "gram": Unit.G,
    "grams": Unit.G,
    "gramm": Unit.G,
    "kg": Unit.KG,
    "kilo": Unit.KG,
    "kilogramm": Unit.KG,
    "kilogram": Unit.KG,
    "ml": Unit.ML,
    "milliliter": Unit.ML,
    "millilitre": Unit.ML,
    "l": Unit.L,
    "liter": Unit.L,
    "litre": Unit.L,
    "liters": Unit.L,
    "piece": Unit.PIECE,
    "pieces": Unit.PIECE,
    "pc": Unit.PIECE,
    "pcs": Unit.PIECE,
    "stück": Unit.PIECE,
    "stuck": Unit.PIECE,
    "stueck": Unit.PIECE,
    "stk": Unit.PIECE,
    "st": Unit.PIECE,
}

# Grams per unit; ml and l are treated as grams for grocery purposes.
COMPARABLE_FACTORS = {
    Unit.G: 1.0,
    Unit.KG: 1000.0,
    Unit.ML: 1.0,
    Unit.L: 1000.0,
}


def _to_float(raw: str) -> float:
    return float(raw.replace(",", "."))


def _multipack(match: re.Match) -> Tuple[float, str]:
    return float(match.group(1)) * _to_float(match.group(2)), match.group(3)


def _single(match: re.Match) -> Tuple[float, str]:
    return _to_float(match.group(1)), match.group(2)


# Tried in order; the first pattern that matches wins.
PATTERNS: List[Tuple[str, re.Pattern, Callable[[re.Match], Tuple[float, str]]]] = [
    (
        "multipack",
        re.compile(r"(\d+)\s*[x×]\s*" + _AMOUNT + r"\s*(kg|gr|g|ml|l)" + _UNIT_END),
        _multipack,
    ),
    (
        "circa",
        re.compile(r"ca\.?\s*" + _AMOUNT + r"\s*(kg|gr|g|ml|l)" + _UNIT_END),
        _single,
    ),
    (
        "plain",
        re.compile(_AMOUNT + r"\s*(kg|gr|g|ml|l|stück|stueck|stuck|stk|pieces|piece|pcs)" + _UNIT_END),
        _single,
    ),
    (
        "loose",
        re.compile(
            _AMOUNT
            + r"\s+(kilogramm|kilogram|kilo|gramm|grams|gram|gr|milliliter|millilitre"
            + r"|liters|liter|litre|pieces|piece|pc|st)"
            + _UNIT_END
        ),
        _single,
    ),
]


def normalize_unit(unit: Union[str, Unit, None]) -> Optional[Unit]:
    """Fold a unit token (or synonym) onto the canonical unit set."""
    if unit is None:
        return None
    if isinstance(unit, Unit):
        return unit
    return UNIT_SYNONYMS.get(unit.strip().lower().rstrip("."))


def parse_volume(text: Optional[str]) -> Optional[ParsedQuantity]:
    """
    Parse an amount and unit out of free text.

    Returns None when no pattern matches.
    """
    if not text:
        return None

    clean_text = text.lower().strip()

    for name, regex, extractor in PATTERNS:
        match = regex.search(clean_text)
        if not match:
            continue
        try:
            amount, raw_unit = extractor(match)
        except ValueError:
            continue
        unit = normalize_unit(raw_unit)
        if unit is None or amount <= 0:
            continue
        logger.debug(f"[VOLUME] '{text}' -> {amount} {unit.value} via {name}")
        return ParsedQuantity(amount=amount, unit=unit)

    return None


def convert_to_comparable(amount: float, unit: Union[str, Unit, None]) -> Optional[float]:
    """Convert to grams (or millilitres); pieces have no comparable scale."""
    canonical = normalize_unit(unit)
    factor = COMPARABLE_FACTORS.get(canonical)
    if factor is None:
        return None
    return amount * factor


def calculate_units_needed(
    target_amount: float,
    target_unit: Union[str, Unit],
    pack_amount: float,
    pack_unit: Union[str, Unit],
) -> Optional[int]:
    """
    How many packs of ``pack_amount pack_unit`` cover the target quantity.

    Returns None when the two quantities cannot be compared, in which case
    the caller has to estimate.
    """
    if pack_amount <= 0 or target_amount <= 0:
        return None

    target_comparable = convert_to_comparable(target_amount, target_unit)
    pack_comparable = convert_to_comparable(pack_amount, pack_unit)

    if target_comparable is not None and pack_comparable is not None:
        ratio = target_comparable / pack_comparable
    elif normalize_unit(target_unit) == Unit.PIECE and normalize_unit(pack_unit) == Unit.PIECE:
        ratio = target_amount / pack_amount
    else:
        return None

    # Round away float noise (0.3 kg / 100 g) before taking the ceiling.
    return max(1, math.ceil(round(ratio, 9)))


def display_quantity(amount: float, unit: Union[str, Unit]) -> Tuple[float, str]:
    """Re-express large gram/millilitre amounts in kg/l."""
    canonical = normalize_unit(unit)
    if canonical == Unit.G and amount >= 1000:
        return amount / 1000, Unit.KG.value
    if canonical == Unit.ML and amount >= 1000:
        return amount / 1000, Unit.L.value
    if canonical is not None:
        return amount, canonical.value
    return amount, str(unit)

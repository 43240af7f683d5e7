"""
Deterministic stand-ins for the collaborator stages.

Used when no collaborator is configured or a collaborator call fails:
a line-based shopping list parser and a rule-based search term generator.
"""

import logging
import re
from typing import List

from basket_matcher.core.config import LOG_DATEFMT, LOG_FORMAT, LOG_LEVEL
from basket_matcher.core.search_engine import (
    SYNONYMS,
    fold_diacritics,
    preprocess_query,
    restore_diacritics,
)
from basket_matcher.core.volume_parser import normalize_unit
from basket_matcher.models.grocery_list import ShoppingItem
from basket_matcher.models.llm import SearchTiers
from basket_matcher.models.product import Unit

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
logger = logging.getLogger(__name__)

_BULLET = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")
_LEADING_QUANTITY = re.compile(
    r"^(?:ca\.?\s*)?(\d+(?:[.,]\d+)?)\s*([a-zA-ZäöüÄÖÜß]+\.?)?\s+(.+)$"
)

# Folded qualifier word -> attribute name
ATTRIBUTE_WORDS = {
    "bio": "organic",
    "organic": "organic",
    "vollkorn": "whole_wheat",
    "wholemeal": "whole_wheat",
    "wholegrain": "whole_wheat",
    "fest": "firm",
    "fester": "firm",
    "firm": "firm",
    "frisch": "fresh",
    "frischer": "fresh",
    "fresh": "fresh",
}

# Attribute name -> German qualifiers used on shelf labels
ATTRIBUTE_TERMS = {
    "organic": ("bio",),
    "whole_wheat": ("vollkorn",),
    "firm": ("fester", "fest"),
    "fresh": ("frischer", "frisch"),
}


def detect_attributes(text: str) -> List[str]:
    """Attribute names for qualifier words in the text, in order of appearance."""
    folded = fold_diacritics(text.lower())
    found = []
    if "whole wheat" in folded or "whole grain" in folded:
        found.append("whole_wheat")
    for word in re.split(r"[^\w]+", folded):
        attribute = ATTRIBUTE_WORDS.get(word)
        if attribute and attribute not in found:
            found.append(attribute)
    return found


def parse_line(line: str) -> ShoppingItem:
    """One shopping list line as one item; a leading quantity is kept if it parses."""
    text = _BULLET.sub("", line).strip()
    amount, unit, name = 1.0, Unit.PIECE, text

    match = _LEADING_QUANTITY.match(text)
    if match:
        raw_amount, raw_unit, rest = match.groups()
        amount = float(raw_amount.replace(",", "."))
        unit_found = normalize_unit(raw_unit.rstrip(".")) if raw_unit else Unit.PIECE
        if unit_found is None:
            # "2 large apples": the word after the number is part of the name
            name = f"{raw_unit} {rest}"
        else:
            unit, name = unit_found, rest
        if amount <= 0:
            amount, unit, name = 1.0, Unit.PIECE, text

    return ShoppingItem(
        item=name,
        amount=amount,
        unit=unit,
        original_text=text,
        attributes=detect_attributes(name),
    )


def fallback_parse(shopping_list: str) -> List[ShoppingItem]:
    """Treat every non-empty line of the list as one item."""
    items = []
    for line in shopping_list.splitlines():
        if _BULLET.sub("", line).strip():
            items.append(parse_line(line))
    logger.info(f"[FALLBACK] Parsed {len(items)} items line by line")
    return items


def _is_qualifier(word: str) -> bool:
    return fold_diacritics(word) in ATTRIBUTE_WORDS


def _spelling_variants(phrase: str) -> List[str]:
    folded = fold_diacritics(phrase)
    return [folded if folded != phrase else restore_diacritics(phrase)]


def _synonym_variants(phrase: str) -> List[str]:
    words = phrase.split(" ")
    variants = []
    for position, word in enumerate(words):
        for synonym in SYNONYMS.get(fold_diacritics(word), []):
            variants.append(" ".join(words[:position] + [synonym] + words[position + 1:]))
    return variants


def generate_search_terms(item: ShoppingItem) -> SearchTiers:
    """
    Rule-based tiered search terms.

    tier1: the phrase as written, attribute-qualified phrases, reversed
    word order, the other diacritic spelling and synonym substitutions.
    tier2: the phrase without qualifiers, its words and their synonyms.
    tier3: the item's alternatives.
    """
    base = preprocess_query(item.item)
    words = base.split(" ") if base else []
    core_words = [w for w in words if not _is_qualifier(w)] or words
    core = " ".join(core_words)

    attributes = list(item.attributes)
    for attribute in detect_attributes(base):
        if attribute not in attributes:
            attributes.append(attribute)

    tier1 = [base]
    for attribute in attributes:
        for qualifier in ATTRIBUTE_TERMS.get(attribute, ()):
            tier1.append(f"{qualifier} {core}")
    if len(words) > 1:
        tier1.append(" ".join(reversed(words)))
    tier1.extend(_spelling_variants(base))
    tier1.extend(_synonym_variants(base))

    tier2 = [core]
    if len(core_words) > 1:
        tier2.extend(core_words)
    for word in core_words:
        tier2.extend(SYNONYMS.get(fold_diacritics(word), []))
    tier2.extend(_spelling_variants(core))

    tiers = SearchTiers(tier1=tier1, tier2=tier2, tier3=list(item.alternatives))
    logger.info(f"[FALLBACK] Generated search terms for '{item.item}': {tiers.model_dump()}")
    return tiers

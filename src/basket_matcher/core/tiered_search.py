"""
Tiered keyword search within target categories.

Three passes with decreasing strictness (specific terms, general terms,
alternatives). Raw keyword scores are reweighted per tier and adjusted
for requested attributes and package size before ranking.
"""

import logging
from typing import Dict, List, Sequence

from basket_matcher.core.config import LOG_DATEFMT, LOG_FORMAT, LOG_LEVEL
from basket_matcher.core.search_index import tokenize
from basket_matcher.core.volume_parser import convert_to_comparable, parse_volume
from basket_matcher.models.candidate import Candidate, MatchTier
from basket_matcher.models.grocery_list import ShoppingItem
from basket_matcher.models.product import Product

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
logger = logging.getLogger(__name__)

TIER_THRESHOLDS: Dict[MatchTier, float] = {
    MatchTier.TIER1: 0.8,
    MatchTier.TIER2: 0.5,
    MatchTier.TIER3: 0.3,
}
TIER_WEIGHTS: Dict[MatchTier, float] = {
    MatchTier.TIER1: 3.0,
    MatchTier.TIER2: 1.5,
    MatchTier.TIER3: 0.8,
}

# Escalate to the next tier only while the pool is smaller than this.
TIER2_ESCALATION_BELOW = 5
TIER3_ESCALATION_BELOW = 3

EXACT_WORD_SCORE = 2.0
COMPOUND_WORD_SCORE = 1.5
SUBSTRING_SCORE = 1.0

# attribute aliases, title marker(s), bonus
ATTRIBUTE_BONUSES = (
    (("organic", "bio"), ("bio",), 1.0),
    (("whole_wheat", "vollkorn", "whole_grain"), ("vollkorn",), 1.0),
    (("fresh", "frisch"), ("frisch", "fresh"), 0.5),
    (("firm", "fest"), ("fest",), 1.0),
)

SIZE_MATCH_BONUS = 0.5
OVERSIZED_REQUEST_PENALTY = -1.0
DUPLICATE_TITLE_JACCARD = 0.8

_TITLE_PUNCTUATION = ".,;:!?()[]\"'"


def _title_words(title: str) -> List[str]:
    return [w.strip(_TITLE_PUNCTUATION) for w in title.lower().split()]


def basic_keyword_score(product: Product, terms: Sequence[str]) -> float:
    """Sum of per-term scores: exact word 2.0, inside a longer word 1.5, substring 1.0."""
    title_lower = product.title.lower()
    title_words = set(_title_words(product.title))
    score = 0.0

    for term in terms:
        term_lower = term.lower().strip()
        if not term_lower:
            continue

        if term_lower in title_words:
            score += EXACT_WORD_SCORE
        elif any(len(word) > len(term_lower) and term_lower in word for word in title_words):
            score += COMPOUND_WORD_SCORE
        elif term_lower in title_lower:
            score += SUBSTRING_SCORE

    return score


def search_products_with_categories(
    products: Sequence[Product],
    terms: Sequence[str],
    categories: Sequence[str],
    tier: MatchTier,
    threshold: float,
) -> List[Candidate]:
    """Keyword-score every in-category product; keep those at or over the threshold."""
    if not terms:
        return []

    candidates = []
    in_category = 0

    for index, product in enumerate(products):
        if categories and product.category not in categories:
            continue
        in_category += 1

        score = basic_keyword_score(product, terms)
        if score >= threshold:
            candidates.append(Candidate(product_index=index, product=product, score=score, tier=tier))

    logger.info(
        f"[TIER-SEARCH] {tier.value}: {in_category} products in categories, {len(candidates)} matches"
    )
    return candidates


def attribute_bonus(product: Product, item: ShoppingItem) -> float:
    title_lower = product.title.lower()
    bonus = 0.0

    for attribute in item.attributes:
        attribute = attribute.lower()
        for aliases, markers, value in ATTRIBUTE_BONUSES:
            if attribute in aliases:
                if any(marker in title_lower for marker in markers):
                    bonus += value
                break

    return bonus


def size_bonus(product: Product, item: ShoppingItem) -> float:
    """+0.5 when the request is within 0.5x-2x of the pack, -1.0 beyond 10x."""
    pack = parse_volume(f"{product.title} {product.volume}")
    if pack is None:
        return 0.0

    needed = convert_to_comparable(item.amount, item.unit)
    packed = convert_to_comparable(pack.amount, pack.unit)
    if not needed or not packed:
        return 0.0

    ratio = needed / packed
    if 0.5 <= ratio <= 2.0:
        return SIZE_MATCH_BONUS
    if ratio > 10:
        return OVERSIZED_REQUEST_PENALTY
    return 0.0


def calculate_smart_score(candidate: Candidate, item: ShoppingItem) -> float:
    weighted = candidate.score * TIER_WEIGHTS.get(candidate.tier, 1.0)
    return weighted + attribute_bonus(candidate.product, item) + size_bonus(candidate.product, item)


def title_jaccard(a: str, b: str) -> float:
    tokens_a, tokens_b = set(tokenize(a)), set(tokenize(b))
    if not tokens_a and not tokens_b:
        return 1.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def deduplicate_by_title(candidates: List[Candidate]) -> List[Candidate]:
    """Collapse near-identical titles, keeping the first (best) occurrence."""
    kept: List[Candidate] = []
    for candidate in candidates:
        if any(
            title_jaccard(candidate.product.title, other.product.title) > DUPLICATE_TITLE_JACCARD
            for other in kept
        ):
            continue
        kept.append(candidate)
    return kept


def rank_candidates(candidates: List[Candidate], item: ShoppingItem) -> List[Candidate]:
    """Smart-score, sort best first and collapse duplicates."""
    for candidate in candidates:
        candidate.score = calculate_smart_score(candidate, item)
        candidate.breakdown.final = candidate.score

    ranked = sorted(candidates, key=lambda c: c.score, reverse=True)
    return deduplicate_by_title(ranked)

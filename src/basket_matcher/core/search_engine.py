"""
Multi-signal product search over the catalog.

Implements query preprocessing and expansion, candidate retrieval
(TF-IDF, fuzzy, exact, attribute, semantic-proxy and category signals),
weighted rank fusion, brand/category diversification and quality
filtering.
"""

import logging
import re
import unicodedata
from typing import Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from basket_matcher.core.catalog import CatalogError, category_stats
from basket_matcher.core.config import LOG_DATEFMT, LOG_FORMAT, LOG_LEVEL
from basket_matcher.core.search_index import LexicalIndex, tokenize
from basket_matcher.core.similarity import fuzzy_score
from basket_matcher.models.candidate import Candidate, MatchTier, RelevanceBreakdown
from basket_matcher.models.product import Product

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
logger = logging.getLogger(__name__)

SemanticScorer = Callable[[str, Product], float]

MAX_QUERY_VARIANTS = 5
VARIANT_DISCOUNT = 0.8
PRELIMINARY_MIN_SCORE = 0.1
QUALITY_MIN_SCORE = 0.05
CATEGORY_OVERRIDE_SCORE = 0.8
QUALITY_FUZZY_OVERRIDE = 0.3

FUSION_WEIGHTS = {
    "exact": 0.35,
    "tfidf": 0.25,
    "fuzzy": 0.15,
    "semantic": 0.10,
    "attribute": 0.10,
    "category": 0.05,
}
TITLE_BOOST = 1.2
BRAND_BOOST = 1.1

# Diversification
ALWAYS_KEEP = 3
MIN_DIVERSE_RESULTS = 10
MAX_DIVERSE_RESULTS = 20
DIVERSITY_DROP_SCORE = 0.1
BRAND_PENALTY = 0.5
CATEGORY_PENALTY = 0.3

ATTRIBUTE_KEYWORDS = frozenset({
    "bio", "organic", "vollkorn", "whole", "wheat", "fresh", "frisch",
    "natural", "natur", "premium", "extra", "virgin", "cold", "pressed",
})

SEMANTIC_GROUPS = {
    "produce": ("fresh", "vegetable", "fruit", "organic", "bio"),
    "dairy": ("milk", "cheese", "yogurt", "butter", "cream"),
    "protein": ("meat", "fish", "tofu", "protein", "chicken"),
    "grains": ("bread", "pasta", "rice", "wheat", "flour", "cereal"),
}

BOOST_BRANDS = ("bio", "rewe", "ja!", "edeka")
KNOWN_BRANDS = ("REWE", "ja!", "Bio", "EDEKA", "K-Classic", "Gut&Günstig")

# Keys are ASCII-folded so both spellings hit the same entry.
SYNONYMS = {
    "tomate": ["tomato", "tomaten"],
    "tomato": ["tomate", "tomaten"],
    "brokkoli": ["broccoli"],
    "broccoli": ["brokkoli"],
    "nudeln": ["pasta", "spaghetti", "noodles"],
    "pasta": ["nudeln", "spaghetti", "noodles"],
    "milch": ["milk"],
    "milk": ["milch"],
    "kaese": ["cheese"],
    "cheese": ["käse"],
    "bio": ["organic", "biologisch"],
    "organic": ["bio", "biologisch"],
    "vollkorn": ["wholemeal", "whole grain", "whole wheat"],
    "wholemeal": ["vollkorn", "whole grain"],
    "zwiebel": ["onion", "zwiebeln"],
    "onion": ["zwiebel", "zwiebeln"],
    "haehnchen": ["chicken", "huhn"],
    "chicken": ["hähnchen", "huhn"],
    "tofu": ["sojatofu"],
}

_FOLD = (("ä", "ae"), ("ö", "oe"), ("ü", "ue"), ("ß", "ss"))
_UNFOLD = (("ae", "ä"), ("oe", "ö"), ("ue", "ü"))
_PUNCTUATION = re.compile(r"[^\w\s-]")
_WHITESPACE = re.compile(r"\s+")


class SearchConfig(BaseModel):
    max_results: int = Field(default=10, ge=1)
    fuzzy_threshold: float = Field(default=0.3, ge=0, le=1)
    enable_semantic_search: bool = True
    diversity_factor: float = Field(default=0.3, ge=0, le=1)
    query_expansion: bool = True


def fold_diacritics(text: str) -> str:
    """Fold German umlauts to their two-letter forms and drop other accents."""
    for accented, plain in _FOLD:
        text = text.replace(accented, plain)
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def restore_diacritics(text: str) -> str:
    for plain, accented in _UNFOLD:
        text = text.replace(plain, accented)
    return text


def preprocess_query(query: str) -> str:
    processed = unicodedata.normalize("NFC", query.lower())
    processed = _PUNCTUATION.sub(" ", processed)
    return _WHITESPACE.sub(" ", processed).strip()


def query_spellings(processed: str) -> List[str]:
    """The preprocessed query and its other diacritic spelling (folded or re-accented)."""
    folded = fold_diacritics(processed)
    other = folded if folded != processed else restore_diacritics(processed)
    return [processed] if other == processed else [processed, other]


def _replace_term(query: str, term: str, replacement: str) -> str:
    return " ".join(replacement if word == term else word for word in query.split(" "))


def expand_query(query: str) -> List[str]:
    """
    Up to five variants of an already preprocessed query: the query
    itself, synonym substitutions and naive singular/plural toggles.
    Diacritic spellings are handled by ``query_spellings``.
    """
    expanded = [query]

    def add(variant: str):
        if variant and variant not in expanded:
            expanded.append(variant)

    terms = query.split(" ")
    for term in terms:
        for synonym in SYNONYMS.get(fold_diacritics(term), []):
            add(_replace_term(query, term, synonym))

    for term in terms:
        if len(term) > 4:
            toggled = term[:-1] if term.endswith("s") else term + "s"
            add(_replace_term(query, term, toggled))

    return expanded[:MAX_QUERY_VARIANTS]


def keyword_group_similarity(query: str, product: Product) -> float:
    """
    Semantic-proxy signal: +0.3 for every keyword group that both the
    query and the product text touch. Not an embedding model.
    """
    product_text = product.search_text.lower()
    query_lower = query.lower()

    score = 0.0
    for keywords in SEMANTIC_GROUPS.values():
        query_in_group = any(kw in query_lower for kw in keywords)
        product_in_group = any(kw in product_text for kw in keywords)
        if query_in_group and product_in_group:
            score += 0.3

    return min(1.0, score)


def exact_match_score(terms: Sequence[str], product: Product) -> float:
    if not terms:
        return 0.0

    product_text = product.search_text.lower()
    product_words = set(tokenize(product_text))

    word_score = sum(1 for term in terms if term in product_words) / len(terms)
    phrase_bonus = 0.5 if " ".join(terms) in product_text else 0.0

    return min(1.0, word_score + phrase_bonus)


def attribute_score(terms: Sequence[str], product: Product) -> float:
    product_text = product.search_text.lower()
    score = sum(0.2 for term in terms if term in ATTRIBUTE_KEYWORDS and term in product_text)
    return min(1.0, score)


def determine_tier(breakdown: RelevanceBreakdown) -> MatchTier:
    if breakdown.exact > 0.7:
        return MatchTier.TIER1
    if breakdown.tfidf > 0.5 or breakdown.fuzzy > 0.6:
        return MatchTier.TIER2
    return MatchTier.TIER3


def extract_brand(title: str) -> str:
    for brand in KNOWN_BRANDS:
        if brand in title:
            return brand
    return "Other"


def fuse_scores(breakdown: RelevanceBreakdown) -> float:
    return (
        breakdown.exact * FUSION_WEIGHTS["exact"]
        + breakdown.tfidf * FUSION_WEIGHTS["tfidf"]
        + breakdown.fuzzy * FUSION_WEIGHTS["fuzzy"]
        + breakdown.semantic * FUSION_WEIGHTS["semantic"]
        + breakdown.attribute * FUSION_WEIGHTS["attribute"]
        + breakdown.category * FUSION_WEIGHTS["category"]
    )


def apply_ranking_fusion(candidates: List[Candidate], query: str) -> List[Candidate]:
    """Weighted linear fusion plus title and brand boosts, best first."""
    query_lower = query.lower()

    for candidate in candidates:
        title_lower = candidate.product.title.lower()
        score = fuse_scores(candidate.breakdown)

        if query_lower and query_lower in title_lower:
            score *= TITLE_BOOST

        for brand in BOOST_BRANDS:
            if brand in query_lower and brand in title_lower:
                score *= BRAND_BOOST

        candidate.breakdown.final = score
        candidate.score = score

    return sorted(candidates, key=lambda c: c.score, reverse=True)


def diversify_results(candidates: List[Candidate], diversity_factor: float) -> List[Candidate]:
    """
    Penalise repeated brands and categories below the top three.

    A candidate is dropped only when its penalised score is under 0.1 and
    ten candidates are already collected; collection stops at twenty.
    """
    if diversity_factor <= 0 or len(candidates) <= 5:
        return candidates

    diversified: List[Candidate] = []
    seen_brands = set()
    seen_categories = set()

    for candidate in candidates:
        brand = extract_brand(candidate.product.title)
        category = candidate.product.category

        if len(diversified) < ALWAYS_KEEP:
            diversified.append(candidate)
            seen_brands.add(brand)
            seen_categories.add(category)
            continue

        penalty = (BRAND_PENALTY if brand in seen_brands else 0.0) + (
            CATEGORY_PENALTY if category in seen_categories else 0.0
        )
        adjusted = candidate.score * (1 - penalty * diversity_factor)

        if adjusted < DIVERSITY_DROP_SCORE and len(diversified) >= MIN_DIVERSE_RESULTS:
            continue

        candidate.score = adjusted
        diversified.append(candidate)
        seen_brands.add(brand)
        seen_categories.add(category)

        if len(diversified) >= MAX_DIVERSE_RESULTS:
            break

    return sorted(diversified, key=lambda c: c.score, reverse=True)


def apply_quality_filters(
    candidates: List[Candidate], query: str, categories: Sequence[str]
) -> List[Candidate]:
    """Drop weak, off-category and textually unrelated candidates."""
    query_terms = tokenize(fold_diacritics(query.lower()))
    kept = []

    for candidate in candidates:
        if candidate.score < QUALITY_MIN_SCORE:
            continue

        if categories and candidate.product.category not in categories:
            # High scorers are tolerated as likely mislabeled catalog entries.
            if candidate.score < CATEGORY_OVERRIDE_SCORE:
                continue

        product_text = fold_diacritics(candidate.product.search_text.lower())
        has_query_term = any(term in product_text for term in query_terms)
        if not has_query_term and candidate.breakdown.fuzzy <= QUALITY_FUZZY_OVERRIDE:
            continue

        kept.append(candidate)

    return kept


class AdvancedSearchEngine:
    """Ranks catalog products against free-text queries."""

    def __init__(self, products: Sequence[Product], semantic_scorer: Optional[SemanticScorer] = None):
        if not products:
            raise CatalogError("Cannot build a search engine over an empty catalog")

        self.products = tuple(products)
        self.index = LexicalIndex.build(self.products)
        self.semantic_scorer = semantic_scorer or keyword_group_similarity

        logger.info(f"[SEARCH-ENGINE] Initialized with {len(self.products)} products")
        logger.info(f"[SEARCH-ENGINE] Product distribution: {category_stats(self.products)}")

    def search(
        self,
        query: str,
        categories: Sequence[str] = (),
        config: Optional[SearchConfig] = None,
    ) -> List[Candidate]:
        config = config or SearchConfig()
        categories = list(categories)

        logger.info(f"[SEARCH-ENGINE] Search '{query}' in categories {categories}")

        processed = preprocess_query(query)
        if not processed:
            return []

        # Both spellings are primary queries; expansion only adds synonyms and plurals.
        spellings = query_spellings(processed)
        extras: List[str] = []
        if config.query_expansion:
            for spelling in spellings:
                extras.extend(v for v in expand_query(spelling)[1:] if v not in spellings + extras)
        variants = spellings + extras[:MAX_QUERY_VARIANTS - 1]

        merged: Dict[int, Candidate] = {}
        for variant in variants:
            boost = 1.0 if variant in spellings else VARIANT_DISCOUNT
            fused = apply_ranking_fusion(self.retrieve_candidates(variant, categories, config), variant)

            for candidate in fused:
                candidate.score *= boost
                candidate.breakdown.final = candidate.score
                existing = merged.get(candidate.product_index)
                if existing is None or candidate.score > existing.score:
                    merged[candidate.product_index] = candidate

        ranked = sorted(merged.values(), key=lambda c: c.score, reverse=True)
        ranked = diversify_results(ranked, config.diversity_factor)
        ranked = apply_quality_filters(ranked, processed, categories)

        logger.info(f"[SEARCH-ENGINE] {len(ranked)} results for '{query}' ({len(variants)} variants)")
        return ranked[:config.max_results]

    def retrieve_candidates(
        self, query: str, categories: Sequence[str], config: SearchConfig
    ) -> List[Candidate]:
        """Score every in-category product and keep those with a usable signal."""
        terms = tokenize(query)
        candidates = []

        for index, product in enumerate(self.products):
            in_category = product.category in categories
            if categories and not in_category:
                continue

            breakdown = RelevanceBreakdown(
                tfidf=self.index.tfidf(terms, index),
                fuzzy=fuzzy_score(query, product.search_text, config.fuzzy_threshold),
                exact=exact_match_score(terms, product),
                attribute=attribute_score(terms, product),
                category=1.0 if in_category else 0.5,
            )

            preliminary = max(breakdown.tfidf, breakdown.fuzzy, breakdown.exact)
            if preliminary < PRELIMINARY_MIN_SCORE:
                continue

            if config.enable_semantic_search:
                breakdown.semantic = self.semantic_scorer(query, product)

            candidates.append(
                Candidate(
                    product_index=index,
                    product=product,
                    score=preliminary,
                    tier=determine_tier(breakdown),
                    breakdown=breakdown,
                )
            )

        return candidates

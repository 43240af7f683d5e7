"""
Core module initialization - deterministic engine pieces and collaborator client.
"""

from .catalog import CatalogError, validate_products, build_catalog, load_products, category_stats

from .volume_parser import (
    normalize_unit,
    parse_volume,
    convert_to_comparable,
    calculate_units_needed,
    display_quantity,
)

from .similarity import (
    levenshtein_similarity,
    jaro_similarity,
    jaro_winkler_similarity,
    ngram_similarity,
    weighted_substring_match,
    fuzzy_score,
)

from .search_index import LexicalIndex, tokenize
from .search_engine import AdvancedSearchEngine, SearchConfig

from .tiered_search import (
    basic_keyword_score,
    search_products_with_categories,
    calculate_smart_score,
    rank_candidates,
)

from .categories import STORE_CATEGORIES, DEFAULT_CATEGORIES, fallback_categories, filter_categories
from .fallbacks import fallback_parse, generate_search_terms
from .quantity import deterministic_match, estimated_match

from .llm_engine import LLMEngine, parse_json_from_llm_output

from .retry_utils import (
    retry_with_backoff,
    RetryConfig,
    LLMUnavailableError,
    TransientError,
    PermanentError,
)

__all__ = [
    # Catalog
    "CatalogError",
    "validate_products",
    "build_catalog",
    "load_products",
    "category_stats",
    # Unit parser
    "normalize_unit",
    "parse_volume",
    "convert_to_comparable",
    "calculate_units_needed",
    "display_quantity",
    # Similarity primitives
    "levenshtein_similarity",
    "jaro_similarity",
    "jaro_winkler_similarity",
    "ngram_similarity",
    "weighted_substring_match",
    "fuzzy_score",
    # Search
    "LexicalIndex",
    "tokenize",
    "AdvancedSearchEngine",
    "SearchConfig",
    "basic_keyword_score",
    "search_products_with_categories",
    "calculate_smart_score",
    "rank_candidates",
    # Fallbacks
    "STORE_CATEGORIES",
    "DEFAULT_CATEGORIES",
    "fallback_categories",
    "filter_categories",
    "fallback_parse",
    "generate_search_terms",
    # Quantity
    "deterministic_match",
    "estimated_match",
    # LLM
    "LLMEngine",
    "parse_json_from_llm_output",
    # Retry and errors
    "retry_with_backoff",
    "RetryConfig",
    "LLMUnavailableError",
    "TransientError",
    "PermanentError",
]

"""
String similarity primitives used by the fuzzy relevance signal.
All functions are pure and return a score in [0, 1].
"""

from typing import Set

from rapidfuzz.distance import Jaro, JaroWinkler, Levenshtein

DEFAULT_NGRAM_SIZE = 3


def levenshtein_similarity(s1: str, s2: str) -> float:
    """1 - edit_distance / max(len); two empty strings are identical."""
    if not s1 and not s2:
        return 1.0
    return Levenshtein.normalized_similarity(s1, s2)


def jaro_similarity(s1: str, s2: str) -> float:
    if not s1 and not s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    return Jaro.similarity(s1, s2)


def jaro_winkler_similarity(s1: str, s2: str, prefix_weight: float = 0.1) -> float:
    """Jaro similarity with a bonus for up to four shared leading characters."""
    if not s1 and not s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    return JaroWinkler.similarity(s1, s2, prefix_weight=prefix_weight)


def get_ngrams(text: str, n: int = DEFAULT_NGRAM_SIZE) -> Set[str]:
    return {text[i:i + n] for i in range(len(text) - n + 1)}


def ngram_similarity(s1: str, s2: str, n: int = DEFAULT_NGRAM_SIZE) -> float:
    """Jaccard similarity of the character n-gram sets."""
    ngrams1 = get_ngrams(s1, n)
    ngrams2 = get_ngrams(s2, n)

    if not ngrams1 and not ngrams2:
        return 1.0
    if not ngrams1 or not ngrams2:
        return 0.0

    return len(ngrams1 & ngrams2) / len(ngrams1 | ngrams2)


def weighted_substring_match(query: str, text: str) -> float:
    """
    Reward the query appearing inside the text.

    A contiguous hit scores by position (earlier is better) and by how much
    of the text it covers; otherwise the share of query terms found as
    substrings counts, damped by 0.8.
    """
    if not query or not text:
        return 0.0

    max_score = 0.0

    index = text.find(query)
    if index >= 0:
        position_weight = 1.0 - (index / len(text)) * 0.5
        length_weight = len(query) / len(text)
        max_score = position_weight * length_weight

    query_terms = query.split()
    if not query_terms:
        return max_score

    term_matches = sum(1 for term in query_terms if term in text)
    term_score = term_matches / len(query_terms) * 0.8

    return min(1.0, max(max_score, term_score))


def fuzzy_score(query: str, text: str, threshold: float) -> float:
    """Best of the four primitives, or 0 when it falls below ``threshold``."""
    query_lower = query.lower()
    text_lower = text.lower()

    best = max(
        levenshtein_similarity(query_lower, text_lower),
        jaro_winkler_similarity(query_lower, text_lower),
        ngram_similarity(query_lower, text_lower),
        weighted_substring_match(query_lower, text_lower),
    )
    return best if best >= threshold else 0.0

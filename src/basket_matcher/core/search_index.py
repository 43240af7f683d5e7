"""
Inverted index and term statistics over the product catalog.
Built once per engine; never updated afterwards.
"""

import logging
import math
import re
from collections import Counter
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Sequence, Tuple

from basket_matcher.core.config import LOG_DATEFMT, LOG_FORMAT, LOG_LEVEL
from basket_matcher.models.product import Product

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
logger = logging.getLogger(__name__)

_NON_WORD = re.compile(r"[^\w]+")


def tokenize(text: str) -> List[str]:
    """Lowercase, split on non-word characters, drop one-letter tokens."""
    return [token for token in _NON_WORD.split(text.lower()) if len(token) > 1]


class LexicalIndex:
    """Read-only term frequency, document frequency and postings tables."""

    __slots__ = ("_term_frequency", "_doc_lengths", "_document_frequency", "_postings", "_size")

    def __init__(
        self,
        term_frequency: Tuple[Mapping[str, int], ...],
        document_frequency: Mapping[str, int],
        postings: Mapping[str, FrozenSet[int]],
    ):
        self._term_frequency = term_frequency
        self._doc_lengths = tuple(sum(tf.values()) for tf in term_frequency)
        self._document_frequency = document_frequency
        self._postings = postings
        self._size = len(term_frequency)

    @classmethod
    def build(cls, products: Sequence[Product]) -> "LexicalIndex":
        logger.info(f"[LEXICAL-INDEX] Building index over {len(products)} products")

        term_frequency: List[Mapping[str, int]] = []
        document_frequency: Counter = Counter()
        postings: Dict[str, set] = {}

        for index, product in enumerate(products):
            terms = tokenize(product.search_text)
            term_frequency.append(MappingProxyType(dict(Counter(terms))))

            for term in set(terms):
                document_frequency[term] += 1
                postings.setdefault(term, set()).add(index)

        frozen_postings = {term: frozenset(ids) for term, ids in postings.items()}

        logger.info(f"[LEXICAL-INDEX] Index built: {len(document_frequency)} unique terms")
        return cls(
            term_frequency=tuple(term_frequency),
            document_frequency=MappingProxyType(dict(document_frequency)),
            postings=MappingProxyType(frozen_postings),
        )

    def __len__(self) -> int:
        return self._size

    @property
    def vocabulary_size(self) -> int:
        return len(self._document_frequency)

    def term_frequency(self, product_index: int, term: str) -> int:
        return self._term_frequency[product_index].get(term, 0)

    def doc_length(self, product_index: int) -> int:
        return self._doc_lengths[product_index]

    def document_frequency(self, term: str) -> int:
        return self._document_frequency.get(term, 0)

    def idf(self, term: str) -> float:
        df = self._document_frequency.get(term) or 1
        return math.log(self._size / df) if self._size else 0.0

    def postings(self, term: str) -> FrozenSet[int]:
        return self._postings.get(term, frozenset())

    def candidates_for(self, terms: Iterable[str]) -> FrozenSet[int]:
        """Union of the postings of every term."""
        result: set = set()
        for term in terms:
            result |= self._postings.get(term, frozenset())
        return frozenset(result)

    def tfidf(self, terms: Sequence[str], product_index: int) -> float:
        """
        Length-normalised TF-IDF of ``terms`` against one product.

        tf is the raw count over the document length; the sum is scaled by
        1/sqrt(document length) so long titles do not win on volume alone.
        """
        doc_length = self._doc_lengths[product_index]
        if doc_length == 0:
            return 0.0

        tf_table = self._term_frequency[product_index]
        score = 0.0
        for term in terms:
            count = tf_table.get(term, 0)
            if count == 0:
                continue
            score += (count / doc_length) * self.idf(term)

        return score / math.sqrt(doc_length)

"""
Per-item matching graph built with LangGraph.

categorize → expand_terms → search_tier1 → [search_tier2] → [search_tier3]
→ [lexical_fallback] → rank → [rerank] → resolve_quantity

Every collaborator stage degrades to its deterministic fallback; an item
that runs out of candidates or quantities ends with a failure reason.
"""

import logging
from typing import Optional

from langgraph.graph import END, StateGraph

from basket_matcher.core.categories import STORE_CATEGORIES, fallback_categories, filter_categories
from basket_matcher.core.config import LOG_DATEFMT, LOG_FORMAT, LOG_LEVEL
from basket_matcher.core.fallbacks import generate_search_terms
from basket_matcher.core.llm_engine import LLMEngine
from basket_matcher.core.quantity import deterministic_match, estimated_match
from basket_matcher.core.retry_utils import LLMUnavailableError
from basket_matcher.core.search_engine import AdvancedSearchEngine
from basket_matcher.core.tiered_search import (
    TIER2_ESCALATION_BELOW,
    TIER3_ESCALATION_BELOW,
    TIER_THRESHOLDS,
    rank_candidates,
    search_products_with_categories,
)
from basket_matcher.models.candidate import MatchTier
from basket_matcher.models.grocery_list import ShoppingItem
from basket_matcher.models.state import ItemMatchState

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
logger = logging.getLogger(__name__)

RERANK_TRIGGER = 10
RERANK_SHORTLIST = 15
DEFAULT_SHORTLIST = 5


def route_after_tier1(state: ItemMatchState) -> str:
    if len(state.candidates) < TIER2_ESCALATION_BELOW:
        return "search_tier2"
    return "rank"


def route_after_tier2(state: ItemMatchState) -> str:
    if len(state.candidates) < TIER3_ESCALATION_BELOW:
        return "search_tier3"
    return "rank"


def route_after_tier3(state: ItemMatchState) -> str:
    if not state.candidates:
        return "lexical_fallback"
    return "rank"


def route_after_rank(state: ItemMatchState) -> str:
    if not state.ranked:
        logger.info(f"[ITEM-GRAPH] No candidates for '{state.item.original_text}'")
        return END
    if len(state.ranked) > RERANK_TRIGGER:
        return "rerank"
    return "resolve_quantity"


class ItemMatcher:
    """Runs one shopping item through the tiered matching graph."""

    def __init__(self, engine: AdvancedSearchEngine, llm: Optional[LLMEngine] = None):
        self.engine = engine
        self.llm = llm
        self.graph = self.build_graph()

    def build_graph(self):
        workflow = StateGraph(ItemMatchState)

        workflow.add_node("categorize", self.categorize)
        workflow.add_node("expand_terms", self.expand_terms)
        workflow.add_node("search_tier1", self.search_tier1)
        workflow.add_node("search_tier2", self.search_tier2)
        workflow.add_node("search_tier3", self.search_tier3)
        workflow.add_node("lexical_fallback", self.lexical_fallback)
        workflow.add_node("rank", self.rank)
        workflow.add_node("rerank", self.rerank)
        workflow.add_node("resolve_quantity", self.resolve_quantity)

        workflow.set_entry_point("categorize")

        workflow.add_edge("categorize", "expand_terms")
        workflow.add_edge("expand_terms", "search_tier1")
        workflow.add_conditional_edges("search_tier1", route_after_tier1)
        workflow.add_conditional_edges("search_tier2", route_after_tier2)
        workflow.add_conditional_edges("search_tier3", route_after_tier3)
        workflow.add_edge("lexical_fallback", "rank")
        workflow.add_conditional_edges("rank", route_after_rank)
        workflow.add_edge("rerank", "resolve_quantity")
        workflow.add_edge("resolve_quantity", END)

        return workflow.compile()

    def match(self, item: ShoppingItem) -> ItemMatchState:
        logger.info(f"[ITEM-GRAPH] Matching '{item.original_text}'")
        result = self.graph.invoke(ItemMatchState(item=item))

        # LangGraph returns dict
        final_state = result if isinstance(result, ItemMatchState) else ItemMatchState(**result)

        if final_state.match is None and final_state.failure_reason is None:
            final_state.failure_reason = "no candidates"
        return final_state

    # ---- nodes ----

    def categorize(self, state: ItemMatchState) -> ItemMatchState:
        categories = []
        if self.llm is not None:
            try:
                selection = self.llm.determine_categories(state.item, STORE_CATEGORIES)
                categories = filter_categories(selection.categories)
                if not categories:
                    logger.warning(
                        f"[ITEM-GRAPH] Categories {selection.categories} not in vocabulary, using keyword table"
                    )
            except LLMUnavailableError as e:
                logger.warning(f"[ITEM-GRAPH] Categorization failed ({e.message}), using keyword table")
                state.degrade("categorize")

        if not categories:
            categories = fallback_categories(state.item)

        state.target_categories = categories
        logger.info(f"[ITEM-GRAPH] Target categories: {categories}")
        return state

    def expand_terms(self, state: ItemMatchState) -> ItemMatchState:
        tiers = None
        if self.llm is not None:
            try:
                tiers = self.llm.generate_search_tiers(state.item)
                if not (tiers.tier1 or tiers.tier2 or tiers.tier3):
                    logger.warning("[ITEM-GRAPH] Collaborator returned no search terms, using rule-based terms")
                    tiers = None
            except LLMUnavailableError as e:
                logger.warning(f"[ITEM-GRAPH] Term expansion failed ({e.message}), using rule-based terms")
                state.degrade("expand")

        state.search_tiers = tiers or generate_search_terms(state.item)
        return state

    def _search_tier(self, state: ItemMatchState, tier: MatchTier) -> ItemMatchState:
        terms = getattr(state.search_tiers, tier.value) if state.search_tiers else []
        found = search_products_with_categories(
            self.engine.products, terms, state.target_categories, tier, TIER_THRESHOLDS[tier]
        )
        state.candidates.extend(found)
        return state

    def search_tier1(self, state: ItemMatchState) -> ItemMatchState:
        return self._search_tier(state, MatchTier.TIER1)

    def search_tier2(self, state: ItemMatchState) -> ItemMatchState:
        return self._search_tier(state, MatchTier.TIER2)

    def search_tier3(self, state: ItemMatchState) -> ItemMatchState:
        return self._search_tier(state, MatchTier.TIER3)

    def lexical_fallback(self, state: ItemMatchState) -> ItemMatchState:
        """Keyword tiers found nothing: fall back to the multi-signal search engine."""
        logger.info(f"[ITEM-GRAPH] Keyword tiers empty, running lexical search for '{state.item.item}'")
        results = self.engine.search(state.item.item, state.target_categories)
        # Whole-text fuzzy similarity alone is too weak to stand on here.
        state.candidates.extend(
            c for c in results if c.breakdown.exact > 0 or c.tier != MatchTier.TIER3
        )
        return state

    def rank(self, state: ItemMatchState) -> ItemMatchState:
        ranked = rank_candidates(state.candidates, state.item)
        if len(ranked) <= RERANK_TRIGGER:
            ranked = ranked[:DEFAULT_SHORTLIST]
        state.ranked = ranked
        return state

    def rerank(self, state: ItemMatchState) -> ItemMatchState:
        shortlist = state.ranked[:RERANK_SHORTLIST]
        state.ranked = shortlist

        if self.llm is None:
            return state

        try:
            result = self.llm.quality_filter(shortlist, state.item)
        except LLMUnavailableError as e:
            logger.warning(f"[ITEM-GRAPH] Quality filter failed ({e.message}), keeping fused ranking")
            state.degrade("rerank")
            return state

        selected, seen = [], set()
        for selection in result.selected_candidates:
            if selection.index < len(shortlist) and selection.index not in seen:
                seen.add(selection.index)
                candidate = shortlist[selection.index]
                candidate.reasoning = selection.reasoning or None
                selected.append(candidate)

        if selected:
            logger.info(f"[ITEM-GRAPH] Quality filter applied: {result.overall_reasoning}")
            state.ranked = selected
        else:
            logger.warning("[ITEM-GRAPH] Quality filter selected nothing usable, keeping fused ranking")
        return state

    def resolve_quantity(self, state: ItemMatchState) -> ItemMatchState:
        best = state.ranked[0]

        match = deterministic_match(state.item, best)
        if match is None:
            if self.llm is None:
                state.failure_reason = "quantity could not be resolved"
                logger.info(
                    f"[ITEM-GRAPH] Units incompatible for '{best.product.title}' and no estimator configured"
                )
                return state
            try:
                match = estimated_match(best, self.llm.calculate_quantity(state.item, best.product))
            except LLMUnavailableError as e:
                logger.warning(f"[ITEM-GRAPH] Quantity estimate failed ({e.message}), item not found")
                state.degrade("estimate")
                state.failure_reason = "quantity could not be resolved"
                return state

        state.match = match
        logger.info(
            f"[ITEM-GRAPH] Matched '{state.item.original_text}' -> {match.product.title} "
            f"x{match.units_needed} ({match.tier.value})"
        )
        return state

import pytest

from basket_matcher.core.catalog import CatalogError
from basket_matcher.core.search_engine import (
    CATEGORY_OVERRIDE_SCORE,
    AdvancedSearchEngine,
    SearchConfig,
    apply_quality_filters,
    apply_ranking_fusion,
    determine_tier,
    diversify_results,
    expand_query,
    extract_brand,
    fold_diacritics,
    fuse_scores,
    preprocess_query,
    query_spellings,
)
from basket_matcher.models.candidate import MatchTier, RelevanceBreakdown
from conftest import make_candidate


def test_empty_catalog_is_rejected():
    with pytest.raises(CatalogError):
        AdvancedSearchEngine([])


def test_preprocess_query():
    assert preprocess_query("  Bio-Tofu!!  natur ") == "bio-tofu natur"


def test_fold_diacritics():
    assert fold_diacritics("hähnchen käse soße") == "haehnchen kaese sosse"


def test_query_spellings():
    assert query_spellings("käse") == ["käse", "kaese"]
    assert query_spellings("kaese") == ["kaese", "käse"]
    assert query_spellings("tofu") == ["tofu"]


def test_expand_query():
    variants = expand_query("käse")
    assert variants[0] == "käse"
    assert "cheese" in variants
    assert "kaese" not in variants
    assert len(expand_query("bio brokkoli nudeln tomate zwiebel")) <= 5


def test_expand_query_synonyms():
    assert "broccoli" in expand_query("brokkoli")


def test_determine_tier():
    assert determine_tier(RelevanceBreakdown(exact=0.8)) == MatchTier.TIER1
    assert determine_tier(RelevanceBreakdown(tfidf=0.6)) == MatchTier.TIER2
    assert determine_tier(RelevanceBreakdown(fuzzy=0.7)) == MatchTier.TIER2
    assert determine_tier(RelevanceBreakdown(fuzzy=0.5)) == MatchTier.TIER3


def test_fuse_scores_weights_sum_to_one():
    full = RelevanceBreakdown(tfidf=1, fuzzy=1, exact=1, attribute=1, semantic=1, category=1)
    assert fuse_scores(full) == pytest.approx(1.0)
    assert fuse_scores(RelevanceBreakdown(exact=1)) == pytest.approx(0.35)


def test_ranking_fusion_title_boost():
    in_title = make_candidate("Tofu Natur", 0)
    elsewhere = make_candidate("Sojaprodukt", 0)
    for candidate in (in_title, elsewhere):
        candidate.breakdown.exact = 1.0

    ranked = apply_ranking_fusion([elsewhere, in_title], "tofu")
    assert ranked[0] is in_title
    assert in_title.score == pytest.approx(0.35 * 1.2)
    assert elsewhere.score == pytest.approx(0.35)


def test_extract_brand():
    assert extract_brand("REWE Bio Tofu") == "REWE"
    assert extract_brand("ja! Spaghetti 500g") == "ja!"
    assert extract_brand("Barilla Penne") == "Other"


def test_diversification_introduces_other_brands():
    candidates = [make_candidate(f"REWE Tofu {i}", 1.0 - i * 0.01, index=i) for i in range(5)]
    candidates += [
        make_candidate("ja! Tofu", 0.9, index=5),
        make_candidate("EDEKA Tofu", 0.89, index=6),
    ]

    result = diversify_results(candidates, 0.3)

    assert [c.product.title for c in result[:3]] == ["REWE Tofu 0", "REWE Tofu 1", "REWE Tofu 2"]
    assert len({extract_brand(c.product.title) for c in result}) >= 2
    # fourth REWE entry repeats brand and category: 1 - 0.8 * 0.3
    penalised = next(c for c in result if c.product.title == "REWE Tofu 3")
    assert penalised.score == pytest.approx(0.97 * 0.76)


def test_diversification_skipped_for_short_lists():
    candidates = [make_candidate("REWE Tofu", 1.0, index=i) for i in range(5)]
    assert diversify_results(candidates, 0.3) is candidates
    assert diversify_results(candidates * 2, 0.0) == candidates * 2


def test_diversification_drops_weak_repeats_after_ten():
    candidates = [make_candidate(f"REWE Tofu {i}", 1.0, index=i) for i in range(10)]
    candidates += [make_candidate(f"REWE Tofu {i}", 0.12, index=i) for i in range(10, 15)]

    result = diversify_results(candidates, 0.3)
    assert len(result) == 10


def test_diversification_stops_at_twenty():
    candidates = [make_candidate(f"Tofu {i}", 1.0, category=f"Cat {i}", index=i) for i in range(25)]
    assert len(diversify_results(candidates, 0.3)) == 20


def test_quality_filters():
    weak = make_candidate("Tofu weak", 0.04)
    off_category = make_candidate("Tofu off", 0.5, category="Süßes & Salziges")
    off_category_strong = make_candidate("Tofu strong", 0.9, category="Süßes & Salziges")
    unrelated = make_candidate("Schokolade", 0.5)
    unrelated.breakdown.fuzzy = 0.2
    fuzzy_related = make_candidate("Tfu", 0.5)
    fuzzy_related.breakdown.fuzzy = 0.5

    kept = apply_quality_filters(
        [weak, off_category, off_category_strong, unrelated, fuzzy_related], "tofu", ["Obst & Gemüse"]
    )
    assert kept == [off_category_strong, fuzzy_related]


def test_search_finds_tofu(engine):
    results = engine.search("tofu")
    assert results
    assert "tofu" in results[0].product.title.lower()
    assert len(results) <= SearchConfig().max_results


@pytest.mark.parametrize("query", ["tofu", "brokkoli", "bio", "500g", "käse"])
def test_category_gate(engine, query):
    categories = ["Fleisch & Fisch"]
    for candidate in engine.search(query, categories):
        assert candidate.product.category in categories or candidate.score > CATEGORY_OVERRIDE_SCORE


def test_search_diacritic_variants(engine):
    titles = [c.product.title for c in engine.search("haehnchenbrustfilet", ["Fleisch & Fisch"])]
    assert "Hähnchenbrustfilet 500g" in titles


def test_semantic_scorer_is_pluggable(products):
    engine = AdvancedSearchEngine(products, semantic_scorer=lambda query, product: 0.0)
    assert all(c.breakdown.semantic == 0.0 for c in engine.search("tofu"))


def test_semantic_signal_can_be_disabled(engine):
    results = engine.search("tofu", config=SearchConfig(enable_semantic_search=False))
    assert results
    assert all(c.breakdown.semantic == 0.0 for c in results)


def test_search_blank_query(engine):
    assert engine.search("  !! ") == []


@pytest.mark.parametrize("query", ["kaese", "Käse"])
def test_both_spellings_without_expansion(engine, query):
    results = engine.search(query, config=SearchConfig(query_expansion=False))
    assert results[0].product.title == "Gouda Käse mittelalt 400g"

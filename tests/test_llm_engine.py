import httpx
import ollama
import pytest

from basket_matcher.core.llm_engine import (
    LLMEngine,
    parse_json_from_llm_output,
    validate_llm_output,
)
from basket_matcher.core.retry_utils import (
    LLMUnavailableError,
    PermanentError,
    RetryConfig,
    TransientError,
    retry_with_backoff,
)
from basket_matcher.models.grocery_list import ShoppingItem
from basket_matcher.models.llm import CategorySelection, QualityFilterResult, SearchTiers
from basket_matcher.models.product import Unit
from conftest import make_candidate, make_product

NO_WAIT = RetryConfig(max_retries=2, initial_backoff=0, jitter=False)


class FakeOllamaClient:
    """Replays canned replies; exceptions in the list are raised."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def chat(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return {"message": {"role": "assistant", "content": reply}}


def _engine(*replies):
    client = FakeOllamaClient(replies)
    return LLMEngine(model="test-model", retry_config=NO_WAIT, client=client), client


ITEM = ShoppingItem(item="brokkoli", amount=650, unit=Unit.G, original_text="650g broccoli", attributes=["fresh"])


# =============================
# JSON extraction
# =============================

@pytest.mark.parametrize(
    "text, expected",
    [
        ('{"a": 1}', {"a": 1}),
        ('```json\n{"a": 1}\n```', {"a": 1}),
        ('<think> Here you go: {"a": 1} hope it helps', {"a": 1}),
        ('first {"a": 1} then {"b": 2}', {"a": 1}),
        ("[1, 2]", [1, 2]),
    ],
)
def test_parse_json_from_llm_output(text, expected):
    assert parse_json_from_llm_output(text) == expected


def test_parse_json_returns_none_without_json():
    assert parse_json_from_llm_output("sorry, I cannot help with that") is None


def test_validate_llm_output():
    tiers = validate_llm_output({"tier1": ["tofu"]}, SearchTiers, "expand")
    assert tiers.tier1 == ["tofu"]

    with pytest.raises(TransientError):
        validate_llm_output(None, SearchTiers, "expand")
    with pytest.raises(TransientError) as excinfo:
        validate_llm_output({"categories": []}, CategorySelection, "categorize")
    assert excinfo.value.stage == "categorize"


def test_quality_filter_accepts_camel_case():
    result = QualityFilterResult.model_validate(
        {"selectedCandidates": [{"index": 2, "reasoning": "best"}], "overallReasoning": "ok"}
    )
    assert result.selected_candidates[0].index == 2
    assert result.overall_reasoning == "ok"


# =============================
# Engine calls
# =============================

def test_determine_categories():
    engine, client = _engine('{"categories": ["Obst & Gemüse"], "reasoning": "fresh produce"}')

    selection = engine.determine_categories(ITEM, ["Obst & Gemüse", "Fleisch & Fisch"])

    assert selection.categories == ["Obst & Gemüse"]
    assert client.calls[0]["model"] == "test-model"
    assert client.calls[0]["format"] == "json"
    assert '"Fleisch & Fisch"' in client.calls[0]["messages"][1]["content"]


def test_quality_filter_lists_candidates():
    engine, client = _engine('{"selectedCandidates": [{"index": 1}]}')
    candidates = [make_candidate("Brokkoli 500g", 6.5), make_candidate("Bio Broccoli 500g", 6.0)]

    result = engine.quality_filter(candidates, ITEM)

    prompt = client.calls[0]["messages"][1]["content"]
    assert "0: Brokkoli 500g" in prompt
    assert "1: Bio Broccoli 500g" in prompt
    assert [s.index for s in result.selected_candidates] == [1]


def test_calculate_quantity():
    engine, _ = _engine('{"unitsNeeded": 2, "actualAmount": 1000, "actualUnit": "g", "reasoning": "two packs"}')
    result = engine.calculate_quantity(ITEM, make_product("Brokkoli 500g", volume="500g"))
    assert (result.units_needed, result.actual_amount, result.actual_unit) == (2, 1000, "g")


def test_server_error_is_retried():
    engine, client = _engine(ollama.ResponseError("overloaded", 500), '{"tier1": ["brokkoli"]}')
    assert engine.generate_search_tiers(ITEM).tier1 == ["brokkoli"]
    assert len(client.calls) == 2


def test_rate_limit_is_permanent():
    engine, client = _engine(ollama.ResponseError("too many requests", 429), '{"tier1": ["brokkoli"]}')
    with pytest.raises(PermanentError) as excinfo:
        engine.generate_search_tiers(ITEM)
    assert excinfo.value.retry_possible is False
    assert len(client.calls) == 1


def test_unparsable_output_exhausts_retries():
    engine, client = _engine("not json", "still not json", "nope")
    with pytest.raises(TransientError):
        engine.generate_search_tiers(ITEM)
    assert len(client.calls) == 3


def test_transport_failures_are_retried():
    engine, client = _engine(
        httpx.ReadTimeout("timed out"),
        ConnectionError("refused"),
        '{"categories": ["Obst & Gemüse"]}',
    )
    assert engine.determine_categories(ITEM, ["Obst & Gemüse"]).categories == ["Obst & Gemüse"]
    assert len(client.calls) == 3


def test_collaborator_errors_share_a_base():
    assert issubclass(TransientError, LLMUnavailableError)
    assert issubclass(PermanentError, LLMUnavailableError)


# =============================
# Retry policy
# =============================

def test_retry_backoff_sequence():
    sleeps = []
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise TransientError("try again")
        return "ok"

    config = RetryConfig(max_retries=3, initial_backoff=1.0, jitter=False)
    assert retry_with_backoff(flaky, config, sleep=sleeps.append)() == "ok"
    assert sleeps == [1.0, 2.0]


def test_backoff_is_capped():
    config = RetryConfig(initial_backoff=4.0, max_backoff=5.0, jitter=False)
    assert config.get_backoff_time(0) == 4.0
    assert config.get_backoff_time(2) == 5.0


def test_jitter_stays_in_range():
    config = RetryConfig(initial_backoff=2.0, jitter=True)
    for _ in range(20):
        assert 1.0 <= config.get_backoff_time(0) <= 3.0


def test_unexpected_errors_propagate():
    calls = []

    def broken():
        calls.append(1)
        raise ValueError("bug")

    with pytest.raises(ValueError):
        retry_with_backoff(broken, RetryConfig(jitter=False), sleep=lambda s: None)()
    assert len(calls) == 1


def test_exhausted_connection_errors_become_transient():
    sleeps = []

    def unreachable():
        raise ConnectionError("refused")

    config = RetryConfig(max_retries=1, initial_backoff=1.0, jitter=False)
    with pytest.raises(TransientError):
        retry_with_backoff(unreachable, config, sleep=sleeps.append)()
    assert sleeps == [1.0]

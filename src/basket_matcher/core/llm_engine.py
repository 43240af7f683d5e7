"""
Ollama LLM integration for the optional collaborator stages.

The collaborator parses shopping lists, picks store categories, proposes
tiered search terms, re-ranks candidate shortlists and estimates purchase
quantities. Every reply must be JSON and is validated against a pydantic
schema before use; anything else counts as a failed call.
"""

import json
import logging
import re
from typing import Any, List, Optional, Sequence, Type, TypeVar

import httpx
import ollama
from pydantic import BaseModel, ValidationError

from basket_matcher.core.config import (
    LLM_TIMEOUT_SECONDS,
    LOG_DATEFMT,
    LOG_FORMAT,
    LOG_LEVEL,
    OLLAMA_HOST,
    OLLAMA_MODEL,
)
from basket_matcher.core.retry_utils import (
    PermanentError,
    RetryConfig,
    TransientError,
    retry_with_backoff,
)
from basket_matcher.models.candidate import Candidate
from basket_matcher.models.grocery_list import ParsedShoppingList, ShoppingItem
from basket_matcher.models.llm import (
    CategorySelection,
    QualityFilterResult,
    SearchTiers,
    SmartQuantityResult,
)
from basket_matcher.models.product import Product

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

# Status codes that retrying cannot fix: bad credentials and rate limits/quota.
PERMANENT_STATUS_CODES = frozenset({401, 403, 429})

SYSTEM_PROMPT = """You are a grocery shopping assistant for a German supermarket.
Answer with ONE valid JSON object that follows the requested structure.
No markdown, no explanation outside the JSON."""

PARSING_PROMPT = """Parse this shopping list into structured items.

Input shopping list:
{shopping_list}

For each item extract:
1. Base item name (in German, for grocery search)
2. Quantity needed (amount + unit, unit one of g, kg, ml, l, stück)
3. Specific attributes (organic, whole_wheat, firm, fresh, ...)
4. Alternative names mentioned (like "rocket" for arugula)
5. Item type: fresh_produce, dry_goods, dairy, meat, herbs_spices, canned or condiments

Example: "650g broccoli florets" -> item "brokkoli", amount 650, unit "g",
attributes ["fresh", "florets"], item_type "fresh_produce".

Return JSON:
{{
    "items": [
        {{"item": "...", "amount": 650, "unit": "g", "original": "...",
          "attributes": [], "alternatives": [], "item_type": "fresh_produce"}}
    ]
}}"""

CATEGORY_PROMPT = """Map this shopping item to 1-2 German grocery store categories.

Item: {item}
Type: {item_type}
Attributes: {attributes}
Original text: {original}

Available categories:
{categories}

Rules:
- Fresh produce -> ONLY "Obst & Gemüse"
- Canned/preserved items -> "Fertiggerichte & Konserven"
- Plant-based proteins (tofu, tempeh, seitan) -> "Fleisch & Fisch"
- Never mix fresh and canned categories for the same item

Return JSON with category names exactly as listed:
{{"categories": ["..."], "reasoning": "..."}}"""

SEARCH_TIERS_PROMPT = """Generate German grocery store search terms in 3 tiers for: "{item}"{attributes}{alternatives}
Item type: {item_type}

German stores use BOTH German and anglicized spellings, include both (brokkoli AND broccoli).

Tier 1 (exact/specific, max 6): include every attribute (organic=bio, whole wheat=vollkorn, firm=fest).
Tier 2 (general, max 6): the basic item without qualifiers, both spellings.
Tier 3 (alternatives, max 4): similar items that could substitute.

Example "firm tofu":
{{"tier1": ["fester tofu", "tofu fest", "firm tofu", "naturtofu fest"],
  "tier2": ["tofu", "soja tofu", "naturtofu", "bio tofu"],
  "tier3": ["seitan", "tempeh"]}}

Return JSON: {{"tier1": [...], "tier2": [...], "tier3": [...]}}"""

QUALITY_FILTER_PROMPT = """Evaluate and re-rank these grocery products for: "{original}"{attributes}

Item type: {item_type}
Needed quantity: {amount}{unit}

Candidates:
{candidates}

Pick at most 10 candidates in preference order.
Prioritize exact attribute matches (bio, vollkorn, fest, frisch), sensible
package sizes, fresh over processed produce and the right food category.
Strongly reject different food types, sauces when an ingredient was
requested and extremely inappropriate sizes.

Return JSON:
{{"selectedCandidates": [{{"index": 0, "reasoning": "..."}}], "overallReasoning": "..."}}"""

QUANTITY_PROMPT = """Calculate the purchase quantity for grocery shopping.

Needed: {amount} {unit} of {item}
Available product: {title}
Product size: {volume}
Price per unit: €{price}
Item type: {item_type}

Context: {context}

Return JSON:
{{"unitsNeeded": 1, "actualAmount": 0, "actualUnit": "...", "reasoning": "...", "overageAcceptable": true}}"""

ITEM_TYPE_CONTEXT = {
    "fresh_produce": "Fresh produce is perishable - reasonable overage (20-50%) is acceptable",
    "dry_goods": "Dry goods have long shelf life - larger packages are often economical",
    "dairy": "Dairy products are perishable but have some shelf life",
    "herbs_spices": "Small quantities needed - even large packages may be appropriate",
    "canned": "Canned goods last long - larger sizes often better value",
    "condiments": "Condiments last long - standard package sizes usually fine",
}


def _try_json(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except ValueError:
        return None


def _first_balanced_block(text: str) -> Optional[Any]:
    """Walk from the first opening brace/bracket to its matching close."""
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start = text.find(open_ch)
        if start == -1:
            continue
        depth = 0
        for i in range(start, len(text)):
            if text[i] == open_ch:
                depth += 1
            elif text[i] == close_ch:
                depth -= 1
                if depth == 0:
                    parsed = _try_json(text[start:i + 1])
                    if parsed is not None:
                        return parsed
                    break
    return None


def parse_json_from_llm_output(text: str) -> Optional[Any]:
    """
    Extract JSON from model output, handling code fences, leading tags
    and prose around the payload. Returns None when nothing parses.
    """
    text = re.sub(r'^<[^>]+>\s*', '', text.strip())

    fenced = re.search(r'```(?:json)?\s*([\s\S]*?)\s*```', text)
    parsed = _try_json(fenced.group(1).strip() if fenced else text)
    if parsed is not None:
        return parsed

    for pattern in (r'(\{[\s\S]*\})', r'(\[[\s\S]*\])'):
        match = re.search(pattern, text)
        if match:
            parsed = _try_json(match.group(1))
            if parsed is not None:
                return parsed

    parsed = _first_balanced_block(text)
    if parsed is None:
        logger.error("[LLM] Failed to parse JSON from model output")
        logger.info(f"[LLM] Output (truncated): {text[:500]}")
    return parsed


def validate_llm_output(payload: Any, schema: Type[SchemaT], stage: str) -> SchemaT:
    """Validate extracted JSON against a schema; failures are retryable."""
    if payload is None:
        raise TransientError("No JSON found in model output", stage)
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        raise TransientError(f"{schema.__name__} validation failed: {e}", stage) from e


def _format_list(values: Sequence[str], prefix: str) -> str:
    return f", {prefix}: {', '.join(values)}" if values else ""


class LLMEngine:
    """Collaborator backed by a local Ollama model."""

    def __init__(
        self,
        host: str = OLLAMA_HOST,
        model: str = OLLAMA_MODEL,
        timeout: float = LLM_TIMEOUT_SECONDS,
        retry_config: Optional[RetryConfig] = None,
        client: Optional[ollama.Client] = None,
    ):
        self.model = model
        self.client = client or ollama.Client(host=host, timeout=timeout)
        self.retry_config = retry_config or RetryConfig()

    def _chat(self, prompt: str, schema: Type[SchemaT], stage: str) -> SchemaT:
        logger.info(f"[LLM] {stage}: calling {self.model} with prompt: {prompt[:100]!r}")

        try:
            response = self.client.chat(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                format="json",
                stream=False,
                options={"temperature": 0.1},
            )
        except ollama.ResponseError as e:
            if e.status_code in PERMANENT_STATUS_CODES:
                raise PermanentError(f"Ollama rejected the request ({e.status_code}): {e.error}", stage) from e
            raise TransientError(f"Ollama error ({e.status_code}): {e.error}", stage) from e
        except (httpx.TransportError, ConnectionError, TimeoutError) as e:
            raise TransientError(f"Ollama unreachable: {e}", stage) from e

        output_text = (response['message']['content'] or "").strip()
        logger.debug(f"[LLM] {stage} response: {output_text}")

        validated = validate_llm_output(parse_json_from_llm_output(output_text), schema, stage)
        logger.info(f"[LLM] {stage}: validated against {schema.__name__}")
        return validated

    def call(self, prompt: str, schema: Type[SchemaT], stage: str) -> SchemaT:
        """Run one collaborator call under the retry policy."""
        return retry_with_backoff(self._chat, self.retry_config)(prompt, schema, stage)

    def parse_shopping_list(self, shopping_list: str) -> ParsedShoppingList:
        prompt = PARSING_PROMPT.format(shopping_list=shopping_list)
        return self.call(prompt, ParsedShoppingList, "parse")

    def determine_categories(self, item: ShoppingItem, categories: Sequence[str]) -> CategorySelection:
        prompt = CATEGORY_PROMPT.format(
            item=item.item,
            item_type=item.item_type.value,
            attributes=", ".join(item.attributes) or "none",
            original=item.original_text,
            categories="\n".join(f'- "{c}"' for c in categories),
        )
        return self.call(prompt, CategorySelection, "categorize")

    def generate_search_tiers(self, item: ShoppingItem) -> SearchTiers:
        prompt = SEARCH_TIERS_PROMPT.format(
            item=item.item,
            attributes=_format_list(item.attributes, "attributes"),
            alternatives=_format_list(item.alternatives, "alternatives"),
            item_type=item.item_type.value,
        )
        return self.call(prompt, SearchTiers, "expand")

    def quality_filter(self, candidates: List[Candidate], item: ShoppingItem) -> QualityFilterResult:
        candidate_lines = "\n".join(
            f"{i}: {c.product.title} - €{c.product.price} - {c.product.category} "
            f"(score: {c.score:.2f}, {c.tier.value})"
            for i, c in enumerate(candidates)
        )
        prompt = QUALITY_FILTER_PROMPT.format(
            original=item.original_text,
            attributes=f" with attributes: {', '.join(item.attributes)}" if item.attributes else "",
            item_type=item.item_type.value,
            amount=item.amount,
            unit=item.unit.value,
            candidates=candidate_lines,
        )
        return self.call(prompt, QualityFilterResult, "rerank")

    def calculate_quantity(self, item: ShoppingItem, product: Product) -> SmartQuantityResult:
        prompt = QUANTITY_PROMPT.format(
            amount=item.amount,
            unit=item.unit.value,
            item=item.item,
            title=product.title,
            volume=product.volume,
            price=product.price,
            item_type=item.item_type.value,
            context=ITEM_TYPE_CONTEXT.get(item.item_type.value, "Standard grocery item"),
        )
        return self.call(prompt, SmartQuantityResult, "estimate")

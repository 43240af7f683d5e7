"""
Response schemas for the language-model collaborator.
Every collaborator reply is validated against one of these before use.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_TIER1_TERMS = 6
MAX_TIER2_TERMS = 6
MAX_TIER3_TERMS = 4
MAX_RERANKED = 10


def _clean_terms(terms: List[str], limit: int) -> List[str]:
    seen = []
    for term in terms:
        term = term.strip()
        if term and term.lower() not in (s.lower() for s in seen):
            seen.append(term)
    return seen[:limit]


class CategorySelection(BaseModel):
    categories: List[str] = Field(min_length=1)
    reasoning: str = ""

    @field_validator("categories")
    @classmethod
    def keep_two(cls, v: List[str]) -> List[str]:
        return [c.strip() for c in v if c.strip()][:2]


class SearchTiers(BaseModel):
    """Search terms for the three escalating search passes."""
    tier1: List[str] = Field(default_factory=list)
    tier2: List[str] = Field(default_factory=list)
    tier3: List[str] = Field(default_factory=list)

    @field_validator("tier1")
    @classmethod
    def cap_tier1(cls, v: List[str]) -> List[str]:
        return _clean_terms(v, MAX_TIER1_TERMS)

    @field_validator("tier2")
    @classmethod
    def cap_tier2(cls, v: List[str]) -> List[str]:
        return _clean_terms(v, MAX_TIER2_TERMS)

    @field_validator("tier3")
    @classmethod
    def cap_tier3(cls, v: List[str]) -> List[str]:
        return _clean_terms(v, MAX_TIER3_TERMS)


class QualitySelection(BaseModel):
    index: int = Field(ge=0)
    reasoning: str = ""


class QualityFilterResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    selected_candidates: List[QualitySelection] = Field(alias="selectedCandidates")
    overall_reasoning: str = Field(default="", alias="overallReasoning")

    @field_validator("selected_candidates")
    @classmethod
    def cap_selection(cls, v: List[QualitySelection]) -> List[QualitySelection]:
        return v[:MAX_RERANKED]


class SmartQuantityResult(BaseModel):
    """Estimated purchase quantity when units cannot be converted."""
    model_config = ConfigDict(populate_by_name=True)

    units_needed: int = Field(ge=1, alias="unitsNeeded")
    actual_amount: float = Field(alias="actualAmount")
    actual_unit: str = Field(alias="actualUnit")
    reasoning: str = ""
    overage_acceptable: Optional[bool] = Field(default=None, alias="overageAcceptable")

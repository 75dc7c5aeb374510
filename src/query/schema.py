"""Parsed query schema (Pydantic models).

This schema is the contract between the query parsers (heuristic/external), the merger and the
callers (search UI, price comparison, bot). Every object here is immutable once constructed.
"""

from __future__ import annotations

import math
from enum import StrEnum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# A query without an identified category must stay below this confidence.
CATEGORY_CONFIDENCE_THRESHOLD = 0.5


class CanonicalUnit(StrEnum):
    """Canonical units used for cross-supplier quantity/price comparison."""

    m3 = "m3"
    t = "t"
    pcs = "pcs"


class CategoryDefinition(BaseModel):
    """A marketplace category and the keyword stems used to recognize it in free text."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    display_name: str
    keywords: tuple[str, ...]
    default_unit: str | None = None


class Suggestion(BaseModel):
    """A clarification option offered to the user when the category is missing or ambiguous."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: Literal["category"] = "category"
    label: str
    value: str


class ParsedQuery(BaseModel):
    """Structured interpretation of a free-text procurement query.

    Field names are snake_case in Python and camelCase on the wire (`to_wire()`).
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    category: str | None = None
    category_id: str | None = None
    volume: str | None = None
    unit: str | None = None
    city: str | None = None
    delivery: bool | None = None
    grade: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    suggestions: tuple[Suggestion, ...] = ()
    original_query: str

    @model_validator(mode="after")
    def validate_confidence(self) -> ParsedQuery:
        """A query without a category can never be reported as trustworthy."""

        if self.category_id is None and self.confidence >= CATEGORY_CONFIDENCE_THRESHOLD:
            raise ValueError("confidence must be < 0.5 when no category is identified")
        return self

    @property
    def needs_clarification(self) -> bool:
        return self.confidence < CATEGORY_CONFIDENCE_THRESHOLD

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON shape consumed by the search UI."""

        return self.model_dump(mode="json", by_alias=True)


def _format_number(value: float) -> str:
    if not math.isfinite(value):
        raise ValueError("volume must be a finite number")
    if value == int(value):
        return str(int(value))
    return repr(float(value))


class ExternalExtraction(BaseModel):
    """Partial result returned by an external text-to-structured-data provider.

    Any field may be absent. Key variants seen in provider prompts (`location`, `volumeUnit`,
    `deliveryNeeded`, `productType`) are accepted as aliases; unknown keys are ignored.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, str_strip_whitespace=True)

    category: str | None = None
    category_id: str | None = Field(
        default=None, validation_alias=AliasChoices("category_id", "categoryId")
    )
    volume: str | None = None
    unit: str | None = Field(default=None, validation_alias=AliasChoices("unit", "volumeUnit"))
    city: str | None = Field(default=None, validation_alias=AliasChoices("city", "location"))
    grade: str | None = Field(default=None, validation_alias=AliasChoices("grade", "productType"))
    delivery: bool | None = Field(
        default=None, validation_alias=AliasChoices("delivery", "deliveryNeeded")
    )

    @field_validator("volume", mode="before")
    @classmethod
    def coerce_volume(cls, value: Any) -> Any:
        """Providers return volumes as numbers; the parsed query carries them as text."""

        if isinstance(value, bool):
            raise ValueError("volume must be a number")
        if isinstance(value, (int, float)):
            return _format_number(value)
        if isinstance(value, str):
            return value.replace(",", ".").strip() or None
        return value

    @field_validator("category", "category_id", "unit", "city", "grade", mode="after")
    @classmethod
    def empty_to_none(cls, value: str | None) -> str | None:
        return value or None

    @property
    def contributes(self) -> bool:
        """Whether at least one semantic field carries a value."""

        return any(value is not None for value in self.model_dump().values())

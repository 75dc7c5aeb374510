"""Tests for the ParsedQuery / ExternalExtraction schema and its invariants."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.query.schema import ExternalExtraction, ParsedQuery, Suggestion


def test_parsed_query_rejects_confident_result_without_category() -> None:
    with pytest.raises(ValidationError):
        ParsedQuery(confidence=0.6, original_query="что-то")


def test_parsed_query_rejects_confidence_out_of_range() -> None:
    with pytest.raises(ValidationError):
        ParsedQuery(category_id="concrete", category="Бетон", confidence=1.2, original_query="бетон")


def test_parsed_query_forbids_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        ParsedQuery(original_query="бетон", price=100)  # type: ignore[call-arg]


def test_parsed_query_is_immutable() -> None:
    parsed = ParsedQuery(original_query="бетон")
    with pytest.raises(ValidationError):
        parsed.volume = "10"  # type: ignore[misc]


def test_needs_clarification_below_threshold() -> None:
    assert ParsedQuery(original_query="x", confidence=0.45).needs_clarification
    assert not ParsedQuery(
        category_id="concrete", category="Бетон", original_query="бетон", confidence=0.5
    ).needs_clarification


def test_wire_shape_uses_camel_case() -> None:
    parsed = ParsedQuery(
        category="Бетон",
        category_id="concrete",
        volume="10",
        unit="кубов",
        delivery=True,
        confidence=0.9,
        suggestions=(Suggestion(label="Цемент", value="cement"),),
        original_query="10 кубов бетона",
    )

    wire = parsed.to_wire()

    assert wire["categoryId"] == "concrete"
    assert wire["originalQuery"] == "10 кубов бетона"
    assert wire["city"] is None
    assert wire["suggestions"] == [{"type": "category", "label": "Цемент", "value": "cement"}]
    assert ParsedQuery.model_validate(wire) == parsed


def test_external_extraction_accepts_provider_key_variants() -> None:
    extraction = ExternalExtraction.model_validate(
        {
            "categoryId": "aggregates",
            "volume": 20,
            "volumeUnit": "тонн",
            "location": "Шымкент",
            "deliveryNeeded": True,
            "productType": "фракция 5-20",
            "comment": "ignored",
        }
    )

    assert extraction.category_id == "aggregates"
    assert extraction.volume == "20"
    assert extraction.unit == "тонн"
    assert extraction.city == "Шымкент"
    assert extraction.delivery is True
    assert extraction.grade == "фракция 5-20"


def test_external_extraction_volume_coercion() -> None:
    assert ExternalExtraction(volume=2.5).volume == "2.5"
    assert ExternalExtraction(volume="2,5").volume == "2.5"
    assert ExternalExtraction(volume=" ").volume is None
    with pytest.raises(ValidationError):
        ExternalExtraction(volume=True)
    with pytest.raises(ValidationError):
        ExternalExtraction(volume=float("inf"))


def test_external_extraction_contributes() -> None:
    assert not ExternalExtraction.model_validate({}).contributes
    assert not ExternalExtraction.model_validate({"city": "  ", "note": "x"}).contributes
    assert ExternalExtraction.model_validate({"delivery": False}).contributes

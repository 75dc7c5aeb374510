"""Tests for per-offer total estimates across supplier price units."""

from __future__ import annotations

import pytest

from src.pricing.aggregator import (
    SupplierOffer,
    aggregate_offers,
    format_quantity_summary,
    requested_quantity,
)
from src.query.rules_parser import parse_query_regex
from src.query.schema import CanonicalUnit, ParsedQuery


def _offer(offer_id: str, price: float, unit: str) -> SupplierOffer:
    return SupplierOffer(offer_id=offer_id, supplier_name=f"Поставщик {offer_id}", price_from=price, price_unit=unit)


def test_aggregate_converts_between_cubic_meters_and_tons() -> None:
    parsed = parse_query_regex("песок 10 тонн")
    offers = [_offer("a", 3000, "за м³"), _offer("b", 2000, "т")]

    estimates = aggregate_offers(parsed, offers)

    assert [e.offer.offer_id for e in estimates] == ["a", "b"]
    assert estimates[0].estimated_total == 20000
    assert estimates[0].quantity_in_offer_unit == pytest.approx(10 / 1.5)
    assert estimates[1].estimated_total == 20000


def test_non_aggregate_category_is_never_converted() -> None:
    parsed = parse_query_regex("бетон 10 кубов")
    offers = [_offer("m3", 25000, "за м3"), _offer("t", 10000, "тонна")]

    estimates = aggregate_offers(parsed, offers)

    assert estimates[0].estimated_total == 250000
    assert estimates[1].estimated_total is None


def test_opaque_and_on_request_offers_have_no_total() -> None:
    parsed = parse_query_regex("щебень 20 тонн")
    offers = [
        _offer("trip", 45000, "рейс"),
        _offer("zero", 0, "т"),
        _offer("request", 1, "цена по запросу"),
    ]

    assert [e.estimated_total for e in aggregate_offers(parsed, offers)] == [None, None, None]


def test_missing_quantity_yields_no_totals() -> None:
    parsed = parse_query_regex("песок")
    estimates = aggregate_offers(parsed, [_offer("a", 3000, "т")])
    assert estimates[0].estimated_total is None


def test_totals_round_half_up() -> None:
    parsed = parse_query_regex("кирпич 5 шт")
    (estimate,) = aggregate_offers(parsed, [_offer("brick", 0.5, "шт")])
    assert estimate.estimated_total == 3


def test_requested_quantity_rejects_non_positive_volume() -> None:
    parsed = ParsedQuery(
        category_id="aggregates",
        category="Инертные материалы",
        volume="0",
        unit="т",
        confidence=0.6,
        original_query="песок 0 т",
    )
    assert requested_quantity(parsed) is None


def test_requested_quantity_canonical_unit() -> None:
    requested = requested_quantity(parse_query_regex("песок 2,5 тонны"))
    assert requested is not None
    assert requested.quantity == 2.5
    assert requested.unit == CanonicalUnit.t
    assert requested.allow_aggregate_conversion


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ("песок 10 тонн", "10 т ≈ 6.7 м³"),
        ("щебень 20 кубов", "20 м³ ≈ 30 т"),
        ("бетон 10 кубов", "10 кубов"),
        ("самосвал 3 рейса", None),
    ],
)
def test_format_quantity_summary(query: str, expected: str | None) -> None:
    assert format_quantity_summary(parse_query_regex(query)) == expected


def test_cubic_meter_spellings_get_totals() -> None:
    parsed = parse_query_regex("бетон 10 кубов")
    offers = [_offer("dot", 25000, "за м.куб"), _offer("space", 25000, "м куб")]

    assert [e.estimated_total for e in aggregate_offers(parsed, offers)] == [250000, 250000]

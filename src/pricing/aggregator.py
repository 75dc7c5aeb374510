"""Per-offer price estimates for a requested quantity.

Suppliers quote in their own units. An estimated total is only computed when the offer's unit is
comparable with the requested one; otherwise the offer is shown without a total instead of a
fabricated number. Offers are never reordered: ranking is the caller's business.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from src.query.dictionaries import AGGREGATE_CATEGORY_IDS
from src.query.schema import CanonicalUnit, ParsedQuery
from src.query.units import are_convertible, convert_quantity, normalize_unit

_UNIT_LABELS: dict[CanonicalUnit, str] = {
    CanonicalUnit.m3: "м³",
    CanonicalUnit.t: "т",
    CanonicalUnit.pcs: "шт",
}


@dataclass(frozen=True)
class SupplierOffer:
    """A supplier's price for one product, quoted per `price_unit` ("за м3", "т", "рейс")."""

    offer_id: str
    supplier_name: str
    price_from: float
    price_unit: str


@dataclass(frozen=True)
class RequestedQuantity:
    """The quantity a buyer asked for, in canonical units."""

    quantity: float
    unit: CanonicalUnit
    allow_aggregate_conversion: bool = False


@dataclass(frozen=True)
class OfferEstimate:
    """An offer plus its estimated total (None when units are not comparable)."""

    offer: SupplierOffer
    estimated_total: int | None = None
    quantity_in_offer_unit: float | None = None


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _format_quantity(value: float) -> str:
    return f"{value:g}"


def _parse_volume(volume: str | None) -> float | None:
    if not volume:
        return None
    try:
        value = float(Decimal(volume.replace(",", ".")))
    except (InvalidOperation, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def requested_quantity(
        parsed: ParsedQuery,
        *,
        aggregate_category_ids: frozenset[str] = AGGREGATE_CATEGORY_IDS,
) -> RequestedQuantity | None:
    """Extract a positive requested quantity in a canonical unit from a parsed query."""

    quantity = _parse_volume(parsed.volume)
    unit = normalize_unit(parsed.unit)
    if quantity is None or unit is None:
        return None

    return RequestedQuantity(
        quantity=quantity,
        unit=unit,
        allow_aggregate_conversion=parsed.category_id in aggregate_category_ids,
    )


def is_price_on_request(offer: SupplierOffer) -> bool:
    return offer.price_from <= 0 or "запрос" in (offer.price_unit or "").lower()


def estimate_offer_total(requested: RequestedQuantity | None, offer: SupplierOffer) -> OfferEstimate:
    """Estimate the total cost of `requested` at `offer`'s price.

    A total is computed when the offer's unit normalizes to the requested unit, or, for aggregate
    materials only, when both units are in the `{m3, t}` pair. Everything else (opaque units such
    as trips or shifts, price on request, no requested quantity) yields no total.
    """

    if requested is None or is_price_on_request(offer):
        return OfferEstimate(offer=offer)

    offer_unit = normalize_unit(offer.price_unit)
    if offer_unit is None or not are_convertible(requested.unit, offer_unit):
        return OfferEstimate(offer=offer)
    if offer_unit != requested.unit and not requested.allow_aggregate_conversion:
        return OfferEstimate(offer=offer)

    quantity = convert_quantity(requested.quantity, requested.unit, offer_unit)
    return OfferEstimate(
        offer=offer,
        estimated_total=_round_half_up(quantity * offer.price_from),
        quantity_in_offer_unit=quantity,
    )


def aggregate_offers(
        parsed: ParsedQuery,
        offers: Iterable[SupplierOffer],
        *,
        aggregate_category_ids: frozenset[str] = AGGREGATE_CATEGORY_IDS,
) -> list[OfferEstimate]:
    """Estimate totals for every offer, preserving the input order."""

    requested = requested_quantity(parsed, aggregate_category_ids=aggregate_category_ids)
    return [estimate_offer_total(requested, offer) for offer in offers]


def format_quantity_summary(
        parsed: ParsedQuery,
        *,
        aggregate_category_ids: frozenset[str] = AGGREGATE_CATEGORY_IDS,
) -> str | None:
    """Human-readable requested quantity, with the m3/t equivalent for aggregates.

    Examples: "10 т ≈ 6.7 м³", "20 м³ ≈ 30 т", "5 шт".
    """

    requested = requested_quantity(parsed, aggregate_category_ids=aggregate_category_ids)
    if requested is None:
        return None

    quantity = _format_quantity(requested.quantity)
    if requested.allow_aggregate_conversion and requested.unit in (CanonicalUnit.m3, CanonicalUnit.t):
        other = CanonicalUnit.t if requested.unit == CanonicalUnit.m3 else CanonicalUnit.m3
        converted = convert_quantity(requested.quantity, requested.unit, other)
        return (
            f"{quantity} {_UNIT_LABELS[requested.unit]} ≈ "
            f"{_format_quantity(round(converted, 1))} {_UNIT_LABELS[other]}"
        )

    return f"{quantity} {parsed.unit or ''}".strip()

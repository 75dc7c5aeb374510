"""Unit normalization and quantity conversion for cross-supplier price comparison.

Supplier price lists quote in free-form units ("за м³", "₸/т", "тонна", "рейс"). Comparison is
only ever done through the small canonical vocabulary `{m3, t, pcs}`; every other unit is opaque.
"""

from __future__ import annotations

import re
import unicodedata

from src.query.schema import CanonicalUnit

# Bulk aggregates: 1 m3 ~= 1.5 t regardless of the concrete material.
AGGREGATE_TONS_PER_CUBIC_METER = 1.5

# "м3" stays one token; "1м3" splits into "1" and "м3".
_TOKEN_RE = re.compile(r"[a-zа-я]+3?|\d+")
# "м 3", "м.3" -> "м3"
_SPLIT_CUBIC_RE = re.compile(r"(?<![a-zа-я])([мm])[\s.]*3(?!\d)")

# Price-unit decorations that carry no unit information ("за 1 м3", "₸/т", "тг за тонну").
_SKIP_TOKENS: frozenset[str] = frozenset({"за", "тг", "тенге", "kzt", "руб", "р", "per"})

_EXACT_ALIASES: dict[str, CanonicalUnit] = {
    "м3": CanonicalUnit.m3,
    "m3": CanonicalUnit.m3,
    "т": CanonicalUnit.t,
    "тн": CanonicalUnit.t,
    "t": CanonicalUnit.t,
    "ton": CanonicalUnit.t,
    "tons": CanonicalUnit.t,
    "шт": CanonicalUnit.pcs,
    "pcs": CanonicalUnit.pcs,
    "pc": CanonicalUnit.pcs,
}

_STEM_ALIASES: tuple[tuple[str, CanonicalUnit], ...] = (
    ("куб", CanonicalUnit.m3),
    ("тонн", CanonicalUnit.t),
    ("штук", CanonicalUnit.pcs),
)


def _fold(text: str) -> str:
    """Lowercase and strip diacritics; NFKD also maps compatibility forms like `³` to `3`."""

    decomposed = unicodedata.normalize("NFKD", text.strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _canonical_token(token: str) -> CanonicalUnit | None:
    unit = _EXACT_ALIASES.get(token)
    if unit is not None:
        return unit
    for stem, stem_unit in _STEM_ALIASES:
        if token.startswith(stem):
            return stem_unit
    return None


def normalize_unit(raw: str | None) -> CanonicalUnit | None:
    """Map free-form unit text to a canonical unit.

    The first recognized unit token decides: "за м³" -> m3, "м.куб" -> m3, "10 т" -> t,
    "рейс" -> None. Numbers, currency and other unrecognized words are skipped.
    Unknown units (trips, shifts, hours, kg, ...) return `None` and are compared only by exact
    equality elsewhere.
    """

    if not raw:
        return None

    value = _fold(raw)
    # "куб.м", "м^3" -> "куб м", "м3"
    value = _SPLIT_CUBIC_RE.sub(r"\g<1>3", value.replace("^", ""))
    for token in _TOKEN_RE.findall(value):
        if token in _SKIP_TOKENS or token.isdigit():
            continue
        unit = _canonical_token(token)
        if unit is not None:
            return unit
    return None


class UnsupportedConversionError(ValueError):
    """Raised when a caller asks to convert between incompatible units."""


def convert_quantity(quantity: float, from_unit: str, to_unit: str) -> float:
    """Convert a quantity between canonical units.

    Identity for equal units. The only cross-unit pair is the bulk-aggregate `m3 <-> t`, applied
    with `AGGREGATE_TONS_PER_CUBIC_METER`. Callers must check compatibility first (see
    `are_convertible`); any other pair is a contract violation.

    Raises:
        UnsupportedConversionError: If the units are unknown or not convertible.
    """

    try:
        source = CanonicalUnit(from_unit)
        target = CanonicalUnit(to_unit)
    except ValueError as exc:
        raise UnsupportedConversionError(f"unknown unit: {exc}") from exc

    if source == target:
        return quantity
    if source == CanonicalUnit.m3 and target == CanonicalUnit.t:
        return quantity * AGGREGATE_TONS_PER_CUBIC_METER
    if source == CanonicalUnit.t and target == CanonicalUnit.m3:
        return quantity / AGGREGATE_TONS_PER_CUBIC_METER

    raise UnsupportedConversionError(f"cannot convert {source} to {target}")


def are_convertible(from_unit: CanonicalUnit | None, to_unit: CanonicalUnit | None) -> bool:
    """Whether `convert_quantity` accepts the pair (equal units or the m3/t aggregate pair)."""

    if from_unit is None or to_unit is None:
        return False
    if from_unit == to_unit:
        return True
    return {from_unit, to_unit} == {CanonicalUnit.m3, CanonicalUnit.t}

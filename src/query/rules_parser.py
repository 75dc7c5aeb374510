"""Rules-based Russian procurement query parser (heuristic baseline).

Unlike an all-or-nothing parser, this one is best-effort and never raises:
    - every field it cannot extract is left as `None`,
    - the confidence score reflects how much was extracted,
    - suggestions are offered when the category is missing or ambiguous.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from src.query.dictionaries import (
    CITY_STEMS,
    DELIVERY_PHRASES,
    GRADE_PATTERNS,
    PICKUP_PHRASES,
    UNIT_WORD_PATTERNS,
)
from src.query.matcher import CategoryMatch, CategoryMatcher
from src.query.normalize import normalize_text
from src.query.schema import ParsedQuery, Suggestion

logger = logging.getLogger(__name__)

CONFIDENCE_WEIGHTS: dict[str, float] = {
    "category_exact": 0.35,
    "category_fuzzy": 0.3,
    "category_inferred": 0.2,
    "volume": 0.15,
    "grade": 0.15,
    "city": 0.15,
    "delivery": 0.1,
}
CONFIDENCE_FLOOR = 0.05
# Without a category the result must stay below the clarification threshold (0.5).
NO_CATEGORY_CONFIDENCE_CAP = 0.45

_NUMBER = r"(?P<number>\d+(?:\.\d+)?)"

_QUANTITY_RE = re.compile(
    rf"(?<![\w.]){_NUMBER}\s*(?P<unit>{'|'.join(p for _, p in UNIT_WORD_PATTERNS)})"
    r"(?![а-яa-z0-9])"
)
_TRAILING_NUMBER_RE = re.compile(rf"(?<![\w.]){_NUMBER}$")

_CITY_RE = re.compile(
    r"(?<![а-яёa-z])(" + "|".join(sorted(CITY_STEMS, key=len, reverse=True)) + ")",
    flags=re.IGNORECASE,
)

_GRADE_RES: tuple[tuple[re.Pattern[str], str, str], ...] = tuple(
    (re.compile(g.pattern), g.prefix, g.implied_category_id) for g in GRADE_PATTERNS
)

_DEFAULT_MATCHER = CategoryMatcher()


@dataclass(frozen=True)
class _Grade:
    value: str
    implied_category_id: str


def _extract_quantity(text: str) -> tuple[str, str] | None:
    """Extract `(number, raw unit text)` like ("10", "кубов") from normalized text."""

    match = _QUANTITY_RE.search(text)
    if not match:
        return None
    return match.group("number"), match.group("unit")


def _extract_trailing_number(text: str) -> str | None:
    match = _TRAILING_NUMBER_RE.search(text)
    if not match:
        return None
    return match.group("number")


def _extract_city(query: str) -> str | None:
    """Return the matched city stem with the casing it has in the source text."""

    match = _CITY_RE.search(query)
    if not match:
        return None
    return match.group(1)


def _extract_delivery(text: str) -> bool | None:
    if any(phrase in text for phrase in PICKUP_PHRASES):
        return False
    if any(phrase in text for phrase in DELIVERY_PHRASES):
        return True
    return None


def _extract_grade(text: str) -> _Grade | None:
    for pattern, prefix, implied_category_id in _GRADE_RES:
        match = pattern.search(text)
        if not match:
            continue
        value = prefix + match.group("value")
        if "suffix" in pattern.groupindex and match.group("suffix"):
            value += "C"
        return _Grade(value=value, implied_category_id=implied_category_id)
    return None


def _score_confidence(
        *,
        category_weight: float,
        volume: bool,
        grade: bool,
        city: bool,
        delivery: bool,
) -> float:
    score = category_weight
    score += CONFIDENCE_WEIGHTS["volume"] if volume else 0.0
    score += CONFIDENCE_WEIGHTS["grade"] if grade else 0.0
    score += CONFIDENCE_WEIGHTS["city"] if city else 0.0
    score += CONFIDENCE_WEIGHTS["delivery"] if delivery else 0.0

    score = min(max(score, CONFIDENCE_FLOOR), 1.0)
    if category_weight == 0.0:
        score = min(score, NO_CATEGORY_CONFIDENCE_CAP)
    return round(score, 2)


def _build_suggestions(match: CategoryMatch, matcher: CategoryMatcher) -> tuple[Suggestion, ...]:
    suggestions: list[Suggestion] = []
    for category_id in match.suggestions:
        category = matcher.get(category_id)
        if category is None:
            continue
        suggestions.append(Suggestion(label=category.display_name, value=category.id))
    return tuple(suggestions)


def _parse(query: str, matcher: CategoryMatcher) -> ParsedQuery:
    normalized = normalize_text(query)

    category_match = matcher.match(normalized) if normalized else CategoryMatch(None, "none")
    category_id = category_match.category_id
    category_weight = 0.0
    if category_match.method == "exact":
        category_weight = CONFIDENCE_WEIGHTS["category_exact"]
    elif category_match.method == "fuzzy":
        category_weight = CONFIDENCE_WEIGHTS["category_fuzzy"]

    grade = _extract_grade(normalized)
    if category_id is None and grade is not None:
        # "м300 20 кубов" is a concrete order even without the word "бетон".
        category_id = grade.implied_category_id
        category_weight = CONFIDENCE_WEIGHTS["category_inferred"]

    category = matcher.get(category_id)
    if category is None:
        category_id = None
        category_weight = 0.0

    volume: str | None = None
    unit: str | None = None
    quantity = _extract_quantity(normalized)
    if quantity is not None:
        volume, unit = quantity
    else:
        volume = _extract_trailing_number(normalized)
        if volume is not None and category is not None:
            unit = category.default_unit

    city = _extract_city(query)
    delivery = _extract_delivery(normalized)

    suggestions: tuple[Suggestion, ...] = ()
    if category is None or category_match.is_ambiguous:
        suggestions = _build_suggestions(category_match, matcher)

    confidence = _score_confidence(
        category_weight=category_weight,
        volume=volume is not None,
        grade=grade is not None,
        city=city is not None,
        delivery=delivery is not None,
    )

    return ParsedQuery(
        category=category.display_name if category else None,
        category_id=category_id,
        volume=volume,
        unit=unit,
        city=city,
        delivery=delivery,
        grade=grade.value if grade else None,
        confidence=confidence,
        suggestions=suggestions,
        original_query=query,
    )


def parse_query_regex(query: str, *, matcher: CategoryMatcher | None = None) -> ParsedQuery:
    """Parse a free-text procurement query into a `ParsedQuery`.

    Never raises: on an unexpected internal error the failure is logged and an empty,
    low-confidence result is returned. `original_query` is always the verbatim input.
    """

    try:
        return _parse(query, matcher or _DEFAULT_MATCHER)
    except Exception:  # noqa: BLE001 - availability over precision: callers always get a result
        logger.exception("heuristic parse failed")
        return ParsedQuery(confidence=CONFIDENCE_FLOOR, original_query=query)

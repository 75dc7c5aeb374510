"""Merge the heuristic parse with an optional external extraction."""

from __future__ import annotations

from src.query.matcher import CategoryMatcher
from src.query.schema import CategoryDefinition, ExternalExtraction, ParsedQuery

# Confidence reported when an external provider contributed to the result.
TRUSTED_CONFIDENCE = 0.95

_SCALAR_FIELDS: tuple[str, ...] = ("volume", "unit", "city", "grade", "delivery")

_DEFAULT_MATCHER = CategoryMatcher()


def _external_category(
        external: ExternalExtraction,
        matcher: CategoryMatcher,
) -> CategoryDefinition | None:
    category_id = matcher.resolve_label(external.category_id)
    if category_id is None:
        category_id = matcher.resolve_label(external.category)
    return matcher.get(category_id)


def merge(
        heuristic: ParsedQuery,
        external: ExternalExtraction | None,
        *,
        matcher: CategoryMatcher | None = None,
) -> ParsedQuery:
    """Combine both parses field by field; external non-null values win.

    - The external category may be an id or a label ("Бетон", "песок"); it is resolved against
      `matcher`, and `category`/`category_id` travel together. A label that does not resolve
      contributes nothing.
    - If the external source contributed any field, confidence becomes `TRUSTED_CONFIDENCE` and
      suggestions are cleared. The exception is a merged result that still has no category: a
      query without a category is never reported as trustworthy, so the heuristic confidence and
      suggestions are kept.
    - No contribution (absent, failed, empty or unresolvable) returns `heuristic` unchanged.
    - `original_query` always comes from the heuristic result (the verbatim input).
    """

    if external is None:
        return heuristic

    fields = heuristic.model_dump(exclude={"suggestions", "confidence"})
    contributed = False

    category = _external_category(external, matcher or _DEFAULT_MATCHER)
    if category is not None:
        fields["category"] = category.display_name
        fields["category_id"] = category.id
        contributed = True
    for name in _SCALAR_FIELDS:
        value = getattr(external, name)
        if value is not None:
            fields[name] = value
            contributed = True

    if not contributed:
        return heuristic

    if fields["category_id"] is None:
        return ParsedQuery(
            **fields,
            confidence=heuristic.confidence,
            suggestions=heuristic.suggestions,
        )

    return ParsedQuery(**fields, confidence=TRUSTED_CONFIDENCE, suggestions=())

"""Category matching: exact keyword containment with a typo-tolerant fallback."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from rapidfuzz.distance import Levenshtein

from src.query.dictionaries import DEFAULT_CATEGORIES, DEFAULT_FUZZY_POLICY, FuzzyPolicy
from src.query.normalize import normalize_text
from src.query.schema import CategoryDefinition

MatchMethod = Literal["exact", "fuzzy", "none"]


@dataclass(frozen=True)
class CategoryMatch:
    """Best category for a text plus alternatives suitable as clarification suggestions."""

    category_id: str | None
    method: MatchMethod
    distance: int = 0
    suggestions: tuple[str, ...] = ()

    @property
    def is_ambiguous(self) -> bool:
        return self.category_id is not None and bool(self.suggestions)


@dataclass(frozen=True)
class _FuzzyHit:
    distance: int
    order: int
    category_id: str
    accepted: bool


class CategoryMatcher:
    """Map normalized text to a category id.

    Matching happens in two passes:
        1) Substring containment of any keyword; first category in declaration order wins.
        2) Otherwise, Levenshtein distance between query tokens and single-word keywords, accepted
           within the `FuzzyPolicy` tolerance; smallest distance wins, ties by declaration order.

    An exact hit always outranks any fuzzy hit.
    """

    def __init__(
            self,
            categories: Sequence[CategoryDefinition] = DEFAULT_CATEGORIES,
            *,
            policy: FuzzyPolicy = DEFAULT_FUZZY_POLICY,
            max_suggestions: int = 4,
    ) -> None:
        if not categories:
            raise ValueError("at least one category definition is required")
        self._categories = tuple(categories)
        self._by_id = {c.id: c for c in self._categories}
        self._policy = policy
        self._max_suggestions = max_suggestions

    @property
    def categories(self) -> tuple[CategoryDefinition, ...]:
        return self._categories

    def get(self, category_id: str | None) -> CategoryDefinition | None:
        if category_id is None:
            return None
        return self._by_id.get(category_id)

    def match(self, text: str) -> CategoryMatch:
        """Match already-normalized text to the best category."""

        exact_ids = [
            c.id for c in self._categories if any(keyword in text for keyword in c.keywords)
        ]
        if exact_ids:
            return CategoryMatch(
                category_id=exact_ids[0],
                method="exact",
                suggestions=tuple(exact_ids[1: 1 + self._max_suggestions]),
            )

        hits = self._fuzzy_hits(text.split())
        accepted = [h for h in hits if h.accepted]
        if accepted:
            best = accepted[0]
            return CategoryMatch(
                category_id=best.category_id,
                method="fuzzy",
                distance=best.distance,
                suggestions=tuple(h.category_id for h in accepted[1: 1 + self._max_suggestions]),
            )

        near_misses = tuple(h.category_id for h in hits[: self._max_suggestions])
        if not near_misses:
            near_misses = tuple(c.id for c in self._categories[: self._max_suggestions])
        return CategoryMatch(category_id=None, method="none", suggestions=near_misses)

    def resolve_label(self, label: str | None) -> str | None:
        """Resolve a provider-supplied category label ("Бетон", "concrete", "песок") to an id."""

        if not label:
            return None

        value = label.strip()
        if value in self._by_id:
            return value
        for category in self._categories:
            if category.display_name.lower() == value.lower():
                return category.id

        return self.match(normalize_text(value)).category_id

    def _fuzzy_hits(self, tokens: list[str]) -> list[_FuzzyHit]:
        """Best (smallest-distance) fuzzy hit per category, sorted by distance then order.

        Near misses (one edit beyond the tolerance) are kept as non-accepted hits.
        """

        best: dict[str, _FuzzyHit] = {}
        for order, category in enumerate(self._categories):
            for keyword in category.keywords:
                max_distance = self._policy.max_distance(keyword)
                for token in tokens:
                    if not self._policy.allows(token, keyword):
                        continue
                    distance = Levenshtein.distance(token, keyword, score_cutoff=max_distance + 1)
                    if distance > max_distance + 1:
                        continue

                    hit = _FuzzyHit(
                        distance=distance,
                        order=order,
                        category_id=category.id,
                        accepted=distance <= max_distance,
                    )
                    current = best.get(category.id)
                    if current is None or (hit.accepted, -hit.distance) > (
                            current.accepted,
                            -current.distance,
                    ):
                        best[category.id] = hit

        return sorted(best.values(), key=lambda h: (not h.accepted, h.distance, h.order))

"""Text normalization for deterministic query parsing."""

from __future__ import annotations

import re

_DECIMAL_COMMA_RE = re.compile(r"(?<=\d)[,.](?=\d)")
_NON_WORD_RE = re.compile(r"[^0-9a-zа-я.\-\s]+", flags=re.IGNORECASE)
_STRAY_DOT_RE = re.compile(r"(?<!\d)\.|\.(?!\d)")
_MULTISPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Normalize a procurement query for rules-based parsing.

    Normalization is intentionally conservative:
        - Lowercase.
        - Replace `ё` -> `е` and superscript `³` -> `3` ("м³" reads as "м3").
        - Unify decimal separators: "2,5" -> "2.5".
        - Replace other punctuation with spaces.
        - Collapse whitespace.

    The goal is deterministic tokenization, not linguistic lemmatization.
    """

    value = (text or "").strip().lower()
    value = value.replace("ё", "е").replace("³", "3")

    # Normalize common unicode dashes to ASCII hyphen.
    value = value.replace("—", "-").replace("–", "-")

    value = _DECIMAL_COMMA_RE.sub(".", value)
    value = _NON_WORD_RE.sub(" ", value)
    value = _STRAY_DOT_RE.sub(" ", value)
    value = _MULTISPACE_RE.sub(" ", value).strip()
    return value

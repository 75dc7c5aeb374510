"""Query interpretation entry point (heuristic always; external extraction optional)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal

from src.query.llm_parser import ExternalExtractionAdapter
from src.query.matcher import CategoryMatcher
from src.query.merge import merge
from src.query.rules_parser import parse_query_regex
from src.query.schema import ExternalExtraction, ParsedQuery

logger = logging.getLogger(__name__)

ParseSource = Literal["external", "heuristic"]


@dataclass(frozen=True)
class InterpretResult:
    """Final parsed query plus information about which source shaped it."""

    parsed: ParsedQuery
    source: ParseSource


def _finish(
        heuristic: ParsedQuery,
        external: ExternalExtraction | None,
        matcher: CategoryMatcher | None,
) -> InterpretResult:
    merged = merge(heuristic, external, matcher=matcher)
    source: ParseSource = "heuristic" if merged is heuristic else "external"
    return InterpretResult(parsed=merged, source=source)


def interpret_with_source(
        query: str,
        *,
        adapter: ExternalExtractionAdapter | None = None,
        matcher: CategoryMatcher | None = None,
) -> InterpretResult:
    """Interpret a free-text procurement query.

    Strategy:
        1) Always run the deterministic heuristic parser (never fails).
        2) If an adapter is given, ask the external providers for a partial extraction.
        3) Merge; with no external contribution the heuristic result is returned as-is.
    """

    heuristic = parse_query_regex(query, matcher=matcher)
    external = adapter.extract(query) if adapter is not None else None
    return _finish(heuristic, external, matcher)


def interpret(
        query: str,
        *,
        adapter: ExternalExtractionAdapter | None = None,
        matcher: CategoryMatcher | None = None,
) -> ParsedQuery:
    """Interpret text into a `ParsedQuery` (convenience wrapper)."""

    return interpret_with_source(query, adapter=adapter, matcher=matcher).parsed


async def interpret_async(
        query: str,
        *,
        adapter: ExternalExtractionAdapter | None = None,
        matcher: CategoryMatcher | None = None,
        timeout_s: float | None = None,
) -> InterpretResult:
    """Interpret text without blocking the event loop.

    The external step runs in a worker thread bounded by `timeout_s`; a timeout is treated like
    any other provider failure. If the caller is cancelled, the in-flight provider result is
    discarded.
    """

    heuristic = parse_query_regex(query, matcher=matcher)
    if adapter is None or adapter.registry.is_empty:
        return InterpretResult(parsed=heuristic, source="heuristic")

    try:
        external = await asyncio.wait_for(asyncio.to_thread(adapter.extract, query), timeout=timeout_s)
    except TimeoutError:
        logger.warning("external extraction timed out timeout_s=%s", timeout_s)
        external = None

    return _finish(heuristic, external, matcher)

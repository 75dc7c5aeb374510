"""Application composition root.

This module wires together configuration and the external extraction providers for the runtime.
"""

from __future__ import annotations

from dataclasses import dataclass

from src.config.settings import Settings
from src.query.llm_parser import ExternalExtractionAdapter, build_registry
from src.query.matcher import CategoryMatcher


@dataclass(frozen=True)
class App:
    """Shared application dependencies for handlers."""

    settings: Settings
    matcher: CategoryMatcher
    adapter: ExternalExtractionAdapter


def create_app(settings: Settings) -> App:
    """Create the application container.

    Providers are picked once, here, from the credentials present in `settings`.
    """

    matcher = CategoryMatcher()
    adapter = ExternalExtractionAdapter(build_registry(settings), matcher=matcher)
    return App(settings=settings, matcher=matcher, adapter=adapter)

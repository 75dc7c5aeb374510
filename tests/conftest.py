"""Shared pytest fixtures.

External providers are replaced by in-memory fakes: no test performs network I/O.
"""

from __future__ import annotations

from collections.abc import Callable

import pytest

from src.query.llm_parser import ExternalExtractionAdapter, ExtractionError, ExtractorRegistry


class FakeExtractor:
    """An `Extractor` returning a canned response (or raising) and recording its calls."""

    def __init__(self, name: str, response: str | BaseException) -> None:
        self.name = name
        self._response = response
        self.calls: list[str] = []

    def complete(self, query: str) -> str:
        self.calls.append(query)
        if isinstance(self._response, BaseException):
            raise self._response
        return self._response


_SETTINGS_ENV_VARS = (
    "TELEGRAM_BOT_TOKEN",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "OPENAI_API_BASE",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "GEMINI_MODEL",
    "GEMINI_API_BASE",
    "EXTRACTION_TIMEOUT_S",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove settings variables inherited from the developer's shell."""

    for name in _SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_extractor() -> Callable[..., FakeExtractor]:
    def _make(response: str | BaseException, *, name: str = "fake") -> FakeExtractor:
        return FakeExtractor(name, response)

    return _make


@pytest.fixture
def failing_extractor(fake_extractor: Callable[..., FakeExtractor]) -> FakeExtractor:
    return fake_extractor(ExtractionError("HTTP error: 401"), name="broken")


@pytest.fixture
def make_adapter() -> Callable[..., ExternalExtractionAdapter]:
    def _make(*extractors: FakeExtractor) -> ExternalExtractionAdapter:
        return ExternalExtractionAdapter(ExtractorRegistry(extractors=tuple(extractors)))

    return _make

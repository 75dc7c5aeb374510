"""Optional external extraction (LLM providers) for procurement queries.

Providers are only asked for **ExternalExtraction JSON**. Output is located defensively (first
balanced `{...}` span, even inside prose or code fences) and validated against the schema.
Failures never reach the caller: the adapter logs them and falls through to the next provider.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from src.config.settings import Settings
from src.query.matcher import CategoryMatcher
from src.query.schema import ExternalExtraction

logger = logging.getLogger(__name__)


class ExtractionError(RuntimeError):
    """Raised when a provider fails or does not return a usable JSON object."""


@dataclass(frozen=True)
class ProviderConfig:
    """Connection settings for one external provider."""

    api_key: str
    model: str
    api_base: str
    timeout_s: float = 10.0


class Extractor(Protocol):
    """A text-to-structured-data provider: returns raw model text for a query."""

    name: str

    def complete(self, query: str) -> str: ...


def _load_prompt() -> str:
    prompt_path = Path(__file__).resolve().parent / "prompt_extract_v1.md"
    return prompt_path.read_text(encoding="utf-8")


def _post_json(url: str, *, headers: dict[str, str], payload: dict[str, Any], timeout_s: float) -> Any:
    req = Request(
        url,
        method="POST",
        headers={**headers, "Content-Type": "application/json"},
        data=json.dumps(payload).encode(),
    )

    try:
        with urlopen(req, timeout=timeout_s) as resp:  # noqa: S310 (explicit, credential-gated network call)
            body = resp.read()
    except HTTPError as exc:
        raise ExtractionError(f"HTTP error: {exc.code}") from exc
    except URLError as exc:
        raise ExtractionError("connection error") from exc
    except TimeoutError as exc:
        raise ExtractionError("request timed out") from exc

    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise ExtractionError("response body is not JSON") from exc


def _require_text(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ExtractionError("empty model response")
    return value


@dataclass(frozen=True)
class OpenAIChatExtractor:
    """OpenAI-style `/chat/completions` provider."""

    config: ProviderConfig
    name: str = "openai"

    def complete(self, query: str) -> str:
        payload = {
            "model": self.config.model,
            "temperature": 0,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": _load_prompt()},
                {"role": "user", "content": query},
            ],
        }
        decoded = _post_json(
            self.config.api_base.rstrip("/") + "/chat/completions",
            headers={"Authorization": f"Bearer {self.config.api_key}"},
            payload=payload,
            timeout_s=self.config.timeout_s,
        )

        try:
            content = decoded["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ExtractionError("unexpected response format") from exc
        return _require_text(content)


@dataclass(frozen=True)
class GeminiExtractor:
    """Google Gemini `generateContent` provider."""

    config: ProviderConfig
    name: str = "gemini"

    def complete(self, query: str) -> str:
        payload = {
            "systemInstruction": {"parts": [{"text": _load_prompt()}]},
            "contents": [{"role": "user", "parts": [{"text": query}]}],
            "generationConfig": {"temperature": 0, "responseMimeType": "application/json"},
        }
        url = f"{self.config.api_base.rstrip('/')}/models/{self.config.model}:generateContent"
        decoded = _post_json(
            url,
            headers={"x-goog-api-key": self.config.api_key},
            payload=payload,
            timeout_s=self.config.timeout_s,
        )

        try:
            content = decoded["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ExtractionError("unexpected response format") from exc
        return _require_text(content)


def extract_json_object(text: str) -> dict[str, Any]:
    """Decode the first balanced `{...}` span in `text`.

    Braces inside JSON strings are ignored, so prose, code fences and trailing commentary around
    the object do not matter.

    Raises:
        ExtractionError: If no balanced object exists or it is not valid JSON.
    """

    start = (text or "").find("{")
    if start == -1:
        raise ExtractionError("no JSON object in response")

    depth = 0
    in_string = False
    escaped = False
    end = -1
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                end = idx + 1
                break

    if end == -1:
        raise ExtractionError("unbalanced JSON object in response")

    try:
        return json.loads(text[start:end])
    except json.JSONDecodeError as exc:
        raise ExtractionError("model did not return valid JSON") from exc


@dataclass(frozen=True)
class ExtractorRegistry:
    """Ordered external providers; the first one that succeeds wins."""

    extractors: tuple[Extractor, ...] = ()

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(e.name for e in self.extractors)

    @property
    def is_empty(self) -> bool:
        return not self.extractors


def _openai_from_settings(settings: Settings) -> Extractor | None:
    if not settings.openai_api_key:
        return None
    return OpenAIChatExtractor(
        ProviderConfig(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            api_base=settings.openai_api_base,
            timeout_s=settings.extraction_timeout_s,
        )
    )


def _gemini_from_settings(settings: Settings) -> Extractor | None:
    if not settings.gemini_api_key:
        return None
    return GeminiExtractor(
        ProviderConfig(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            api_base=settings.gemini_api_base,
            timeout_s=settings.extraction_timeout_s,
        )
    )


# Fixed priority order. Providers without credentials are skipped, never attempted.
PROVIDER_FACTORIES: tuple[tuple[str, Callable[[Settings], Extractor | None]], ...] = (
    ("openai", _openai_from_settings),
    ("gemini", _gemini_from_settings),
)


def build_registry(settings: Settings) -> ExtractorRegistry:
    """Build the provider registry from the credentials present in `settings`."""

    extractors = []
    for _name, factory in PROVIDER_FACTORIES:
        extractor = factory(settings)
        if extractor is not None:
            extractors.append(extractor)
    return ExtractorRegistry(extractors=tuple(extractors))


class ExternalExtractionAdapter:
    """Try each registered provider in order and return the first usable extraction.

    Returns `None` ("no contribution") when the registry is empty or every provider fails.
    Category labels from providers are mapped onto known category ids; a label that cannot be
    mapped is dropped from the contribution.
    """

    def __init__(
            self,
            registry: ExtractorRegistry,
            *,
            matcher: CategoryMatcher | None = None,
    ) -> None:
        self._registry = registry
        self._matcher = matcher or CategoryMatcher()

    @property
    def registry(self) -> ExtractorRegistry:
        return self._registry

    def extract(self, query: str) -> ExternalExtraction | None:
        for extractor in self._registry.extractors:
            try:
                raw = extractor.complete(query)
                extraction = ExternalExtraction.model_validate(extract_json_object(raw))
            except (ExtractionError, ValueError) as exc:
                # Invalid provider output must never crash the pipeline; try the next provider.
                logger.warning("external extraction failed provider=%s reason=%s", extractor.name, exc)
                continue
            except Exception:  # noqa: BLE001 - adapter boundary: provider bugs degrade to fallback
                logger.exception("external extraction crashed provider=%s", extractor.name)
                continue

            logger.info(
                "external extraction provider=%s contributes=%s",
                extractor.name,
                extraction.contributes,
            )
            return self._resolve_category(extraction)

        return None

    def _resolve_category(self, extraction: ExternalExtraction) -> ExternalExtraction:
        category_id = self._matcher.resolve_label(extraction.category_id)
        if category_id is None:
            category_id = self._matcher.resolve_label(extraction.category)

        definition = self._matcher.get(category_id)
        if definition is None:
            if extraction.category or extraction.category_id:
                logger.info(
                    "unresolved external category label=%r",
                    extraction.category or extraction.category_id,
                )
            return extraction.model_copy(update={"category": None, "category_id": None})

        return extraction.model_copy(
            update={"category": definition.display_name, "category_id": definition.id}
        )

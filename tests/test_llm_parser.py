"""Tests for external extraction: JSON recovery, provider fall-through and HTTP providers.

No real network calls are made: providers are fakes or `urlopen` is monkeypatched.
"""

from __future__ import annotations

import io
import json
from typing import Any
from urllib.error import HTTPError
from urllib.request import Request

import pytest

from src.config.settings import Settings
from src.query.llm_parser import (
    ExtractionError,
    GeminiExtractor,
    OpenAIChatExtractor,
    ProviderConfig,
    build_registry,
    extract_json_object,
)


def test_extract_json_object_from_prose_and_fences() -> None:
    text = 'Конечно! Вот результат:\n```json\n{"category": "Бетон", "volume": 10}\n```\nГотово.'
    assert extract_json_object(text) == {"category": "Бетон", "volume": 10}


def test_extract_json_object_ignores_braces_in_strings() -> None:
    text = 'x {"grade": "М300 {class} \\"B22.5\\"", "nested": {"a": 1}} tail }'
    assert extract_json_object(text) == {"grade": 'М300 {class} "B22.5"', "nested": {"a": 1}}


@pytest.mark.parametrize("text", ["", "no json here", '{"a": 1', "{not json}"])
def test_extract_json_object_rejects_unusable_text(text: str) -> None:
    with pytest.raises(ExtractionError):
        extract_json_object(text)


def test_adapter_falls_through_to_next_provider(fake_extractor, failing_extractor, make_adapter) -> None:
    second = fake_extractor('{"category": "Бетон", "volume": 10, "unit": "м3"}', name="second")
    adapter = make_adapter(failing_extractor, second)

    extraction = adapter.extract("10 кубов бетона")

    assert extraction is not None
    assert extraction.category_id == "concrete"
    assert extraction.category == "Бетон"
    assert extraction.volume == "10"
    assert failing_extractor.calls == ["10 кубов бетона"]
    assert second.calls == ["10 кубов бетона"]


def test_adapter_stops_at_first_success(fake_extractor, make_adapter) -> None:
    first = fake_extractor('{"city": "Шымкент"}', name="first")
    second = fake_extractor('{"city": "Алматы"}', name="second")

    extraction = make_adapter(first, second).extract("песок")

    assert extraction is not None
    assert extraction.city == "Шымкент"
    assert second.calls == []


@pytest.mark.parametrize(
    "bad_response",
    [
        "sorry, I cannot help",
        '{"volume": true}',
        ZeroDivisionError("provider bug"),
    ],
)
def test_adapter_skips_unusable_provider_output(fake_extractor, make_adapter, bad_response: Any) -> None:
    good = fake_extractor('{"delivery": true}', name="good")
    extraction = make_adapter(fake_extractor(bad_response, name="bad"), good).extract("песок")

    assert extraction is not None
    assert extraction.delivery is True


def test_adapter_returns_none_when_every_provider_fails(failing_extractor, make_adapter) -> None:
    assert make_adapter(failing_extractor).extract("бетон") is None
    assert make_adapter().extract("бетон") is None


def test_adapter_drops_unresolvable_category(fake_extractor, make_adapter) -> None:
    provider = fake_extractor('{"category": "Космические материалы", "volume": "5"}')

    extraction = make_adapter(provider).extract("что-то 5")

    assert extraction is not None
    assert extraction.category is None
    assert extraction.category_id is None
    assert extraction.volume == "5"


class _FakeResponse(io.BytesIO):
    pass


def _install_urlopen(monkeypatch: pytest.MonkeyPatch, body: dict[str, Any]) -> list[Request]:
    requests: list[Request] = []

    def _fake_urlopen(req: Request, timeout: float) -> _FakeResponse:
        requests.append(req)
        return _FakeResponse(json.dumps(body).encode())

    monkeypatch.setattr("src.query.llm_parser.urlopen", _fake_urlopen)
    return requests


def _config() -> ProviderConfig:
    return ProviderConfig(api_key="secret", model="test-model", api_base="https://llm.test/v1/", timeout_s=3)


def test_openai_extractor_posts_chat_completion(monkeypatch: pytest.MonkeyPatch) -> None:
    requests = _install_urlopen(
        monkeypatch, {"choices": [{"message": {"content": '{"category": "Бетон"}'}}]}
    )

    content = OpenAIChatExtractor(_config()).complete("бетон")

    assert content == '{"category": "Бетон"}'
    (req,) = requests
    assert req.full_url == "https://llm.test/v1/chat/completions"
    assert req.get_header("Authorization") == "Bearer secret"
    payload = json.loads(req.data)
    assert payload["model"] == "test-model"
    assert payload["messages"][-1] == {"role": "user", "content": "бетон"}


def test_gemini_extractor_posts_generate_content(monkeypatch: pytest.MonkeyPatch) -> None:
    requests = _install_urlopen(
        monkeypatch,
        {"candidates": [{"content": {"parts": [{"text": '{"location": "Шымкент"}'}]}}]},
    )

    content = GeminiExtractor(_config()).complete("песок в Шымкент")

    assert content == '{"location": "Шымкент"}'
    (req,) = requests
    assert req.full_url == "https://llm.test/v1/models/test-model:generateContent"
    assert req.get_header("X-goog-api-key") == "secret"


def test_extractor_rejects_unexpected_response_shape(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_urlopen(monkeypatch, {"choices": []})
    with pytest.raises(ExtractionError):
        OpenAIChatExtractor(_config()).complete("бетон")


def test_extractor_maps_http_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_urlopen(req: Request, timeout: float) -> Any:
        raise HTTPError(req.full_url, 401, "Unauthorized", hdrs=None, fp=None)  # type: ignore[arg-type]

    monkeypatch.setattr("src.query.llm_parser.urlopen", _fake_urlopen)

    with pytest.raises(ExtractionError, match="401"):
        GeminiExtractor(_config()).complete("бетон")


def test_build_registry_orders_configured_providers(clean_env: None) -> None:
    settings = Settings(_env_file=None, OPENAI_API_KEY="sk-test", GOOGLE_API_KEY="g-test")
    assert build_registry(settings).names == ("openai", "gemini")


def test_build_registry_skips_providers_without_credentials(clean_env: None) -> None:
    only_gemini = Settings(_env_file=None, GEMINI_API_KEY="g-test", OPENAI_API_KEY="  ")
    assert build_registry(only_gemini).names == ("gemini",)
    assert build_registry(Settings(_env_file=None)).is_empty

"""aiogram message handlers.

Hard contract: every incoming message gets exactly one reply. A procurement query is answered
with a short summary of how it was understood, or with a clarification prompt when confidence is
low. On any internal error the user gets a fixed apology and the error is logged internally.
"""

from __future__ import annotations

import logging
from time import monotonic

from aiogram.types import Message

from src.app import App
from src.pricing.aggregator import format_quantity_summary
from src.query.parser import interpret_async
from src.query.schema import ParsedQuery

logger = logging.getLogger(__name__)

USAGE_TEXT = (
    "Опишите, что нужно купить, например: «бетон М300 10 кубов с доставкой в Шымкент»."
)
ERROR_TEXT = "Не удалось обработать запрос. Попробуйте сформулировать его иначе."


def _is_command_text(text: str) -> bool:
    return text.lstrip().startswith("/")


def _quantity_text(parsed: ParsedQuery) -> str | None:
    summary = format_quantity_summary(parsed)
    if summary:
        return summary
    if parsed.volume:
        return f"{parsed.volume} {parsed.unit or ''}".strip()
    return None


def format_reply(parsed: ParsedQuery) -> str:
    """Render a parsed query as a short Russian reply."""

    if parsed.needs_clarification:
        lines = ["Не удалось точно определить, какой материал нужен."]
        if parsed.suggestions:
            labels = ", ".join(s.label for s in parsed.suggestions)
            lines.append(f"Возможно, вы ищете: {labels}?")
        return "\n".join(lines)

    lines = [f"Категория: {parsed.category}"]
    quantity = _quantity_text(parsed)
    if quantity:
        lines.append(f"Объём: {quantity}")
    if parsed.grade:
        lines.append(f"Марка: {parsed.grade}")
    if parsed.city:
        lines.append(f"Город: {parsed.city}")
    if parsed.delivery is True:
        lines.append("Доставка: нужна")
    elif parsed.delivery is False:
        lines.append("Доставка: самовывоз")
    if parsed.suggestions:
        labels = ", ".join(s.label for s in parsed.suggestions)
        lines.append(f"Также подходит: {labels}")
    return "\n".join(lines)


def _external_budget_s(app: App) -> float:
    # Each provider is bounded by its own request timeout; allow the whole chain to run.
    providers = len(app.adapter.registry.extractors)
    return app.settings.extraction_timeout_s * max(providers, 1)


async def handle_message(message: Message, app: App) -> None:
    """Handle any incoming Telegram message and reply exactly once."""

    started = monotonic()
    reply = ERROR_TEXT

    raw_text = message.text or message.caption or ""
    if not raw_text.strip() or _is_command_text(raw_text):
        await message.answer(USAGE_TEXT)
        return

    # noinspection PyBroadException
    try:
        result = await interpret_async(
            raw_text,
            adapter=app.adapter,
            matcher=app.matcher,
            timeout_s=_external_budget_s(app),
        )
        reply = format_reply(result.parsed)

        latency_ms = int((monotonic() - started) * 1000)
        logger.info(
            "handled source=%s category=%s confidence=%.2f latency_ms=%d",
            result.source,
            result.parsed.category_id,
            result.parsed.confidence,
            latency_ms,
        )
    except Exception:
        # Handler boundary: any internal error must still produce a reply, without leaking details.
        logger.exception("handler failed")

    await message.answer(reply)

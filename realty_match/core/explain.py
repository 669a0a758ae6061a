from __future__ import annotations

import asyncio
import logging
from typing import Any

from realty_match.core.models import Listing, MatchBreakdown, Query


LOGGER = logging.getLogger(__name__)

STRONG_THRESHOLD = 8.0
WEAK_THRESHOLD = 4.0
NEUTRAL_EXPLANATION = "Объект имеет средние показатели по всем критериям."

FACTOR_PHRASES: dict[str, tuple[str, str]] = {
    # factor: (strength, weakness)
    "transport": ("отличная транспортная доступность", "далеко от ключевых точек"),
    "price": ("хорошая цена", "цена выше бюджета"),
    "schools": ("рядом школы и детские сады", "мало образовательных учреждений"),
    "parks": ("много зеленых зон", "мало парков поблизости"),
    "metro": ("метро в шаговой доступности", "далеко до метро"),
    "parking": ("есть парковка", "нет парковки"),
    "liquidity": ("высокая ликвидность", "низкая ликвидность"),
    "constructionStage": ("дом почти готов", "ранняя стадия строительства"),
    "infrastructure": ("развитая инфраструктура", "слабая инфраструктура"),
}

ASSISTED_SYSTEM_PROMPT = (
    "Ты помощник по подбору недвижимости. Объясни покупателю в 2-3 коротких "
    "предложениях, почему объект подходит или не подходит под его критерии. "
    "Опирайся только на переданные оценки факторов (0-10). Без markdown."
)
MAX_ASSISTED_LENGTH = 600


def explain(breakdown: MatchBreakdown) -> str:
    strong: list[str] = []
    weak: list[str] = []
    for factor, score in breakdown.items():
        if score >= STRONG_THRESHOLD:
            strong.append(describe_factor(factor, positive=True))
        elif score <= WEAK_THRESHOLD:
            weak.append(describe_factor(factor, positive=False))

    parts: list[str] = []
    if strong:
        parts.append(f"✅ Преимущества: {', '.join(strong)}.")
    if weak:
        parts.append(f"⚠️ Недостатки: {', '.join(weak)}.")
    if not parts:
        return NEUTRAL_EXPLANATION
    return "\n\n".join(parts)


def describe_factor(factor: str, positive: bool) -> str:
    phrases = FACTOR_PHRASES.get(factor)
    if phrases is None:
        return factor
    return phrases[0] if positive else phrases[1]


class RuleBasedExplainer:
    async def explain(self, listing: Listing, breakdown: MatchBreakdown, query: Query) -> str:
        return explain(breakdown)


class AssistedExplainer:
    """
    Model-written rationale. Any failure (timeout, API error, empty or
    oversized output) falls back to the rule-based text.
    """

    def __init__(self, client: Any, model: str = "gpt-4o-mini", timeout_seconds: float = 10.0) -> None:
        self.client = client
        self.model = model
        self.timeout_seconds = timeout_seconds

    async def explain(self, listing: Listing, breakdown: MatchBreakdown, query: Query) -> str:
        fallback = explain(breakdown)
        try:
            text = await asyncio.wait_for(self._complete(listing, breakdown, query), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            LOGGER.warning("Assisted explanation timed out listing=%s", listing.id)
            return fallback
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Assisted explanation failed listing=%s error=%s", listing.id, exc)
            return fallback

        cleaned = (text or "").strip() if isinstance(text, str) else ""
        if not cleaned or len(cleaned) > MAX_ASSISTED_LENGTH:
            LOGGER.warning("Assisted explanation rejected listing=%s length=%s", listing.id, len(cleaned))
            return fallback
        return cleaned

    async def _complete(self, listing: Listing, breakdown: MatchBreakdown, query: Query) -> str | None:
        response = await self.client.chat.completions.create(
            model=self.model,
            max_tokens=200,
            temperature=0.3,
            messages=[
                {"role": "system", "content": ASSISTED_SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(listing, breakdown, query)},
            ],
        )
        return response.choices[0].message.content


def build_prompt(listing: Listing, breakdown: MatchBreakdown, query: Query) -> str:
    scores = ", ".join(f"{factor}={score:.1f}" for factor, score in sorted(breakdown.items()))
    budget = f"{query.budget.min or '-'}..{query.budget.max or '-'}"
    return (
        f"Объект: {listing.title}, {listing.address}. Цена {listing.price:.0f}, "
        f"{listing.rooms} комн., {listing.area:.0f} м².\n"
        f"Бюджет покупателя: {budget}.\n"
        f"Оценки факторов: {scores or 'нет данных'}."
    )

import asyncio
from types import SimpleNamespace

from realty_match.core.explain import (
    NEUTRAL_EXPLANATION,
    AssistedExplainer,
    RuleBasedExplainer,
    build_prompt,
    explain,
)
from realty_match.core.models import Budget, Listing, Query


LISTING = Listing(
    provider="cian",
    external_id="1",
    title="2-комн. Квартира",
    address="ул. Тверская, 7",
    lat=55.76,
    lng=37.61,
    price=9_000_000,
    rooms=2,
    area=54.0,
)
QUERY = Query(budget=Budget(min=5_000_000, max=10_000_000))


def _fake_client(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def _completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def test_strengths_and_weaknesses_are_listed():
    text = explain({"price": 10, "metro": 9, "parks": 2, "transport": 6})
    assert text == (
        "✅ Преимущества: хорошая цена, метро в шаговой доступности.\n\n"
        "⚠️ Недостатки: мало парков поблизости."
    )


def test_middling_scores_give_neutral_text():
    assert explain({"price": 6, "transport": 5}) == NEUTRAL_EXPLANATION
    assert explain({}) == NEUTRAL_EXPLANATION


def test_unknown_factor_uses_its_name():
    assert explain({"view": 9.5}) == "✅ Преимущества: view."


def test_rule_based_explainer_is_deterministic():
    breakdown = {"parking": 0, "liquidity": 8}
    first = asyncio.run(RuleBasedExplainer().explain(LISTING, breakdown, QUERY))
    second = asyncio.run(RuleBasedExplainer().explain(LISTING, breakdown, QUERY))
    assert first == second == "✅ Преимущества: высокая ликвидность.\n\n⚠️ Недостатки: нет парковки."


def test_assisted_explainer_returns_model_text():
    calls = []

    async def create(**kwargs):
        calls.append(kwargs)
        return _completion("  Квартира укладывается в бюджет и близко к метро.  ")

    explainer = AssistedExplainer(_fake_client(create), model="test-model")
    text = asyncio.run(explainer.explain(LISTING, {"price": 10}, QUERY))

    assert text == "Квартира укладывается в бюджет и близко к метро."
    assert calls[0]["model"] == "test-model"
    assert "price=10.0" in calls[0]["messages"][1]["content"]


def test_assisted_explainer_falls_back_on_error():
    async def create(**kwargs):
        raise RuntimeError("quota exceeded")

    explainer = AssistedExplainer(_fake_client(create))
    assert asyncio.run(explainer.explain(LISTING, {"price": 10}, QUERY)) == explain({"price": 10})


def test_assisted_explainer_falls_back_on_timeout():
    async def create(**kwargs):
        await asyncio.sleep(1)
        return _completion("too late")

    explainer = AssistedExplainer(_fake_client(create), timeout_seconds=0.01)
    assert asyncio.run(explainer.explain(LISTING, {"parks": 1}, QUERY)) == explain({"parks": 1})


def test_assisted_explainer_rejects_empty_or_oversized_text():
    for text in ("", None, "x" * 601):

        async def create(**kwargs):
            return _completion(text)

        explainer = AssistedExplainer(_fake_client(create))
        assert asyncio.run(explainer.explain(LISTING, {"price": 6}, QUERY)) == NEUTRAL_EXPLANATION


def test_prompt_mentions_listing_and_budget():
    prompt = build_prompt(LISTING, {"metro": 9, "price": 10}, QUERY)
    assert "ул. Тверская, 7" in prompt
    assert "5000000..10000000" in prompt
    assert "metro=9.0, price=10.0" in prompt

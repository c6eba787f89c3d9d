from __future__ import annotations

import datetime as dt
import json
import logging
from types import SimpleNamespace

import pytest

from finance_tracker.config import AIConfig
from finance_tracker.data_loader import Entry
from finance_tracker.errors import BudgetSuggestionError, ConfigError
from finance_tracker.suggest import (
    GENERIC_ERROR,
    NO_TRANSACTIONS_ERROR,
    BudgetAdvisor,
    BudgetAllocation,
    apply_budget_plan,
    build_prompt,
    format_transaction_history,
    get_budget_suggestion,
    parse_suggestion,
)

_PAYLOAD = {
    "budgetPlan": [
        {"category": "Comida", "amount": 300},
        {"category": "Metas", "amount": 150.5},
    ],
    "recommendation": "### Plan\n- Cocina en casa\n- Ahorra **más**",
}


def _entry(type: str, category: str, amount: float, description: str) -> Entry:
    return Entry(type=type, category=category, amount=amount, description=description, date=dt.date(2024, 7, 21))


class FakeCompletions:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        message = SimpleNamespace(content=outcome)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(*outcomes) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(outcomes)))


class RateLimitError(Exception):
    pass


def _advisor(client, **kwargs) -> BudgetAdvisor:
    return BudgetAdvisor(AIConfig(model="gpt-test", max_retries=3, backoff_seconds=0.0), client=client, **kwargs)


def test_format_transaction_history_skips_income() -> None:
    txns = [
        _entry("expense", "Comida", 15.5, "Almuerzo en la cafetería"),
        _entry("income", "Beca", 200, "Beca"),
        _entry("expense", "Transporte", 2, "Pasaje de bus"),
    ]
    assert format_transaction_history(txns) == (
        "- Categoria: Comida, Monto: S/15.50, Desc: Almuerzo en la cafetería\n"
        "- Categoria: Transporte, Monto: S/2.00, Desc: Pasaje de bus"
    )


def test_build_prompt_mentions_budget_categories_and_history() -> None:
    messages = build_prompt(800, "- Categoria: Ocio, Monto: S/25.00, Desc: Cine", ["Comida", "Metas"])
    assert [m["role"] for m in messages] == ["system", "user"]
    user = messages[1]["content"]
    assert "Comida, Metas" in user
    assert "Total Monthly Budget: S/800" in user
    assert "Desc: Cine" in user
    assert "avoid raw HTML" in user
    assert "JSON" in messages[0]["content"]


def test_parse_suggestion_accepts_schema_payload() -> None:
    suggestion = parse_suggestion(json.dumps(_PAYLOAD))
    assert suggestion.budget_plan[1] == BudgetAllocation(category="Metas", amount=150.5)
    assert suggestion.recommendation.startswith("### Plan")
    assert suggestion.recommendation_html is None


@pytest.mark.parametrize("content", [None, "", "not json", json.dumps({"recommendation": "x"})])
def test_parse_suggestion_rejects_bad_payloads(content) -> None:
    with pytest.raises(BudgetSuggestionError):
        parse_suggestion(content)


def test_advisor_requires_api_key(monkeypatch) -> None:
    monkeypatch.delenv("FT_TEST_KEY", raising=False)
    with pytest.raises(ConfigError, match="FT_TEST_KEY"):
        BudgetAdvisor(AIConfig(api_key_env="FT_TEST_KEY"))


def test_advisor_sends_structured_request() -> None:
    client = _client(json.dumps(_PAYLOAD))
    advisor = _advisor(client)
    suggestion = advisor.suggest(500, "- Categoria: Comida, Monto: S/10.00, Desc: x")
    call = client.chat.completions.calls[0]
    assert call["model"] == "gpt-test"
    assert call["response_format"]["type"] == "json_schema"
    assert call["response_format"]["json_schema"]["schema"]["required"] == ["budgetPlan", "recommendation"]
    assert len(suggestion.budget_plan) == 2


def test_advisor_retries_transient_errors(caplog) -> None:
    client = _client(RateLimitError("slow down"), json.dumps(_PAYLOAD))
    advisor = _advisor(client)
    with caplog.at_level(logging.WARNING, logger="finance_tracker.suggest"):
        suggestion = advisor.suggest(500, "")
    assert len(client.chat.completions.calls) == 2
    assert suggestion.recommendation
    assert "retrying" in caplog.text


def test_advisor_does_not_retry_other_errors() -> None:
    client = _client(KeyError("boom"), json.dumps(_PAYLOAD))
    with pytest.raises(KeyError):
        _advisor(client).suggest(500, "")
    assert len(client.chat.completions.calls) == 1


def test_advisor_gives_up_after_max_retries() -> None:
    client = _client(RateLimitError("1"), RateLimitError("2"), RateLimitError("3"))
    with pytest.raises(RateLimitError):
        _advisor(client).suggest(500, "")
    assert len(client.chat.completions.calls) == 3


def test_get_budget_suggestion_renders_recommendation() -> None:
    advisor = _advisor(_client(json.dumps(_PAYLOAD)))
    result = get_budget_suggestion(advisor, [_entry("expense", "Comida", 10, "Pan")], 800)
    assert result.success
    assert result.error is None
    assert result.data.recommendation_html == (
        "<h3>Plan</h3><ul><li>Cocina en casa</li><li>Ahorra <strong>más</strong></li></ul>"
    )
    body = result.to_dict()
    assert body["success"] is True
    assert body["data"]["budget_plan"][0] == {"category": "Comida", "amount": 300.0}


def test_get_budget_suggestion_without_transactions() -> None:
    advisor = _advisor(_client())
    result = get_budget_suggestion(advisor, None, 800)
    assert not result.success
    assert result.error == NO_TRANSACTIONS_ERROR
    assert advisor._client.chat.completions.calls == []


def test_get_budget_suggestion_reports_failures(caplog) -> None:
    advisor = _advisor(_client("{}"))
    with caplog.at_level(logging.ERROR, logger="finance_tracker.suggest"):
        result = get_budget_suggestion(advisor, [], 800)
    assert not result.success
    assert result.error == GENERIC_ERROR
    assert result.to_dict() == {"success": False, "error": GENERIC_ERROR}
    assert "Error getting budget suggestion" in caplog.text


def test_apply_budget_plan_fills_every_category() -> None:
    plan = [
        BudgetAllocation(category="Metas", amount=100),
        BudgetAllocation(category="Viajes", amount=50),
        BudgetAllocation(category="Comida", amount=200),
    ]
    out = apply_budget_plan(plan, ["Comida", "Transporte", "Metas"])
    assert [(a.category, a.amount) for a in out] == [("Comida", 200), ("Transporte", 0.0), ("Metas", 100)]

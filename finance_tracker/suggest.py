"""AI budget suggestions.

Builds a prompt from the user's monthly budget and expense history, asks the
OpenAI chat completions API for a JSON object with per-category allocations
and a markdown recommendation, and validates the answer with pydantic.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import DEFAULT_CURRENCY, DEFAULT_EXPENSE_CATEGORIES, DEFAULT_GOALS_CATEGORY, AIConfig
from .errors import BudgetSuggestionError, ConfigError
from .render import render_markdown

logger = logging.getLogger("finance_tracker.suggest")

NO_TRANSACTIONS_ERROR = "No transactions available."
GENERIC_ERROR = "Failed to get budget suggestion."


class BudgetAllocation(BaseModel):
    category: str
    amount: float


class BudgetSuggestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    budget_plan: List[BudgetAllocation] = Field(alias="budgetPlan")
    recommendation: str
    recommendation_html: Optional[str] = Field(default=None, alias="recommendationHtml")


@dataclass
class SuggestionResult:
    success: bool
    data: Optional[BudgetSuggestion] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = self.data.model_dump()
        if self.error is not None:
            out["error"] = self.error
        return out


_RESPONSE_FORMAT: Dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "budget_suggestion",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "budgetPlan": {
                    "type": "array",
                    "description": "An array of budget allocations for each category.",
                    "items": {
                        "type": "object",
                        "properties": {
                            "category": {"type": "string"},
                            "amount": {"type": "number"},
                        },
                        "required": ["category", "amount"],
                        "additionalProperties": False,
                    },
                },
                "recommendation": {"type": "string"},
            },
            "required": ["budgetPlan", "recommendation"],
            "additionalProperties": False,
        },
    },
}

_SYSTEM_PROMPT = (
    "You are a friendly and encouraging personal finance advisor for university students. "
    "Your goal is to create a realistic and helpful monthly budget. "
    "The output MUST be a valid JSON object matching the output schema."
)

_USER_TEMPLATE = """You will receive the user's total monthly budget (which could be their income or a manually set amount) and their recent expense history.

Based on this data, your task is to:
1. Create a suggested budget allocation for each of the following standard categories: {categories}.
2. Ensure the total of your suggested budget does not exceed the user's total monthly budget. Prioritize savings in the '{goals_category}' category if possible.
3. If a category has no spending, you can allocate a small amount or zero.
4. Write a 'recommendation' text using Markdown. Use friendly emojis where appropriate and make the text visually pleasant. This should include:
  - A section explaining your allocations (e.g. '#### ¿Cómo distribuí tu presupuesto?').
  - A section with concrete suggestions for improvement using bullet points (e.g. '#### Sugerencias para mejorar').
  - A concluding, motivational sentence.

Use headings (###, ####), paragraphs and bullet lists. Keep sentences short and avoid raw HTML. The output must be valid Markdown.

Total Monthly Budget: {currency}{total_income}
Transaction History:
{transaction_history}"""


def format_transaction_history(transactions: Iterable, currency: str = DEFAULT_CURRENCY) -> str:
    """Serialize expenses as one ``- Categoria: ..., Monto: ..., Desc: ...`` line each."""
    return "\n".join(
        f"- Categoria: {t.category}, Monto: {currency}{float(t.amount):.2f}, Desc: {t.description}"
        for t in transactions
        if t.type == "expense"
    )


def build_prompt(
    total_income: float,
    transaction_history: str,
    categories: Optional[List[str]] = None,
    currency: str = DEFAULT_CURRENCY,
    goals_category: str = DEFAULT_GOALS_CATEGORY,
) -> List[Dict[str, str]]:
    user = _USER_TEMPLATE.format(
        categories=", ".join(categories or DEFAULT_EXPENSE_CATEGORIES),
        goals_category=goals_category,
        currency=currency,
        total_income=f"{float(total_income):g}",
        transaction_history=transaction_history,
    )
    return [{"role": "system", "content": _SYSTEM_PROMPT}, {"role": "user", "content": user}]


def _is_retryable(exc: BaseException) -> bool:
    """Return True for transient API errors worth retrying."""
    cls_name = type(exc).__name__
    if cls_name in ("RateLimitError", "APITimeoutError", "APIConnectionError", "InternalServerError"):
        return True
    if cls_name == "APIStatusError":
        return int(getattr(exc, "status_code", 0)) >= 500
    return isinstance(exc, (TimeoutError, ConnectionError))


def parse_suggestion(content: Optional[str]) -> BudgetSuggestion:
    if not isinstance(content, str) or not content.strip():
        raise BudgetSuggestionError("Text-generation service returned empty content.")
    try:
        return BudgetSuggestion.model_validate(json.loads(content))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise BudgetSuggestionError(f"Invalid budget suggestion payload: {exc}") from exc


class BudgetAdvisor:
    def __init__(
        self,
        config: Optional[AIConfig] = None,
        client: Any = None,
        categories: Optional[List[str]] = None,
        currency: str = DEFAULT_CURRENCY,
        goals_category: str = DEFAULT_GOALS_CATEGORY,
    ) -> None:
        self.config = config or AIConfig()
        self.categories = list(categories or DEFAULT_EXPENSE_CATEGORIES)
        self.currency = currency
        self.goals_category = goals_category
        if client is None:
            api_key = (os.environ.get(self.config.api_key_env) or "").strip()
            if not api_key:
                raise ConfigError(f"Missing API key: set {self.config.api_key_env} in the environment.")
            from openai import OpenAI

            client = OpenAI(api_key=api_key)
        self._client = client

    def _complete(self, messages: List[Dict[str, str]]) -> Optional[str]:
        """Call the chat completions API, retrying transient errors with backoff."""
        retries = self.config.max_retries
        for attempt in range(retries):
            try:
                resp = self._client.chat.completions.create(
                    model=self.config.model,
                    messages=messages,
                    response_format=_RESPONSE_FORMAT,
                )
                return resp.choices[0].message.content
            except Exception as exc:
                if not _is_retryable(exc) or attempt >= retries - 1:
                    raise
                delay = self.config.backoff_seconds * (2**attempt)
                logger.warning(
                    "OpenAI API error (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1,
                    retries,
                    delay,
                    exc,
                )
                time.sleep(delay)
        raise BudgetSuggestionError("No attempts were made.")

    def suggest(self, total_income: float, transaction_history: str) -> BudgetSuggestion:
        messages = build_prompt(
            total_income,
            transaction_history,
            self.categories,
            currency=self.currency,
            goals_category=self.goals_category,
        )
        logger.debug("Requesting budget suggestion with model %s", self.config.model)
        return parse_suggestion(self._complete(messages))


def get_budget_suggestion(
    advisor: BudgetAdvisor,
    transactions: Optional[Iterable],
    total_income: float,
) -> SuggestionResult:
    """Run the suggestion flow and attach an HTML rendering of the recommendation.

    Failures are logged and reported through the result instead of raised.
    """
    if transactions is None:
        return SuggestionResult(success=False, error=NO_TRANSACTIONS_ERROR)
    try:
        history = format_transaction_history(transactions, advisor.currency)
        suggestion = advisor.suggest(total_income, history)
    except Exception:
        logger.exception("Error getting budget suggestion")
        return SuggestionResult(success=False, error=GENERIC_ERROR)
    if suggestion.recommendation:
        suggestion.recommendation_html = render_markdown(suggestion.recommendation)
    return SuggestionResult(success=True, data=suggestion)


def apply_budget_plan(plan: Iterable[BudgetAllocation], categories: Optional[List[str]] = None) -> List[BudgetAllocation]:
    """One allocation per standard category, in category order.

    Categories the plan leaves out get zero; plan entries outside the standard
    list are ignored.
    """
    by_category = {}
    for item in plan:
        by_category.setdefault(item.category, item.amount)
    return [
        BudgetAllocation(category=c, amount=by_category.get(c, 0.0))
        for c in (categories or DEFAULT_EXPENSE_CATEGORIES)
    ]

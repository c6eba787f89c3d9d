"""Configuration utilities for the Finance Tracker.

Provides the default transaction categories and AI settings, and a helper to
load user overrides from a JSON file.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .errors import ConfigError


DEFAULT_EXPENSE_CATEGORIES: List[str] = [
    "Comida",
    "Transporte",
    "Ocio",
    "Estudios",
    "Salud",
    "Ropa",
    "Metas",
    "Otros",
]
DEFAULT_INCOME_CATEGORIES: List[str] = ["Sueldo", "Beca", "Venta", "Regalo", "Automático", "Otros"]

DEFAULT_CURRENCY = "S/"
DEFAULT_GOALS_CATEGORY = "Metas"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_API_KEY_ENV = "OPENAI_API_KEY"


@dataclass
class AIConfig:
    model: str = DEFAULT_MODEL
    api_key_env: str = DEFAULT_API_KEY_ENV
    max_retries: int = 4
    backoff_seconds: float = 1.0


@dataclass
class AppConfig:
    expense_categories: List[str] = field(default_factory=lambda: list(DEFAULT_EXPENSE_CATEGORIES))
    income_categories: List[str] = field(default_factory=lambda: list(DEFAULT_INCOME_CATEGORIES))
    currency: str = DEFAULT_CURRENCY
    goals_category: str = DEFAULT_GOALS_CATEGORY
    ai: AIConfig = field(default_factory=AIConfig)

    @staticmethod
    def load(config_path: Optional[str | Path] = None) -> "AppConfig":
        """Load config from JSON if provided, else use defaults.

        JSON format:
        {
          "expense_categories": ["Comida", "Transporte"],
          "income_categories": ["Sueldo"],
          "currency": "S/",
          "goals_category": "Metas",
          "ai": {"model": "gpt-4o-mini", "api_key_env": "OPENAI_API_KEY", "max_retries": 4}
        }
        """

        cfg = AppConfig()
        if not config_path:
            return cfg
        p = Path(config_path)
        if not p.exists():
            return cfg
        with p.open("r", encoding="utf-8") as f:
            try:
                raw = json.load(f)
            except json.JSONDecodeError as exc:
                raise ConfigError(f"{p.name}: invalid JSON ({exc})") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"{p.name}: expected a JSON object at the top level")

        if isinstance(raw.get("expense_categories"), list):
            cfg.expense_categories = [str(c) for c in raw["expense_categories"] if str(c).strip()]
        if isinstance(raw.get("income_categories"), list):
            cfg.income_categories = [str(c) for c in raw["income_categories"] if str(c).strip()]
        if raw.get("currency"):
            cfg.currency = str(raw["currency"])
        if raw.get("goals_category"):
            cfg.goals_category = str(raw["goals_category"])

        ai = raw.get("ai")
        if isinstance(ai, dict):
            try:
                cfg.ai = AIConfig(
                    model=str(ai.get("model", DEFAULT_MODEL)),
                    api_key_env=str(ai.get("api_key_env", DEFAULT_API_KEY_ENV)),
                    max_retries=int(ai.get("max_retries", 4)),
                    backoff_seconds=float(ai.get("backoff_seconds", 1.0)),
                )
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"{p.name}: invalid ai settings ({exc})") from exc
            if cfg.ai.max_retries < 1:
                raise ConfigError(f"{p.name}: ai.max_retries must be at least 1")
        return cfg

"""Analytics and trend calculations.

Functions that compute summaries and trends from transactions. A transaction
is anything with ``type`` ("income" or "expense"), a positive ``amount``,
``category`` and ``date`` attributes.
"""

from __future__ import annotations

import datetime as dt
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence

WARNING_THRESHOLD = 80.0


def month_key(d: dt.date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def _as_date(value) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    return value


def _is_expense(t) -> bool:
    return t.type == "expense"


def _is_income(t) -> bool:
    return t.type == "income"


def filter_month(txns: Iterable, year: int, month: int) -> List:
    return [t for t in txns if _as_date(t.date).year == year and _as_date(t.date).month == month]


def filter_range(txns: Iterable, start: Optional[dt.date], end: Optional[dt.date]) -> List:
    return [
        t
        for t in txns
        if (start is None or _as_date(t.date) >= start) and (end is None or _as_date(t.date) <= end)
    ]


def summarize_income_expense(txns: Iterable) -> Dict[str, float]:
    txns = list(txns)
    income = sum(t.amount for t in txns if _is_income(t))
    expense = sum(t.amount for t in txns if _is_expense(t))
    net = income - expense
    return {"income": round(income, 2), "expense": round(expense, 2), "net": round(net, 2)}


def spending_by_category(txns: Iterable) -> Dict[str, float]:
    totals: Dict[str, float] = defaultdict(float)
    for t in txns:
        if _is_expense(t):
            totals[t.category or "Otros"] += t.amount
    return {k: round(v, 2) for k, v in sorted(totals.items(), key=lambda kv: kv[1], reverse=True)}


def monthly_totals(txns: Iterable) -> Dict[str, Dict[str, float]]:
    months: Dict[str, Dict[str, float]] = defaultdict(lambda: {"income": 0.0, "expense": 0.0, "net": 0.0})
    for t in txns:
        m = month_key(_as_date(t.date))
        if _is_income(t):
            months[m]["income"] += t.amount
        elif _is_expense(t):
            months[m]["expense"] += t.amount
        months[m]["net"] = months[m]["income"] - months[m]["expense"]
    # Round
    return {m: {k: round(v, 2) for k, v in vals.items()} for m, vals in sorted(months.items())}


def _subtract_months(value: dt.date, months: int) -> dt.date:
    year = value.year
    month = value.month - months
    while month <= 0:
        month += 12
        year -= 1
    return dt.date(year, month, 1)


def last_n_months(txns: Iterable, n: int = 6, today: Optional[dt.date] = None) -> List[Dict]:
    """Income/expense per month for the ``n`` months ending at ``today``.

    Months without activity are included with zero totals so charts keep a
    fixed width.
    """
    today = today or dt.date.today()
    totals = monthly_totals(txns)
    trend: List[Dict] = []
    for back in range(n - 1, -1, -1):
        key = month_key(_subtract_months(today, back))
        vals = totals.get(key, {"income": 0.0, "expense": 0.0})
        trend.append({"month": key, "income": vals["income"], "expense": vals["expense"]})
    return trend


def weekly_expenses(txns: Iterable, today: Optional[dt.date] = None) -> List[Dict]:
    """Daily expense totals for the Monday-to-Sunday week containing ``today``."""
    today = today or dt.date.today()
    monday = today - dt.timedelta(days=today.weekday())
    days = [monday + dt.timedelta(days=i) for i in range(7)]
    per_day: Dict[dt.date, float] = defaultdict(float)
    for t in txns:
        if _is_expense(t):
            per_day[_as_date(t.date)] += t.amount
    return [{"day": d.isoformat(), "expense": round(per_day.get(d, 0.0), 2)} for d in days]


def budget_status(budgets: Dict[str, float], txns: Iterable) -> List[Dict]:
    """Compare spend against per-category budget amounts.

    ``txns`` should already be limited to the budget's period.
    """
    spent_by_cat = spending_by_category(txns)
    rows: List[Dict] = []
    for category, amount in budgets.items():
        limit = round(float(amount), 2)
        spent = spent_by_cat.get(category, 0.0)
        if limit > 0:
            percent = round(spent / limit * 100, 2)
        else:
            percent = 100.0 if spent > 0 else 0.0
        if percent > 100:
            alert = "exceeded"
        elif percent >= WARNING_THRESHOLD:
            alert = "warning"
        else:
            alert = "ok"
        rows.append(
            {
                "category": category,
                "amount": limit,
                "spent": spent,
                "remaining": round(limit - spent, 2),
                "percent_used": percent,
                "alert": alert,
            }
        )
    return rows


def goal_progress(goal) -> float:
    target = float(goal.target_amount or 0)
    if target <= 0:
        return 0.0
    return min(100.0, round((goal.current_amount or 0.0) / target * 100, 2))


def total_saved(goals: Sequence) -> float:
    return round(sum(g.current_amount or 0.0 for g in goals), 2)

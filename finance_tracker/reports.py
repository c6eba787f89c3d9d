"""Reporting utilities.

Formats analytics into human-readable text and JSON/CSV-serializable data.
"""

from __future__ import annotations

import csv
import datetime as dt
import json
from pathlib import Path
from typing import IO, Dict, Iterable, List, Optional, Sequence

from . import analytics as an


def build_summary(
    txns: Iterable,
    budgets: Optional[Dict[str, float]] = None,
    goals: Optional[Sequence] = None,
    today: Optional[dt.date] = None,
    week_of: Optional[dt.date] = None,
) -> Dict:
    """Dashboard summary for the month containing ``today``.

    Totals and budget status cover that month; the trend covers the last six.
    The weekly series covers the week containing ``week_of`` (``today`` when
    omitted).
    """
    today = today or dt.date.today()
    week_of = week_of or today
    txns = list(txns)
    month_txns = an.filter_month(txns, today.year, today.month)
    summary = {
        "period": an.month_key(today),
        "totals": an.summarize_income_expense(month_txns),
        "category_spend": an.spending_by_category(month_txns),
        "trend": an.last_n_months(txns, 6, today),
        "weekly": an.weekly_expenses(txns, week_of),
        "transaction_count": len(month_txns),
    }
    if budgets:
        summary["budget_status"] = an.budget_status(budgets, month_txns)
    if goals is not None:
        summary["goals"] = [
            {"name": g.name, "target": g.target_amount, "saved": g.current_amount or 0.0,
             "progress": an.goal_progress(g)}
            for g in goals
        ]
        summary["total_saved"] = an.total_saved(goals)
    return summary


def format_text_report(summary: Dict, currency: str = "S/") -> str:
    lines: List[str] = []
    t = summary["totals"]
    lines.append(f"=== Resumen {summary.get('period', '')} ===")
    lines.append(f"Ingresos: {currency}{t['income']:.2f}")
    lines.append(f"Gastos:   {currency}{t['expense']:.2f}")
    lines.append(f"Balance:  {currency}{t['net']:.2f}")
    lines.append("")

    lines.append("-- Gastos por categoría --")
    for cat, amt in summary["category_spend"].items():
        lines.append(f"{cat:15} {currency}{amt:.2f}")
    lines.append("")

    lines.append("-- Tendencia mensual --")
    for row in summary.get("trend", []):
        lines.append(f"{row['month']} | Ing {currency}{row['income']:.2f}  Gas {currency}{row['expense']:.2f}")

    budget = summary.get("budget_status")
    if budget:
        lines.append("")
        lines.append("-- Presupuesto --")
        for row in budget:
            flag = {"warning": "  !", "exceeded": "  !!"}.get(row["alert"], "")
            lines.append(
                f"{row['category']:15} {currency}{row['spent']:.2f} / {currency}{row['amount']:.2f}"
                f"  ({row['percent_used']:.0f}%){flag}"
            )

    goals = summary.get("goals")
    if goals:
        lines.append("")
        lines.append("-- Metas --")
        for g in goals:
            lines.append(f"{g['name'][:30]:30} {currency}{g['saved']:.2f} / {currency}{g['target']:.2f}  ({g['progress']:.0f}%)")
    return "\n".join(lines)


def save_json(summary: Dict, path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2, ensure_ascii=False)


def _ensure_text_writer(target: str | Path | IO[str]):
    if hasattr(target, "write"):
        return target, None
    path = Path(target)
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = path.open("w", newline="", encoding="utf-8")
    return handle, handle


def export_summary_csv(summary: Dict, path: str | Path | IO[str]) -> None:
    def fmt_amount(value) -> str:
        if value is None:
            return ""
        return f"{float(value):.2f}"

    rows: List[List[str]] = [["Section", "Item", "Metric", "Value"]]

    totals = summary.get("totals") or {}
    for key, label in (("income", "Income"), ("expense", "Expense"), ("net", "Net")):
        if key in totals:
            rows.append(["Totals", summary.get("period", ""), label, fmt_amount(totals.get(key))])

    for cat, amt in (summary.get("category_spend") or {}).items():
        rows.append(["Category Spend", cat, "Amount", fmt_amount(amt)])

    for row in summary.get("trend") or []:
        rows.append(["Monthly Trend", row["month"], "Income", fmt_amount(row["income"])])
        rows.append(["Monthly Trend", row["month"], "Expense", fmt_amount(row["expense"])])

    for row in summary.get("budget_status") or []:
        rows.append(["Budget Status", row["category"], "Amount", fmt_amount(row["amount"])])
        rows.append(["Budget Status", row["category"], "Spent", fmt_amount(row["spent"])])
        rows.append(["Budget Status", row["category"], "Alert", row["alert"]])

    for g in summary.get("goals") or []:
        rows.append(["Goals", g["name"], "Saved", fmt_amount(g["saved"])])
        rows.append(["Goals", g["name"], "Target", fmt_amount(g["target"])])

    writer_target, to_close = _ensure_text_writer(path)
    try:
        writer = csv.writer(writer_target, lineterminator="\n")
        writer.writerows(rows)
    finally:
        if to_close is not None:
            to_close.close()

"""Command-line interface for the Finance Tracker.

Usage:
  python -m finance_tracker.cli render recommendation.md
  python -m finance_tracker.cli report --input transactions.json --json summary.json
  python -m finance_tracker.cli suggest --input transactions.json --total 800
"""

from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
from typing import List, Optional

from .config import AppConfig
from .data_loader import load_files
from .errors import FinanceTrackerError
from .render import render_markdown
from .reports import build_summary, export_summary_csv, format_text_report, save_json
from .suggest import BudgetAdvisor, apply_budget_plan, get_budget_suggestion


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Finance Tracker")
    p.add_argument("--config", "-c", help="Path to JSON config")
    p.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    r = sub.add_parser("render", help="Render recommendation markdown to HTML")
    r.add_argument("file", nargs="?", help="Markdown file (default: stdin)")

    rep = sub.add_parser("report", help="Print a monthly summary")
    rep.add_argument("--input", "-i", nargs="+", required=True, help="JSON or CSV file(s) to load")
    rep.add_argument("--month", help="Month to report (YYYY-MM), default current")
    rep.add_argument("--json", dest="json_out", help="Write summary JSON to path")
    rep.add_argument("--csv", dest="csv_out", help="Write summary CSV to path")

    s = sub.add_parser("suggest", help="Ask the AI advisor for a budget")
    s.add_argument("--input", "-i", nargs="+", required=True, help="JSON or CSV file(s) to load")
    s.add_argument("--total", type=float, required=True, help="Total monthly budget")
    return p.parse_args(argv)


def _parse_month(value: Optional[str]) -> Optional[dt.date]:
    if not value:
        return None
    return dt.datetime.strptime(value, "%Y-%m").date()


def _render(args: argparse.Namespace) -> int:
    if args.file:
        with open(args.file, "r", encoding="utf-8") as f:
            text = f.read()
    else:
        text = sys.stdin.read()
    print(render_markdown(text))
    return 0


def _report(args: argparse.Namespace, cfg: AppConfig) -> int:
    entries = load_files(args.input)
    summary = build_summary(entries, today=_parse_month(args.month))
    print(format_text_report(summary, cfg.currency))
    if args.json_out:
        save_json(summary, args.json_out)
        print(f"\nSaved JSON summary to: {args.json_out}")
    if args.csv_out:
        export_summary_csv(summary, args.csv_out)
        print(f"Saved CSV summary to: {args.csv_out}")
    return 0


def _suggest(args: argparse.Namespace, cfg: AppConfig) -> int:
    entries = load_files(args.input)
    advisor = BudgetAdvisor(
        cfg.ai,
        categories=cfg.expense_categories,
        currency=cfg.currency,
        goals_category=cfg.goals_category,
    )
    result = get_budget_suggestion(advisor, entries, args.total)
    if not result.success:
        print(result.error, file=sys.stderr)
        return 1
    for item in apply_budget_plan(result.data.budget_plan, cfg.expense_categories):
        print(f"{item.category:15} {cfg.currency}{item.amount:.2f}")
    print()
    print(result.data.recommendation_html or "")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        cfg = AppConfig.load(args.config)
        if args.command == "render":
            return _render(args)
        if args.command == "report":
            return _report(args, cfg)
        return _suggest(args, cfg)
    except (FinanceTrackerError, ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())

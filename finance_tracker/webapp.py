"""Flask JSON API for the Finance Tracker."""

from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, current_app, jsonify, request

from . import store
from .analytics import filter_month, summarize_income_expense
from .config import AppConfig
from .errors import ConfigError, RecordNotFound
from .models import db
from .reports import build_summary
from .suggest import BudgetAdvisor, apply_budget_plan, get_budget_suggestion

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent

logger = logging.getLogger("finance_tracker.webapp")


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _current_period() -> str:
    return dt.date.today().strftime("%Y-%m")


def _period_date(period: str) -> dt.date:
    return dt.datetime.strptime(store.validate_period(period), "%Y-%m").date()


def _advisor() -> BudgetAdvisor:
    advisor = current_app.extensions.get("budget_advisor")
    if advisor is None:
        cfg: AppConfig = current_app.extensions["finance_config"]
        advisor = BudgetAdvisor(
            cfg.ai,
            categories=cfg.expense_categories,
            currency=cfg.currency,
            goals_category=cfg.goals_category,
        )
        current_app.extensions["budget_advisor"] = advisor
    return advisor


def _resolve_config_path(config_path: Optional[str]) -> Optional[Path]:
    if not config_path:
        return None
    path = Path(config_path)
    if path.is_absolute():
        return path
    return PROJECT_ROOT / path


def create_app(
    config_path: Optional[str] = None,
    database_uri: Optional[str] = None,
    advisor: Optional[BudgetAdvisor] = None,
) -> Flask:
    app = Flask(__name__)
    app.config["SQLALCHEMY_DATABASE_URI"] = database_uri or f"sqlite:///{PROJECT_ROOT / 'finance_tracker.db'}"
    app.json.sort_keys = False

    cfg = AppConfig.load(_resolve_config_path(config_path))
    app.extensions["finance_config"] = cfg
    if advisor is not None:
        app.extensions["budget_advisor"] = advisor

    db.init_app(app)
    with app.app_context():
        db.create_all()

    @app.errorhandler(RecordNotFound)
    def not_found(exc):
        return jsonify({"error": str(exc)}), 404

    @app.errorhandler(ValueError)
    def bad_request(exc):
        db.session.rollback()
        return jsonify({"error": str(exc)}), 400

    @app.errorhandler(ConfigError)
    def unavailable(exc):
        logger.error("Configuration error: %s", exc)
        return jsonify({"error": str(exc)}), 503

    @app.route("/api/categories")
    def categories():
        return jsonify({"expense": cfg.expense_categories, "income": cfg.income_categories})

    @app.route("/api/users", methods=["POST"])
    def create_user():
        data = _payload()
        user = store.create_user(data.get("name"), data.get("email"), data.get("account_type") or "Free")
        return jsonify({"id": user.id, "name": user.name, "email": user.email}), 201

    # -- transactions --------------------------------------------------------

    @app.route("/api/users/<int:user_id>/transactions", methods=["GET", "POST"])
    def transactions(user_id: int):
        store.get_user(user_id)
        if request.method == "POST":
            data = _payload()
            txn = store.add_transaction(
                user_id,
                data.get("type"),
                data.get("category"),
                data.get("amount"),
                data.get("description"),
                data.get("date"),
            )
            return jsonify(txn.to_dict()), 201
        kind = request.args.get("type") or None
        return jsonify([t.to_dict() for t in store.list_transactions(user_id, kind)])

    @app.route("/api/users/<int:user_id>/transactions/<int:txn_id>", methods=["GET", "PUT", "DELETE"])
    def transaction(user_id: int, txn_id: int):
        if request.method == "DELETE":
            store.delete_transaction(user_id, txn_id)
            return "", 204
        if request.method == "PUT":
            allowed = {"type", "category", "amount", "description", "date"}
            changes = {k: v for k, v in _payload().items() if k in allowed}
            return jsonify(store.update_transaction(user_id, txn_id, **changes).to_dict())
        return jsonify(store.get_transaction(user_id, txn_id).to_dict())

    @app.route("/api/users/<int:user_id>/incomes", methods=["POST"])
    def record_income(user_id: int):
        store.get_user(user_id)
        data = _payload()
        goal_id = data.get("goal_id")
        txn = store.record_income(
            user_id,
            data.get("category"),
            data.get("amount"),
            data.get("description"),
            data.get("date"),
            goal_id=int(goal_id) if goal_id not in (None, "") else None,
            allocation_type=data.get("allocation_type") or "fixed",
            allocation_value=data.get("allocation_value") or 0,
        )
        return jsonify(txn.to_dict()), 201

    # -- budgets -------------------------------------------------------------

    @app.route("/api/users/<int:user_id>/budgets/<period>", methods=["GET", "PUT"])
    def budget(user_id: int, period: str):
        store.get_user(user_id)
        if request.method == "PUT":
            allocations = _payload().get("categories") or []
            if not isinstance(allocations, list):
                raise ValueError("categories must be a list.")
            rows = store.save_budget(user_id, period, allocations)
        else:
            rows = store.list_budgets(user_id, period)
        return jsonify({"period": period, "total": round(sum(b.amount for b in rows), 2),
                        "categories": [b.to_dict() for b in rows]})

    @app.route("/api/users/<int:user_id>/budgets/<period>/suggestion", methods=["POST"])
    def budget_suggestion(user_id: int, period: str):
        store.get_user(user_id)
        month = _period_date(period)
        txns = store.list_transactions(user_id)
        data = _payload()
        total = data.get("total_income")
        if total in (None, ""):
            month_txns = filter_month(txns, month.year, month.month)
            total = summarize_income_expense(month_txns)["income"]
        try:
            total = float(total)
        except (TypeError, ValueError) as exc:
            raise ValueError("total_income must be a valid number.") from exc
        if total <= 0:
            raise ValueError("total_income must be greater than zero.")

        result = get_budget_suggestion(_advisor(), txns, total)
        if not result.success:
            return jsonify(result.to_dict()), 502
        body = result.to_dict()
        body["allocations"] = [
            a.model_dump() for a in apply_budget_plan(result.data.budget_plan, cfg.expense_categories)
        ]
        return jsonify(body)

    # -- goals ---------------------------------------------------------------

    @app.route("/api/users/<int:user_id>/goals", methods=["GET", "POST"])
    def goals(user_id: int):
        store.get_user(user_id)
        if request.method == "POST":
            data = _payload()
            goal = store.add_goal(
                user_id,
                data.get("name"),
                data.get("target_amount"),
                data.get("target_date"),
                data.get("description"),
            )
            return jsonify(goal.to_dict()), 201
        return jsonify([g.to_dict() for g in store.list_goals(user_id)])

    @app.route("/api/users/<int:user_id>/goals/<int:goal_id>", methods=["PUT", "DELETE"])
    def goal(user_id: int, goal_id: int):
        if request.method == "DELETE":
            store.delete_goal(user_id, goal_id)
            return "", 204
        allowed = {"name", "description", "target_amount", "target_date", "status"}
        changes = {k: v for k, v in _payload().items() if k in allowed}
        return jsonify(store.update_goal(user_id, goal_id, **changes).to_dict())

    @app.route("/api/users/<int:user_id>/goals/<int:goal_id>/contributions", methods=["GET", "POST"])
    def contributions(user_id: int, goal_id: int):
        if request.method == "POST":
            data = _payload()
            contribution = store.contribute_to_goal(user_id, goal_id, data.get("amount"), data.get("notes"))
            return jsonify(contribution.to_dict()), 201
        return jsonify([c.to_dict() for c in store.list_contributions(user_id, goal_id)])

    # -- dashboard -----------------------------------------------------------

    @app.route("/api/users/<int:user_id>/summary")
    def summary(user_id: int):
        store.get_user(user_id)
        period = request.args.get("period") or _current_period()
        month = _period_date(period)
        budgets = {b.category: b.amount for b in store.list_budgets(user_id, period)}
        result = build_summary(
            store.list_transactions(user_id),
            budgets or None,
            goals=store.list_goals(user_id),
            today=month,
            week_of=dt.date.today(),
        )
        return jsonify(result)

    return app


if __name__ == "__main__":
    create_app().run(debug=True)

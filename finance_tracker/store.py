"""Persistence helpers for transactions, budgets and goals.

Every query is scoped to a user id; record lookups also take the record id so
one user can never read or modify another user's rows. Must be called inside a
Flask application context.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError

from .errors import RecordNotFound
from .models import GOAL_STATUSES, TRANSACTION_TYPES, Budget, Goal, GoalContribution, Transaction, User, db

logger = logging.getLogger("finance_tracker.store")

ALLOCATION_TYPES = ("fixed", "percentage")


def _parse_date(value: str | dt.date | None, field_name: str = "date") -> Optional[dt.date]:
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise ValueError(f"{field_name} must be in YYYY-MM-DD format.") from exc


def _positive_amount(value, field_name: str = "amount") -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must be a valid number.") from exc
    if amount <= 0:
        raise ValueError(f"{field_name} must be greater than zero.")
    return round(amount, 2)


def _require_text(value, field_name: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValueError(f"{field_name} is required.")
    return text


def validate_period(period: str) -> str:
    try:
        dt.datetime.strptime(period or "", "%Y-%m")
    except ValueError as exc:
        raise ValueError("Period must be in YYYY-MM format.") from exc
    return period


# -- users -----------------------------------------------------------------


def create_user(name: str, email: str, account_type: str = "Free") -> User:
    user = User(name=_require_text(name, "Name"), email=_require_text(email, "Email"), account_type=account_type)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ValueError("Email already exists.") from exc
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise RecordNotFound(f"User {user_id} not found.")
    return user


# -- transactions ------------------------------------------------------------


def list_transactions(user_id: int, type: Optional[str] = None) -> List[Transaction]:
    query = Transaction.query.filter_by(user_id=user_id)
    if type:
        query = query.filter_by(type=type)
    return query.order_by(Transaction.date.desc(), Transaction.id.desc()).all()


def get_transaction(user_id: int, txn_id: int) -> Transaction:
    txn = Transaction.query.filter_by(user_id=user_id, id=txn_id).first()
    if txn is None:
        raise RecordNotFound(f"Transaction {txn_id} not found.")
    return txn


def add_transaction(
    user_id: int,
    type: str,
    category: str,
    amount,
    description: str,
    date: str | dt.date | None = None,
    commit: bool = True,
) -> Transaction:
    if type not in TRANSACTION_TYPES:
        raise ValueError("Type must be 'income' or 'expense'.")
    txn = Transaction(
        user_id=user_id,
        type=type,
        category=_require_text(category, "Category"),
        amount=_positive_amount(amount),
        description=_require_text(description, "Description"),
        date=_parse_date(date) or dt.date.today(),
    )
    db.session.add(txn)
    if commit:
        db.session.commit()
    return txn


def update_transaction(user_id: int, txn_id: int, **changes) -> Transaction:
    txn = get_transaction(user_id, txn_id)
    # Nothing is assigned until every field validates.
    updates = {}
    if "type" in changes:
        if changes["type"] not in TRANSACTION_TYPES:
            raise ValueError("Type must be 'income' or 'expense'.")
        updates["type"] = changes["type"]
    if "category" in changes:
        updates["category"] = _require_text(changes["category"], "Category")
    if "amount" in changes:
        updates["amount"] = _positive_amount(changes["amount"])
    if "description" in changes:
        updates["description"] = _require_text(changes["description"], "Description")
    if "date" in changes:
        updates["date"] = _parse_date(changes["date"]) or txn.date
    for name, value in updates.items():
        setattr(txn, name, value)
    db.session.commit()
    return txn


def delete_transaction(user_id: int, txn_id: int) -> None:
    txn = get_transaction(user_id, txn_id)
    db.session.delete(txn)
    db.session.commit()


# -- budgets -----------------------------------------------------------------


def list_budgets(user_id: int, period: str) -> List[Budget]:
    return (
        Budget.query.filter_by(user_id=user_id, period=validate_period(period))
        .order_by(Budget.category)
        .all()
    )


def save_budget(user_id: int, period: str, allocations: Iterable[Dict]) -> List[Budget]:
    """Replace the budget for ``period`` with the given allocations.

    Categories with a zero amount are dropped rather than stored.
    """
    validate_period(period)
    rows: Dict[str, float] = {}
    for item in allocations:
        category = _require_text(item.get("category"), "Category")
        try:
            amount = float(item.get("amount") or 0)
        except (TypeError, ValueError) as exc:
            raise ValueError("Budget amount must be a valid number.") from exc
        if amount < 0:
            raise ValueError("Budget amount cannot be negative.")
        if amount > 0:
            rows[category] = round(amount, 2)

    Budget.query.filter_by(user_id=user_id, period=period).delete()
    saved = [Budget(user_id=user_id, period=period, category=c, amount=a) for c, a in rows.items()]
    db.session.add_all(saved)
    db.session.commit()
    logger.info("Saved %d budget categories for user %s, period %s", len(saved), user_id, period)
    return saved


# -- goals -------------------------------------------------------------------


def list_goals(user_id: int) -> List[Goal]:
    return Goal.query.filter_by(user_id=user_id).order_by(Goal.created_at, Goal.id).all()


def get_goal(user_id: int, goal_id: int) -> Goal:
    goal = Goal.query.filter_by(user_id=user_id, id=goal_id).first()
    if goal is None:
        raise RecordNotFound(f"Goal {goal_id} not found.")
    return goal


def add_goal(
    user_id: int,
    name: str,
    target_amount,
    target_date: str | dt.date | None = None,
    description: Optional[str] = None,
) -> Goal:
    goal = Goal(
        user_id=user_id,
        name=_require_text(name, "Name"),
        description=(description or "").strip() or None,
        target_amount=_positive_amount(target_amount, "Target amount"),
        current_amount=0.0,
        target_date=_parse_date(target_date, "Target date"),
        status="active",
    )
    db.session.add(goal)
    db.session.commit()
    return goal


def update_goal(user_id: int, goal_id: int, **changes) -> Goal:
    goal = get_goal(user_id, goal_id)
    updates = {}
    if "name" in changes:
        updates["name"] = _require_text(changes["name"], "Name")
    if "description" in changes:
        updates["description"] = (changes["description"] or "").strip() or None
    if "target_amount" in changes:
        updates["target_amount"] = _positive_amount(changes["target_amount"], "Target amount")
    if "target_date" in changes:
        updates["target_date"] = _parse_date(changes["target_date"], "Target date")
    if "status" in changes:
        if changes["status"] not in GOAL_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(GOAL_STATUSES)}.")
        updates["status"] = changes["status"]
    for name, value in updates.items():
        setattr(goal, name, value)
    db.session.commit()
    return goal


def delete_goal(user_id: int, goal_id: int) -> None:
    goal = get_goal(user_id, goal_id)
    db.session.delete(goal)
    db.session.commit()


def contribute_to_goal(
    user_id: int,
    goal_id: int,
    amount,
    notes: Optional[str] = None,
    commit: bool = True,
) -> GoalContribution:
    """Record a contribution and raise the goal's saved amount.

    Only active goals accept contributions. The saved amount never exceeds
    the target; reaching it completes the goal.
    """
    goal = get_goal(user_id, goal_id)
    if goal.status != "active":
        raise ValueError(f"Goal is {goal.status} and no longer accepts contributions.")
    value = _positive_amount(amount, "Contribution amount")
    contribution = GoalContribution(goal_id=goal.id, user_id=user_id, amount=value, notes=notes)
    db.session.add(contribution)
    goal.current_amount = min(round((goal.current_amount or 0.0) + value, 2), goal.target_amount)
    if goal.current_amount >= goal.target_amount:
        goal.status = "completed"
    if commit:
        db.session.commit()
    return contribution


def list_contributions(user_id: int, goal_id: int) -> List[GoalContribution]:
    get_goal(user_id, goal_id)
    return (
        GoalContribution.query.filter_by(user_id=user_id, goal_id=goal_id)
        .order_by(GoalContribution.contributed_at.desc(), GoalContribution.id.desc())
        .all()
    )


def allocation_amount(income_amount: float, allocation_type: str, allocation_value) -> float:
    if allocation_type not in ALLOCATION_TYPES:
        raise ValueError("Allocation type must be 'fixed' or 'percentage'.")
    try:
        value = float(allocation_value or 0)
    except (TypeError, ValueError) as exc:
        raise ValueError("Allocation value must be a valid number.") from exc
    if value < 0:
        raise ValueError("Allocation value cannot be negative.")
    if allocation_type == "percentage":
        if value > 100:
            raise ValueError("Allocation percentage cannot exceed 100.")
        return round(income_amount * value / 100, 2)
    if value > income_amount:
        raise ValueError("Allocation cannot exceed the income amount.")
    return round(value, 2)


def record_income(
    user_id: int,
    category: str,
    amount,
    description: str,
    date: str | dt.date | None = None,
    goal_id: Optional[int] = None,
    allocation_type: str = "fixed",
    allocation_value=0,
) -> Transaction:
    """Insert an income, optionally routing part of it to a savings goal."""
    try:
        txn = add_transaction(user_id, "income", category, amount, description, date, commit=False)
        if goal_id is not None:
            portion = allocation_amount(txn.amount, allocation_type, allocation_value)
            if portion > 0:
                contribute_to_goal(
                    user_id,
                    goal_id,
                    portion,
                    notes=f"Aporte desde ingreso: {txn.description}",
                    commit=False,
                )
    except Exception:
        db.session.rollback()
        raise
    db.session.commit()
    return txn

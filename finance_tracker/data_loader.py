"""Transaction file loading for the command-line tools.

Reads JSON or CSV exports into plain ``Entry`` records with fields:
    type ("income"|"expense"), category, amount (positive float),
    description, date (datetime.date)

CSV columns are auto-detected case-insensitively among common variants. A
signed ``amount`` without a ``type`` column is read as income when positive
and expense when negative.
"""

from __future__ import annotations

import csv
import datetime as dt
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional


@dataclass
class Entry:
    type: str
    category: str
    amount: float
    description: str
    date: dt.date


def _parse_date(value: str) -> dt.date:
    value = value.strip()
    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d"):
        try:
            return dt.datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    # ISO timestamps, e.g. 2024-07-21T13:00:00Z
    try:
        return dt.date.fromisoformat(value[:10])
    except ValueError as exc:
        raise ValueError(f"Unrecognized date format: {value}") from exc


def _to_float(value) -> float:
    v = str(value).replace(",", "").strip()
    if v.startswith("(") and v.endswith(")"):
        v = "-" + v[1:-1]
    try:
        return float(v)
    except ValueError as exc:
        raise ValueError(f"Invalid amount: {value}") from exc


def _find_column(row_keys: Iterable[str], candidates: Iterable[str]) -> Optional[str]:
    low = {k.lower(): k for k in row_keys}
    for cand in candidates:
        if cand.lower() in low:
            return low[cand.lower()]
    return None


_DATE_COLS = ("date", "fecha")
_DESC_COLS = ("description", "descripcion", "desc", "memo")
_AMT_COLS = ("amount", "monto")
_TYPE_COLS = ("type", "tipo")
_CAT_COLS = ("category", "categoria")


def _entry(kind: Optional[str], category: str, amount: float, description: str, date: dt.date) -> Entry:
    if kind is None:
        kind = "income" if amount > 0 else "expense"
    kind = kind.strip().lower()
    if kind not in ("income", "expense"):
        raise ValueError(f"Invalid transaction type: {kind}")
    return Entry(type=kind, category=category or "Otros", amount=abs(amount), description=description, date=date)


def load_csv_file(path: str | Path) -> List[Entry]:
    p = Path(path)
    with p.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames = reader.fieldnames or []
        date_col = _find_column(fieldnames, _DATE_COLS)
        desc_col = _find_column(fieldnames, _DESC_COLS)
        amt_col = _find_column(fieldnames, _AMT_COLS)
        type_col = _find_column(fieldnames, _TYPE_COLS)
        cat_col = _find_column(fieldnames, _CAT_COLS)

        if not date_col or not amt_col:
            raise ValueError(f"{p.name}: Missing required columns. Need date and amount.")

        entries: List[Entry] = []
        for row in reader:
            entries.append(
                _entry(
                    row.get(type_col) if type_col else None,
                    ((row.get(cat_col) or "") if cat_col else "").strip(),
                    _to_float(row[amt_col]),
                    ((row.get(desc_col) or "") if desc_col else "").strip(),
                    _parse_date(row[date_col]),
                )
            )
    return entries


def _entry_from_dict(raw: Dict) -> Entry:
    if "amount" not in raw or "date" not in raw:
        raise ValueError(f"Transaction is missing amount or date: {raw!r}")
    return _entry(
        raw.get("type"),
        str(raw.get("category") or "").strip(),
        _to_float(raw["amount"]),
        str(raw.get("description") or "").strip(),
        _parse_date(str(raw["date"])),
    )


def load_json_file(path: str | Path) -> List[Entry]:
    """Load a JSON list of transactions, or an object with a ``transactions`` list."""
    p = Path(path)
    with p.open("r", encoding="utf-8") as f:
        raw = json.load(f)
    if isinstance(raw, dict):
        raw = raw.get("transactions")
    if not isinstance(raw, list):
        raise ValueError(f"{p.name}: expected a list of transactions.")
    return [_entry_from_dict(item) for item in raw]


def load_files(paths: Iterable[str | Path]) -> List[Entry]:
    entries: List[Entry] = []
    for p in paths:
        if Path(p).suffix.lower() == ".json":
            entries.extend(load_json_file(p))
        else:
            entries.extend(load_csv_file(p))
    entries.sort(key=lambda e: (e.date, e.description, e.amount))
    return entries

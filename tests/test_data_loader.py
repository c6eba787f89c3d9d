from __future__ import annotations

import datetime as dt
import json

import pytest

from finance_tracker.data_loader import load_csv_file, load_files, load_json_file


def test_load_json_list(tmp_path) -> None:
    path = tmp_path / "tx.json"
    path.write_text(
        json.dumps(
            [
                {"type": "expense", "category": "Comida", "amount": 15.5, "description": "Almuerzo",
                 "date": "2024-07-21T13:00:00Z"},
                {"type": "income", "category": "Beca", "amount": "200", "description": "Beca", "date": "2024-07-20"},
            ]
        ),
        encoding="utf-8",
    )
    entries = load_json_file(path)
    assert entries[0].date == dt.date(2024, 7, 21)
    assert entries[1].amount == 200.0
    assert entries[1].type == "income"


def test_load_json_object_with_transactions_key(tmp_path) -> None:
    path = tmp_path / "tx.json"
    path.write_text(json.dumps({"transactions": [{"amount": -5, "date": "2024-07-01"}]}), encoding="utf-8")
    [entry] = load_json_file(path)
    assert entry.type == "expense"
    assert entry.amount == 5.0
    assert entry.category == "Otros"


def test_load_json_rejects_non_list(tmp_path) -> None:
    path = tmp_path / "tx.json"
    path.write_text(json.dumps({"foo": 1}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_json_file(path)


def test_load_csv_detects_columns(tmp_path) -> None:
    path = tmp_path / "tx.csv"
    path.write_text(
        "Fecha,Tipo,Categoria,Monto,Descripcion\n"
        "21/07/2024,expense,Comida,\"1,015.50\",Cena\n"
        "2024-07-20,income,Beca,200,Beca\n",
        encoding="utf-8",
    )
    entries = load_csv_file(path)
    assert entries[0].amount == 1015.5
    assert entries[0].date == dt.date(2024, 7, 21)
    assert entries[1].type == "income"


def test_load_csv_requires_date_and_amount(tmp_path) -> None:
    path = tmp_path / "tx.csv"
    path.write_text("description\nx\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Missing required columns"):
        load_csv_file(path)


def test_load_csv_rejects_bad_type(tmp_path) -> None:
    path = tmp_path / "tx.csv"
    path.write_text("date,type,amount\n2024-07-01,loan,5\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid transaction type"):
        load_csv_file(path)


def test_load_files_sorts_by_date(tmp_path) -> None:
    a = tmp_path / "a.csv"
    a.write_text("date,amount,description\n2024-07-05,-3,b\n", encoding="utf-8")
    b = tmp_path / "b.json"
    b.write_text(json.dumps([{"amount": 10, "date": "2024-07-01", "description": "a"}]), encoding="utf-8")
    entries = load_files([a, b])
    assert [e.description for e in entries] == ["a", "b"]

from __future__ import annotations

import io
import json
from types import SimpleNamespace

from finance_tracker import cli


def test_render_from_file(tmp_path, capsys) -> None:
    path = tmp_path / "rec.md"
    path.write_text("### Hola\n- uno", encoding="utf-8")
    assert cli.main(["render", str(path)]) == 0
    assert capsys.readouterr().out.strip() == "<h3>Hola</h3><ul><li>uno</li></ul>"


def test_render_from_stdin(monkeypatch, capsys) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO("**hola**"))
    assert cli.main(["render"]) == 0
    assert capsys.readouterr().out.strip() == "<p><strong>hola</strong></p>"


def test_report_writes_outputs(tmp_path, capsys) -> None:
    src = tmp_path / "tx.json"
    src.write_text(
        json.dumps([
            {"type": "expense", "category": "Comida", "amount": 20, "description": "Pizza", "date": "2024-07-22"},
            {"type": "income", "category": "Beca", "amount": 200, "description": "Beca", "date": "2024-07-20"},
        ]),
        encoding="utf-8",
    )
    out_json = tmp_path / "out" / "summary.json"
    out_csv = tmp_path / "out" / "summary.csv"
    code = cli.main(["report", "-i", str(src), "--month", "2024-07", "--json", str(out_json), "--csv", str(out_csv)])
    assert code == 0
    text = capsys.readouterr().out
    assert "Ingresos: S/200.00" in text
    assert json.loads(out_json.read_text(encoding="utf-8"))["totals"]["net"] == 180.0
    assert out_csv.read_text(encoding="utf-8").startswith("Section,Item,Metric,Value")


def test_missing_input_reports_error(tmp_path, capsys) -> None:
    assert cli.main(["report", "-i", str(tmp_path / "missing.json")]) == 2
    assert "error:" in capsys.readouterr().err


def test_suggest_prints_allocations_and_html(tmp_path, monkeypatch, capsys) -> None:
    src = tmp_path / "tx.json"
    src.write_text(
        json.dumps([{"type": "expense", "category": "Comida", "amount": 20, "description": "Pizza",
                     "date": "2024-07-22"}]),
        encoding="utf-8",
    )
    payload = {"budgetPlan": [{"category": "Comida", "amount": 250}], "recommendation": "#### Bien"}

    class FakeAdvisor(cli.BudgetAdvisor):
        def __init__(self, config, **kwargs):
            message = SimpleNamespace(content=json.dumps(payload))
            completions = SimpleNamespace(
                create=lambda **kw: SimpleNamespace(choices=[SimpleNamespace(message=message)])
            )
            super().__init__(config, client=SimpleNamespace(chat=SimpleNamespace(completions=completions)), **kwargs)

    monkeypatch.setattr(cli, "BudgetAdvisor", FakeAdvisor)
    assert cli.main(["suggest", "-i", str(src), "--total", "800"]) == 0
    out = capsys.readouterr().out
    assert "Comida          S/250.00" in out
    assert "Metas           S/0.00" in out
    assert "<h4>Bien</h4>" in out


def test_suggest_failure_exits_nonzero(tmp_path, monkeypatch, capsys) -> None:
    src = tmp_path / "tx.json"
    src.write_text("[]", encoding="utf-8")

    class BrokenAdvisor(cli.BudgetAdvisor):
        def __init__(self, config, **kwargs):
            def create(**kw):
                raise KeyError("down")

            client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
            super().__init__(config, client=client, **kwargs)

    monkeypatch.setattr(cli, "BudgetAdvisor", BrokenAdvisor)
    assert cli.main(["suggest", "-i", str(src), "--total", "800"]) == 1
    assert "Failed to get budget suggestion." in capsys.readouterr().err

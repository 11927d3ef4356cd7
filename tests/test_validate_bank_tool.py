from __future__ import annotations

import json

from hat_core import config
from hat_core.question_bank import CATEGORIES_FILE, FORCED_CHOICE_FILE, LIKERT_FILE
from tests.conftest import build_bank_docs
from tools import validate_bank


def _write_bank(path, **kwargs):
    cat, lik, fc = build_bank_docs(**kwargs)
    (path / CATEGORIES_FILE).write_text(json.dumps(cat), encoding="utf-8")
    (path / LIKERT_FILE).write_text(json.dumps(lik), encoding="utf-8")
    (path / FORCED_CHOICE_FILE).write_text(json.dumps(fc), encoding="utf-8")


def test_shipped_bank_passes(capsys):
    assert validate_bank.main([]) == 0
    out = capsys.readouterr().out
    assert "Gryffindor|Hufflepuff" in out


def test_thin_bank_returns_warning_exit(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(config, "BANK_MIN_ITEMS_PER_PAIR", 2)
    _write_bank(tmp_path, items_per_pair=1)
    outfile = tmp_path / "summary.json"
    code = validate_bank.main(["--bank-dir", str(tmp_path), "--json", str(outfile)])
    assert code == 2
    assert "Warnings" in capsys.readouterr().out
    summary = json.loads(outfile.read_text(encoding="utf-8"))
    assert summary["coverage"]["Alpha|Beta"] == 1


def test_invalid_bank_returns_error_exit(tmp_path, capsys):
    _write_bank(tmp_path)
    (tmp_path / LIKERT_FILE).write_text(json.dumps({"items": [{"id": "x"}]}), encoding="utf-8")
    assert validate_bank.main(["--bank-dir", str(tmp_path)]) == 1
    assert "Bank is invalid" in capsys.readouterr().out

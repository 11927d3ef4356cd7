from __future__ import annotations

import csv
import io

from hat_core.audit_export import to_csv, to_json

EVENTS = [
    {
        "t": "2026-01-01T00:00:00+00:00",
        "kind": "likert",
        "item_id": "L01",
        "response": 4.0,
        "rt_sec": 9.5,
        "time_weight": 0.82,
        "latent": 1.5,
    },
    {
        "t": "2026-01-01T00:00:30+00:00",
        "kind": "forced_choice",
        "item_id": "FC_GH_1",
        "response": "A",
        "rt_sec": None,
        "time_weight": 0.0,
        "chosen": "Gryffindor",
        "other": "Hufflepuff",
        "delta": 0.0,
    },
]


def test_json_export_has_fixed_fields():
    body = to_json(EVENTS)
    events = body["events"]
    assert len(events) == 2
    required = {"t", "kind", "item_id", "response", "rt_sec", "time_weight", "latent", "chosen", "other", "delta"}
    for evt in events:
        assert set(evt) == required
    assert events[0]["latent"] == 1.5
    assert events[0]["chosen"] == ""
    assert events[1]["rt_sec"] is None
    assert events[1]["response"] == "A"


def test_non_numeric_float_fields_become_null():
    body = to_json([{"kind": "likert", "time_weight": "heavy"}])
    assert body["events"][0]["time_weight"] is None


def test_csv_export_header_and_rows():
    text = to_csv(EVENTS)
    rows = list(csv.reader(io.StringIO(text)))
    assert rows[0][0] == "t"
    assert rows[0][-1] == "delta"
    assert len(rows) == 3
    assert rows[2][rows[0].index("chosen")] == "Gryffindor"
    assert rows[2][rows[0].index("rt_sec")] == ""


def test_empty_exports():
    assert to_json([]) == {"events": []}
    assert to_csv([]).strip() == ",".join(
        ["t", "kind", "item_id", "response", "rt_sec", "time_weight", "latent", "chosen", "other", "delta"]
    )

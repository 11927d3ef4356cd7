"""Helpers to export a quiz session's answer trail in JSON/CSV formats."""
from __future__ import annotations

from typing import Iterable, List, Dict, Any
import csv
import io

_FIELDS: tuple[str, ...] = (
    "t",
    "kind",
    "item_id",
    "response",
    "rt_sec",
    "time_weight",
    "latent",
    "chosen",
    "other",
    "delta",
)

_FLOAT_FIELDS = {"rt_sec", "time_weight", "latent", "delta"}


def _normalize_event(event: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key in _FIELDS:
        val = event.get(key)
        if key in _FLOAT_FIELDS:
            if val is None:
                out[key] = None
                continue
            try:
                out[key] = float(val)
            except (TypeError, ValueError):
                out[key] = None
        elif key == "response":
            out[key] = val if isinstance(val, (int, float)) else ("" if val is None else str(val))
        else:
            out[key] = "" if val is None else str(val)
    return out


def to_json(events: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a JSON-safe payload for audit export."""

    normalized: List[Dict[str, Any]] = [_normalize_event(evt or {}) for evt in events]
    return {"events": normalized}


def to_csv(events: Iterable[Dict[str, Any]]) -> str:
    """Render audit events as CSV with a fixed header."""

    normalized = [_normalize_event(evt or {}) for evt in events]
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_FIELDS)
    writer.writeheader()
    for row in normalized:
        writer.writerow({k: ("" if v is None else v) for k, v in row.items()})
    return buf.getvalue()


__all__ = ["to_json", "to_csv"]

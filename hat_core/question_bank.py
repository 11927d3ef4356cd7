from __future__ import annotations
import json, math, random, importlib.resources as ir
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from . import config
from .errors import BankValidationError
from .types import (
    ForcedChoiceItem,
    ForcedChoiceOption,
    IrtParams,
    IrtThresholds,
    ItemBank,
    LikertItem,
    Timing,
)

CATEGORIES_FILE = "categories.json"
LIKERT_FILE = "likert_items.json"
FORCED_CHOICE_FILE = "forced_choice_items.json"


def pair_key(a: str, b: str) -> str:
    return f"{a}|{b}" if a <= b else f"{b}|{a}"


def _read_text(root: Optional[Path], name: str) -> str:
    if root is not None:
        return (Path(root) / name).read_text(encoding="utf-8")
    return ir.files(__package__).joinpath(f"data/{name}").read_text(encoding="utf-8")


def load_bank(root: Optional[str | Path] = None) -> ItemBank:
    """Load and validate the three bank files.

    ``root`` is a directory holding the JSON files; when omitted the
    ``BANK_DIR`` setting is used, then the copy shipped with the package.
    """

    base = root if root is not None else config.BANK_DIR
    base_path = Path(base) if base else None
    try:
        category_doc = json.loads(_read_text(base_path, CATEGORIES_FILE))
        likert_doc = json.loads(_read_text(base_path, LIKERT_FILE))
        forced_doc = json.loads(_read_text(base_path, FORCED_CHOICE_FILE))
    except OSError as exc:
        raise BankValidationError([f"cannot read bank file: {exc}"]) from exc
    except ValueError as exc:
        raise BankValidationError([f"malformed JSON: {exc}"]) from exc
    return parse_bank(category_doc, likert_doc, forced_doc)


def _timing(raw: Any, fallback: Timing, where: str, problems: List[str]) -> Timing:
    if raw is None:
        return fallback
    if not isinstance(raw, Mapping):
        problems.append(f"{where}: timing must be an object")
        return fallback
    try:
        return Timing(
            expected_time_sec=float(raw.get("expected_time_sec", fallback.expected_time_sec)),
            rapid_threshold_sec=float(raw.get("rapid_threshold_sec", fallback.rapid_threshold_sec)),
            down_weight_factor=float(raw.get("down_weight_factor", fallback.down_weight_factor)),
        )
    except (TypeError, ValueError):
        problems.append(f"{where}: timing values must be numbers")
        return fallback


def _check_timing(t: Timing, where: str, problems: List[str]) -> None:
    if t.rapid_threshold_sec <= 0:
        problems.append(f"{where}: rapid_threshold_sec must be > 0")
    if t.expected_time_sec < t.rapid_threshold_sec:
        problems.append(f"{where}: expected_time_sec must be >= rapid_threshold_sec")
    if not (0.0 < t.down_weight_factor < 1.0):
        problems.append(f"{where}: down_weight_factor must be in (0, 1)")


def _str_list(raw: Any) -> List[str]:
    if not isinstance(raw, list):
        return []
    return [str(x) for x in raw]


def _parse_likert(raw: Mapping[str, Any], timing: Timing, idx: int, problems: List[str]) -> Optional[LikertItem]:
    iid = str(raw.get("id") or "").strip()
    where = f"likert[{idx}]" + (f" {iid}" if iid else "")
    irt = raw.get("irt") or {}
    try:
        th = irt.get("thresholds") or {}
        thresholds = IrtThresholds(
            b1=float(th["b1"]), b2=float(th["b2"]), b3=float(th["b3"]), b4=float(th["b4"])
        )
        a = float(irt["a"])
        weights = {str(k): float(v) for k, v in (raw.get("trait_weights") or {}).items()}
    except (AttributeError, KeyError, TypeError, ValueError):
        problems.append(f"{where}: irt parameters and trait_weights must be numeric")
        return None
    return LikertItem(
        id=iid,
        text=str(raw.get("text") or "").strip(),
        trait_weights=weights,
        irt=IrtParams(a=a, thresholds=thresholds, model=str(irt.get("model") or "GRM")),
        timing=_timing(raw.get("timing"), timing, where, problems),
    )


def _parse_forced(raw: Mapping[str, Any], timing: Timing, idx: int, problems: List[str]) -> Optional[ForcedChoiceItem]:
    iid = str(raw.get("id") or "").strip()
    where = f"forced_choice[{idx}]" + (f" {iid}" if iid else "")
    pair = _str_list(raw.get("category_pair"))
    opts_raw = raw.get("options")
    if len(pair) != 2:
        problems.append(f"{where}: category_pair must list exactly two categories")
        return None
    if not isinstance(opts_raw, list) or len(opts_raw) != 2:
        problems.append(f"{where}: exactly two options are required")
        return None
    options = []
    for o in opts_raw:
        if not isinstance(o, Mapping):
            problems.append(f"{where}: option must be an object")
            return None
        options.append(
            ForcedChoiceOption(
                key=str(o.get("key") or "").strip(),
                text=str(o.get("text") or "").strip(),
                category=str(o.get("category") or "").strip(),
            )
        )
    return ForcedChoiceItem(
        id=iid,
        category_pair=(pair[0], pair[1]),
        stem=str(raw.get("stem") or "").strip(),
        options=(options[0], options[1]),
        timing=_timing(raw.get("timing"), timing, where, problems),
    )


def parse_bank(
    category_doc: Mapping[str, Any],
    likert_doc: Mapping[str, Any],
    forced_doc: Mapping[str, Any],
) -> ItemBank:
    problems: List[str] = []
    default_timing = Timing(**{k: float(v) for k, v in config.DEFAULT_TIMING.items()})
    likert_timing = _timing(likert_doc.get("timing"), default_timing, "likert file", problems)
    forced_timing = _timing(forced_doc.get("timing"), likert_timing, "forced-choice file", problems)

    likert_items = []
    for idx, raw in enumerate(likert_doc.get("items") or []):
        if not isinstance(raw, Mapping):
            problems.append(f"likert[{idx}]: item must be an object")
            continue
        item = _parse_likert(raw, likert_timing, idx, problems)
        if item is not None:
            likert_items.append(item)

    forced_items = []
    for idx, raw in enumerate(forced_doc.get("items") or []):
        if not isinstance(raw, Mapping):
            problems.append(f"forced_choice[{idx}]: item must be an object")
            continue
        item = _parse_forced(raw, forced_timing, idx, problems)
        if item is not None:
            forced_items.append(item)

    forms_raw = likert_doc.get("forms") or {}
    bank = ItemBank(
        traits=_str_list(category_doc.get("traits")),
        categories=_str_list(category_doc.get("categories")),
        weights={
            str(c): {str(t): float(w) for t, w in (row or {}).items()}
            for c, row in (category_doc.get("weights") or {}).items()
        },
        likert_items=likert_items,
        forced_choice_items=forced_items,
        forms={str(k): _str_list(v) for k, v in forms_raw.items()},
    )
    if problems:
        raise BankValidationError(problems)
    validate_bank(bank)
    return bank


def validate_bank(bank: ItemBank) -> None:
    """Check an already-parsed bank; raise ``BankValidationError`` listing every problem."""

    problems: List[str] = []
    traits = set(bank.traits)
    categories = set(bank.categories)

    if not bank.traits:
        problems.append("no traits configured")
    if not bank.categories:
        problems.append("no categories configured")
    if len(traits) != len(bank.traits):
        problems.append("duplicate trait names")
    if len(categories) != len(bank.categories):
        problems.append("duplicate category names")

    for c in bank.categories:
        row = bank.weights.get(c)
        if row is None:
            problems.append(f"weights missing for category {c}")
            continue
        for t in bank.traits:
            if t not in row:
                problems.append(f"weights missing for {c}/{t}")
        for t in row:
            if t not in traits:
                problems.append(f"weights for {c} reference unknown trait {t}")
    for c in bank.weights:
        if c not in categories:
            problems.append(f"weights reference unknown category {c}")

    seen: set[str] = set()
    for it in bank.likert_items:
        where = f"likert {it.id or '<blank>'}"
        if not it.id:
            problems.append("likert item has blank id")
        elif it.id in seen:
            problems.append(f"duplicate likert item id: {it.id}")
        seen.add(it.id)
        if not it.text:
            problems.append(f"{where}: blank text")
        if not it.trait_weights:
            problems.append(f"{where}: no trait_weights")
        for t in it.trait_weights:
            if t not in traits:
                problems.append(f"{where}: unknown trait {t}")
        b = it.irt.thresholds.as_tuple()
        if any(x > y for x, y in zip(b, b[1:])):
            problems.append(f"{where}: thresholds must satisfy b1<=b2<=b3<=b4")
        if not all(math.isfinite(x) for x in b) or not math.isfinite(it.irt.a):
            problems.append(f"{where}: irt parameters must be finite")
        _check_timing(it.timing, where, problems)

    for name, ids in bank.forms.items():
        for iid in ids:
            if iid not in seen:
                problems.append(f"form {name} references unknown likert id {iid}")

    seen_fc: set[str] = set()
    for it in bank.forced_choice_items:
        where = f"forced_choice {it.id or '<blank>'}"
        if not it.id:
            problems.append("forced-choice item has blank id")
        elif it.id in seen_fc:
            problems.append(f"duplicate forced-choice item id: {it.id}")
        seen_fc.add(it.id)
        if not it.stem:
            problems.append(f"{where}: blank stem")
        a, b = it.category_pair
        if a == b:
            problems.append(f"{where}: category_pair needs two distinct categories")
        for c in (a, b):
            if c not in categories:
                problems.append(f"{where}: unknown category {c}")
        keys = [o.key.lower() for o in it.options]
        if any(not k for k in keys) or len(set(keys)) != len(keys):
            problems.append(f"{where}: option keys must be non-blank and unique")
        if {o.category for o in it.options} != {a, b}:
            problems.append(f"{where}: options must cover both categories of the pair")
        if any(not o.text for o in it.options):
            problems.append(f"{where}: blank option text")
        _check_timing(it.timing, where, problems)

    if problems:
        raise BankValidationError(problems)


def likert_count_for_mode(bank: ItemBank, mode: str) -> int:
    m = config.normalize_mode(mode)
    if m == "thorough":
        return len(bank.likert_items)
    return len(bank.forms.get(m, []))


def select_likert_items(bank: ItemBank, mode: str, rng: Optional[random.Random] = None) -> List[LikertItem]:
    """Pick the Likert items for a mode in a fresh random order.

    ``thorough`` reshuffles the whole set every session; quick/standard use
    the bank's fixed forms.
    """

    rng = rng or random.Random()
    m = config.normalize_mode(mode)
    if m == "thorough":
        out = list(bank.likert_items)
    else:
        by_id = {it.id: it for it in bank.likert_items}
        out = [by_id[iid] for iid in bank.forms.get(m, [])]
    rng.shuffle(out)
    return out


def audit_pairs(bank: ItemBank) -> Dict[str, object]:
    """Forced-choice coverage per unordered category pair."""

    counts: Dict[str, int] = defaultdict(int)
    for it in bank.forced_choice_items:
        counts[pair_key(*it.category_pair)] += 1

    coverage: Dict[str, int] = {}
    cats = list(bank.categories)
    for i in range(len(cats)):
        for j in range(i + 1, len(cats)):
            key = pair_key(cats[i], cats[j])
            coverage[key] = counts.get(key, 0)

    warnings: List[str] = []
    for key, n in coverage.items():
        if n < config.BANK_MIN_ITEMS_PER_PAIR:
            warnings.append(f"pair {key} has {n} forced-choice items (<{config.BANK_MIN_ITEMS_PER_PAIR})")
    forms = {name: len(ids) for name, ids in bank.forms.items()}
    for name in ("quick", "standard"):
        if not forms.get(name):
            warnings.append(f"form {name} is empty")
    return {"coverage": coverage, "forms": forms, "likert_total": len(bank.likert_items), "warnings": warnings}

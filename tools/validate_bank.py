from __future__ import annotations
import argparse, json
from pathlib import Path

from hat_core.errors import BankValidationError
from hat_core.question_bank import audit_pairs, load_bank


def print_report(summary: dict[str, object]) -> None:
    print(f"Likert items: {summary['likert_total']}")
    for name, n in sorted(summary["forms"].items()):
        print(f"  form {name}: {n} items")
    print("\nForced-choice coverage per pair:")
    for key, n in summary["coverage"].items():
        mark = "ok" if n else "MISSING"
        print(f"  {key:<28} {n:2d}  {mark}")
    if summary["warnings"]:
        print("\nWarnings:")
        for w in summary["warnings"]:
            print(f"  - {w}")
    else:
        print("\n✓ Bank meets coverage targets")


def write_summary(summary: dict[str, object], path: Path) -> str:
    text = json.dumps(summary, indent=2, sort_keys=True)
    path.write_text(text + "\n", encoding="utf-8")
    return text


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Validate the sorting item bank and report pair coverage.")
    ap.add_argument("--bank-dir", default=None, help="directory holding the bank JSON files")
    ap.add_argument("--json", dest="json_out", default=None, help="also write the summary to this file")
    args = ap.parse_args(argv)

    try:
        bank = load_bank(args.bank_dir)
    except BankValidationError as exc:
        print("Bank is invalid:")
        for p in exc.problems:
            print(f"  - {p}")
        return 1

    summary = audit_pairs(bank)
    print_report(summary)
    if args.json_out:
        write_summary(summary, Path(args.json_out))
    return 2 if summary["warnings"] else 0


if __name__ == "__main__":
    raise SystemExit(main())

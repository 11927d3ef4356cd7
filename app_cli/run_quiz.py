from __future__ import annotations
import argparse, json, logging, os, datetime, time
from hat_core.config import MODES, DEFAULT_MODE
from hat_core.engine import QuizSession
from hat_core.errors import ConfigurationError
from hat_core.reporting import format_result, result_to_dict
from hat_core.scheduler import PollingScheduler

SCALE_HINT = "[1=strongly disagree, 5=strongly agree]"


def ask_likert(text: str) -> float:
    while True:
        v = input(f"(1-5) {text}  {SCALE_HINT} ").strip()
        try:
            x = float(v)
        except ValueError:
            print("Enter a number between 1 and 5.")
            continue
        if 1.0 <= x <= 5.0:
            return x
        print("Enter a number between 1 and 5.")


def ask_choice(stem: str, options) -> str:
    print(stem)
    keys = {o.key.lower() for o in options}
    for o in options:
        print(f"  [{o.key}] {o.text}")
    while True:
        v = input("Your choice: ").strip()
        if v.lower() in keys:
            return v
        print("Enter one of: " + ", ".join(o.key for o in options))


def wait_interlude(session: QuizSession, scheduler: PollingScheduler) -> None:
    print("\n" + session.tiebreak.interlude_message + "\n")
    due = scheduler.next_due()
    if due is not None:
        time.sleep(max(0.0, due - scheduler.clock()))
    scheduler.run_due()


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Take the sorting quiz in the terminal.")
    ap.add_argument("--mode", choices=MODES, default=os.getenv("QUIZ_MODE") or DEFAULT_MODE)
    ap.add_argument("--save", action="store_true", help="write the result JSON under reports/")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(message)s",
    )

    scheduler = PollingScheduler()
    try:
        session = QuizSession(mode=args.mode, scheduler=scheduler)
    except ConfigurationError as exc:
        print(f"Cannot start the quiz: {exc}")
        return 1

    print(f"Sorting quiz ({session.mode}, {session.total_likert} statements)\n")
    while session.phase != "done":
        if session.phase == "likert":
            item = session.current_item()
            print(f"{session.index + 1}/{session.total_likert}")
            t0 = time.perf_counter(); v = ask_likert(item.text); rt = time.perf_counter() - t0
            session.answer_likert(v, rt)
            continue
        tb = session.tiebreak
        if tb.interlude_pending:
            wait_interlude(session, scheduler)
            continue
        item = session.current_forced_choice()
        print(f"\nQuestion {tb.question_number}/{tb.planned_total}")
        t0 = time.perf_counter(); key = ask_choice(item.stem, item.options); rt = time.perf_counter() - t0
        session.answer_forced_choice(key, rt)

    res = session.finalize()
    print("\n" + format_result(res))
    if args.save:
        os.makedirs("reports", exist_ok=True)
        ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        path = os.path.join("reports", f"sorting_{session.mode}_{ts}.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(result_to_dict(res), f, indent=2)
        print(f"\nResult saved to: {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

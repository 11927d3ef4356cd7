from __future__ import annotations
import os, json, pathlib, random


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


TIE_THRESHOLD: float = 0.25
FC_LEARNING_RATE: float = 0.1
THETA_MIN: float = -3.0
THETA_MAX: float = 3.0

INTERLUDE_DELAY_MS: int = 6000
INTERLUDE_MESSAGE: str = (
    "Oh my, difficult. Very difficult indeed...\n\n"
    "Hmm... where you will truly thrive\nis not obvious at all..."
)

# expected_time_sec, rapid_threshold_sec, down_weight_factor
DEFAULT_TIMING: dict[str, float] = {
    "expected_time_sec": 12,
    "rapid_threshold_sec": 5,
    "down_weight_factor": 0.5,
}

MODES: tuple[str, ...] = ("quick", "standard", "thorough")
MODE_ROUNDS: dict[str, int] = {"quick": 1, "standard": 2, "thorough": 3}
DEFAULT_MODE: str = "standard"

BANK_DIR: str | None = None
BANK_MIN_ITEMS_PER_PAIR: int = 2

DEBUG_TRACE: bool = False
DEBUG_SEED: int | None = None
TRACE_FIELDS: tuple[str, ...] = (
    "kind",
    "item_id",
    "response",
    "rt_sec",
    "time_weight",
    "latent",
    "chosen",
    "other",
    "delta",
    "top",
)
# // env overrides for staging/ops; defaults remain conservative.
TIE_THRESHOLD = _env_float("TIE_THRESHOLD", TIE_THRESHOLD)
FC_LEARNING_RATE = _env_float("FC_LEARNING_RATE", FC_LEARNING_RATE)
INTERLUDE_DELAY_MS = _env_int("INTERLUDE_DELAY_MS", INTERLUDE_DELAY_MS)
BANK_MIN_ITEMS_PER_PAIR = _env_int("BANK_MIN_ITEMS_PER_PAIR", BANK_MIN_ITEMS_PER_PAIR)
BANK_DIR = os.getenv("BANK_DIR") or None
DEBUG_TRACE = _env_bool("DEBUG_TRACE", False)
_seed_raw = os.getenv("DEBUG_SEED")
DEBUG_SEED = _env_int("DEBUG_SEED", 0) if _seed_raw else None


def rounds_for_mode(mode: str) -> int:
    return int(MODE_ROUNDS.get(mode, MODE_ROUNDS[DEFAULT_MODE]))


def normalize_mode(mode: str | None) -> str:
    m = (mode or "").strip().lower()
    return m if m in MODES else DEFAULT_MODE


def load_config() -> dict:
    cfg = {}
    p = pathlib.Path("config.json")
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError): cfg = {}
    e = os.environ
    if e.get("SEED"): cfg["SEED"] = int(e.get("SEED"))
    if e.get("QUIZ_MODE"): cfg["QUIZ_MODE"] = normalize_mode(e.get("QUIZ_MODE"))
    if e.get("BANK_DIR"): cfg["BANK_DIR"] = e.get("BANK_DIR")
    return cfg
def seed_rng(cfg: dict) -> random.Random:
    s = cfg.get("SEED")
    if s is None:
        s = DEBUG_SEED
    return random.Random(int(s)) if s is not None else random.Random()

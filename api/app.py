from __future__ import annotations
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import logging, os, random, uuid, typing as t

from hat_core import __version__
from hat_core import config
from hat_core.engine import QuizSession
from hat_core.errors import ConfigurationError, SessionStateError
from hat_core.question_bank import load_bank
from hat_core.reporting import result_to_dict
from hat_core.audit_export import to_json as audit_to_json, to_csv as audit_to_csv
from hat_core.types import ForcedChoiceItem, ItemBank, LikertItem

log = logging.getLogger(__name__)

SESS: dict[str, QuizSession] = {}

# loaded on first use; tests may assign a bank directly
BANK: ItemBank | None = None
INTERLUDE_DELAY_MS: int = config.INTERLUDE_DELAY_MS

app = FastAPI(title="Sorting Hat API", version=__version__)


@app.get("/")
def root():
    return {"status": "ok", "service": "sorting-hat-engine"}


ALLOWED_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if o.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)


@app.exception_handler(ConfigurationError)
async def _configuration_error(_request: Request, exc: ConfigurationError):
    log.warning("configuration_error %s", exc)
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(SessionStateError)
async def _session_state_error(_request: Request, exc: SessionStateError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# rejected inputs may be NaN, which cannot be echoed back as JSON
@app.exception_handler(RequestValidationError)
async def _request_validation_error(_request: Request, exc: RequestValidationError):
    detail = [{k: v for k, v in err.items() if k != "input"} for err in exc.errors()]
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(detail)})


# ---- Schemas ----
class StartReq(BaseModel):
    mode: str = config.DEFAULT_MODE   # "quick" | "standard" | "thorough"
    seed: int | None = None

class LikertReq(BaseModel):
    value: float = Field(ge=1, le=5, allow_inf_nan=False)   # fractional allowed
    rt_ms: int | None = None

class ForcedChoiceReq(BaseModel):
    option_key: str
    rt_ms: int | None = None


# ---- Helpers ----
def _bank() -> ItemBank:
    global BANK
    if BANK is None:
        BANK = load_bank()
    return BANK


def _rt_sec(rt_ms: int | None) -> float | None:
    return rt_ms / 1000.0 if rt_ms is not None else None


def _get(sid: str) -> QuizSession:
    sess = SESS.get(sid)
    if not sess:
        raise HTTPException(404, "session not found")
    # fire any interlude callback whose delay has passed
    run_due = getattr(sess.scheduler, "run_due", None)
    if run_due is not None:
        run_due()
    return sess


def _serialize_likert(it: LikertItem | None):
    if it is None: return None
    return {"id": it.id, "text": it.text, "scale": [1, 5]}


def _serialize_forced(it: ForcedChoiceItem | None):
    if it is None: return None
    return {
        "id": it.id,
        "stem": it.stem,
        "options": [{"key": o.key, "text": o.text} for o in it.options],
    }


def _interlude_remaining_ms(sess: QuizSession) -> int | None:
    next_due = getattr(sess.scheduler, "next_due", None)
    clock = getattr(sess.scheduler, "clock", None)
    if next_due is None or clock is None:
        return None
    due = next_due()
    if due is None:
        return None
    return max(0, int(round((due - clock()) * 1000)))


def _serialize_state(sid: str, sess: QuizSession) -> dict[str, t.Any]:
    out: dict[str, t.Any] = {
        "session_id": sid,
        "mode": sess.mode,
        "phase": sess.phase,
        "likert": {
            "answered": sess.index,
            "total": sess.total_likert,
            "item": _serialize_likert(sess.current_item()),
        },
        "tiebreak": None,
    }
    tb = sess.tiebreak
    if tb is not None:
        out["tiebreak"] = {
            "phase": tb.phase.value,
            "tie_group": tb.tie_group,
            "initial_tie_group": list(tb.initial_tie_group),
            "interlude": tb.interlude_pending,
            "message": tb.interlude_message if tb.interlude_pending else None,
            "remaining_ms": _interlude_remaining_ms(sess) if tb.interlude_pending else None,
            "question_number": tb.question_number,
            "planned_total": tb.planned_total,
            "item": _serialize_forced(sess.current_forced_choice()),
        }
    return out


# ---- Health ----
@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": __version__,
        "sessions": len(SESS),
        "tie_threshold": config.TIE_THRESHOLD,
        "interlude_delay_ms": INTERLUDE_DELAY_MS,
    }


# ---- Session endpoints ----
@app.post("/session/start")
def start(req: StartReq):
    sid = str(uuid.uuid4())
    rng = random.Random(req.seed) if req.seed is not None else None
    sess = QuizSession(
        mode=req.mode,
        session_id=sid,
        bank=_bank(),
        rng=rng,
        interlude_delay_ms=INTERLUDE_DELAY_MS,
    )
    SESS[sid] = sess
    log.info("api_session_start sid=%s mode=%s", sid, sess.mode)
    return _serialize_state(sid, sess)


@app.get("/session/{sid}")
def state(sid: str):
    sess = _get(sid)
    return _serialize_state(sid, sess)


@app.post("/session/{sid}/likert")
def answer_likert(sid: str, req: LikertReq):
    sess = _get(sid)
    sess.answer_likert(req.value, _rt_sec(req.rt_ms))
    return _serialize_state(sid, sess)


@app.post("/session/{sid}/forced-choice")
def answer_forced_choice(sid: str, req: ForcedChoiceReq):
    sess = _get(sid)
    if sess.tiebreak is not None and sess.tiebreak.interlude_pending:
        raise HTTPException(409, "the hat is still thinking")
    outcome = sess.answer_forced_choice(req.option_key, _rt_sec(req.rt_ms))
    body = _serialize_state(sid, sess)
    body["last_answer"] = {
        "chosen": outcome["chosen"],
        "other": outcome["other"],
        "time_weight": outcome["time_weight"],
        "delta": outcome["delta"],
    }
    return body


@app.post("/session/{sid}/reset")
def reset(sid: str):
    sess = _get(sid)
    sess.reset()
    return _serialize_state(sid, sess)


@app.get("/session/{sid}/result")
def result(sid: str):
    sess = _get(sid)
    res = result_to_dict(sess.finalize())
    res["session_id"] = sid
    return res


@app.get("/session/{sid}/audit.json")
def get_audit_json(sid: str):
    sess = _get(sid)
    payload = audit_to_json(sess.audit_events)
    return {"session_id": sid, **payload}


@app.get("/session/{sid}/audit.csv")
def get_audit_csv(sid: str):
    sess = _get(sid)
    body = audit_to_csv(sess.audit_events)
    filename = f"{sid}_audit.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{filename}\""},
    )


@app.delete("/session/{sid}")
def delete_session(sid: str):
    sess = SESS.pop(sid, None)
    if not sess:
        raise HTTPException(404, "session not found")
    sess.close()
    return {"ok": True}

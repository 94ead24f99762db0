import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from .config import ALLOWED_ORIGINS, DEDUP_SECRET, DEV_MODE, LOG_LEVEL, STORE_BACKEND
from .database import SessionLocal
from .deps import resolve_dedup_secret
from .errors import (
    AlreadyClosed,
    AlreadyResponded,
    Forbidden,
    InvalidAnswer,
    MalformedInput,
    NotFound,
    PulseError,
    StorageError,
    SurveyClosed,
)
from .models import init_schema
from .routes import include_modular_routers

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s:%(name)s:%(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Pulse Survey API")
include_modular_routers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

STATUS_BY_ERROR: list[tuple[type[PulseError], int]] = [
    (NotFound, 404),
    (Forbidden, 403),
    (AlreadyResponded, 409),
    (SurveyClosed, 409),
    (AlreadyClosed, 200),
    (InvalidAnswer, 422),
    (MalformedInput, 400),
    (StorageError, 503),
]


def status_for(exc: PulseError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


@app.exception_handler(PulseError)
async def pulse_error_handler(request: Request, exc: PulseError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("[API] %s %s failed: %s", request.method, request.url.path, exc.detail)
    body = {"detail": exc.detail, "reason": exc.reason}
    field = getattr(exc, "field", None)
    if field:
        body["field"] = field
    headers = {"Retry-After": "1"} if status_code == 503 else None
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def wait_for_db(max_attempts: int = 20, delay_seconds: float = 1.5) -> None:
    last_err: Exception | None = None
    for _ in range(max_attempts):
        try:
            with SessionLocal() as db:
                db.execute(text("SELECT 1"))
                db.commit()
            return
        except OperationalError as exc:
            last_err = exc
            time.sleep(delay_seconds)
    if last_err:
        raise last_err


@app.on_event("startup")
def on_startup() -> None:
    resolve_dedup_secret(DEDUP_SECRET, DEV_MODE)
    if STORE_BACKEND == "sql":
        wait_for_db()
        init_schema()
    logger.info("[STARTUP] store backend=%s", STORE_BACKEND)

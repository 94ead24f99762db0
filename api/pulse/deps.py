import logging
from functools import lru_cache

from fastapi import Header, HTTPException

from . import config
from .blob_store import BlobStore, InMemoryBlobStore, SqlBlobStore
from .database import SessionLocal
from .services.survey_service import SurveyService

logger = logging.getLogger(__name__)

_DEV_DEDUP_SECRET = "pulse-dev-only-dedup-secret"


def resolve_dedup_secret(secret: str | None, dev_mode: bool) -> str:
    if secret:
        return secret
    if dev_mode:
        logger.warning("[CONFIG][DEV] DEDUP_SECRET not set; using the development secret")
        return _DEV_DEDUP_SECRET
    raise RuntimeError("DEDUP_SECRET must be set outside DEV_MODE")


def build_store(backend: str) -> BlobStore:
    if backend == "memory":
        return InMemoryBlobStore()
    if backend == "sql":
        return SqlBlobStore(SessionLocal)
    raise RuntimeError(f"Unknown STORE_BACKEND '{backend}', expected 'sql' or 'memory'")


@lru_cache(maxsize=1)
def get_store() -> BlobStore:
    return build_store(config.STORE_BACKEND)


@lru_cache(maxsize=1)
def get_survey_service() -> SurveyService:
    return SurveyService(get_store(), resolve_dedup_secret(config.DEDUP_SECRET, config.DEV_MODE))


def parse_user_id(raw_user_id: str | None) -> str:
    value = (raw_user_id or "").strip()
    if not value:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    if len(value) > 128:
        raise HTTPException(status_code=400, detail="X-User-Id must be 128 characters or fewer")
    return value


def current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    return parse_user_id(x_user_id)


def optional_user_id(x_user_id: str | None = Header(default=None)) -> str | None:
    value = (x_user_id or "").strip()
    return value or None

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from .blob_store import BlobStore, read_modify_write
from .config import SURVEY_ID_LENGTH, SURVEYS_NAMESPACE, STORE_MAX_ATTEMPTS
from .errors import WriteConflict
from .schemas import SurveySpec
from .services.state_machine import OPEN, transition_status

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = {"id", "questions", "createdBy", "createdAt"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_survey_id() -> str:
    return uuid.uuid4().hex[:SURVEY_ID_LENGTH]


class SurveyRepository:
    def __init__(self, store: BlobStore, namespace: str = SURVEYS_NAMESPACE) -> None:
        self.store = store
        self.namespace = namespace

    def create(self, spec: SurveySpec) -> dict[str, Any]:
        base = {
            "title": spec.title,
            "questions": [q.to_record() for q in spec.questions],
            "createdBy": spec.created_by,
            "settings": spec.settings.to_record(),
            "status": OPEN,
            "responseCount": 0,
            "createdAt": _now_iso(),
        }
        for _ in range(STORE_MAX_ATTEMPTS):
            survey_id = _new_survey_id()
            record = {"id": survey_id, **base}
            if not self.store.supports_conditional_writes:
                self.store.set(self.namespace, survey_id, record)
                return record
            if self.store.set_if_version(self.namespace, survey_id, record, None):
                logger.info("[SURVEY] created id=%s questions=%s", survey_id, len(record["questions"]))
                return record
            logger.warning("[SURVEY] id collision on %s, regenerating", survey_id)
        raise WriteConflict("could not allocate a unique survey id")

    def get(self, survey_id: str) -> dict[str, Any] | None:
        value = self.store.get_json(self.namespace, survey_id)
        return value if isinstance(value, dict) else None

    def update(self, survey_id: str, partial: dict[str, Any]) -> dict[str, Any] | None:
        ignored = sorted(IMMUTABLE_FIELDS & set(partial))
        if ignored:
            logger.warning("[SURVEY] ignoring immutable fields %s on update id=%s", ignored, survey_id)
        changes = {k: v for k, v in partial.items() if k not in IMMUTABLE_FIELDS}

        def _merge(current: dict[str, Any] | None) -> dict[str, Any] | None:
            if not isinstance(current, dict):
                return None
            merged = {**current, **changes}
            merged["status"] = transition_status(str(current.get("status") or OPEN), changes.get("status"))
            if merged == current:
                return None
            return merged

        result = read_modify_write(self.store, self.namespace, survey_id, _merge)
        return result if isinstance(result, dict) else None

    def close(self, survey_id: str) -> dict[str, Any] | None:
        return self.update(survey_id, {"status": "closed"})

"""Anonymous response storage.

Responses for a survey live in one list under the survey id. The list is the
source of truth; ``responseCount`` on the survey record is a display cache that
may lag behind under concurrent submissions and is resynchronized from the
list length whenever it is found to differ.
"""

from __future__ import annotations

import logging
from typing import Any

from .blob_store import BlobStore, read_modify_write
from .config import RESPONSES_NAMESPACE
from .errors import StorageError
from .survey_repo import SurveyRepository

logger = logging.getLogger(__name__)


class ResponseLedger:
    def __init__(self, store: BlobStore, surveys: SurveyRepository, namespace: str = RESPONSES_NAMESPACE) -> None:
        self.store = store
        self.surveys = surveys
        self.namespace = namespace

    def append(self, survey_id: str, answers: dict[str, Any]) -> int:
        entry = dict(answers)

        def _append(current: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
            responses = current if isinstance(current, list) else []
            responses.append(entry)
            return responses

        responses = read_modify_write(self.store, self.namespace, survey_id, _append, default=[])
        new_count = len(responses)
        try:
            self._bump_count(survey_id, new_count)
        except StorageError as exc:
            # The response is stored; the cached count catches up on the next resync.
            logger.warning("[RESPONSES] count update failed id=%s: %s", survey_id, exc.detail)
        return new_count

    def list(self, survey_id: str) -> list[dict[str, Any]]:
        value = self.store.get_json(self.namespace, survey_id)
        if not isinstance(value, list):
            return []
        return [r for r in value if isinstance(r, dict)]

    def count(self, survey_id: str) -> int:
        return len(self.list(survey_id))

    def resync_count(self, survey_id: str) -> dict[str, Any] | None:
        survey = self.surveys.get(survey_id)
        if survey is None:
            return None
        actual = self.count(survey_id)
        if int(survey.get("responseCount") or 0) == actual:
            return survey
        logger.info(
            "[RESPONSES] resyncing count id=%s cached=%s actual=%s",
            survey_id,
            survey.get("responseCount"),
            actual,
        )
        return self.surveys.update(survey_id, {"responseCount": actual}) or survey

    def _bump_count(self, survey_id: str, new_count: int) -> None:
        def _raise_count(current: dict[str, Any] | None) -> dict[str, Any] | None:
            if not isinstance(current, dict):
                return None
            if int(current.get("responseCount") or 0) >= new_count:
                return None
            current["responseCount"] = new_count
            return current

        read_modify_write(self.store, self.surveys.namespace, survey_id, _raise_count)

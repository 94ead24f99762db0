from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any

from .blob_store import BlobStore, read_modify_write
from .config import USER_INDEX_FETCH_WORKERS
from .survey_repo import SurveyRepository

logger = logging.getLogger(__name__)


def _created_at(survey: dict[str, Any]) -> datetime:
    raw = str(survey.get("createdAt") or "")
    try:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class UserSurveyIndex:
    def __init__(self, store: BlobStore, surveys: SurveyRepository, max_workers: int = USER_INDEX_FETCH_WORKERS) -> None:
        self.store = store
        self.surveys = surveys
        self.max_workers = max(1, max_workers)

    @property
    def namespace(self) -> str:
        return self.surveys.namespace

    @staticmethod
    def key_for(user_id: str) -> str:
        return f"user_{user_id}"

    def add(self, user_id: str, survey_id: str) -> None:
        def _append(current: list[Any] | None) -> list[Any] | None:
            ids = current if isinstance(current, list) else []
            if survey_id in ids:
                return None
            ids.append(survey_id)
            return ids

        read_modify_write(self.store, self.namespace, self.key_for(user_id), _append, default=[])

    def survey_ids(self, user_id: str) -> list[str]:
        value = self.store.get_json(self.namespace, self.key_for(user_id))
        return [str(v) for v in value] if isinstance(value, list) else []

    def list(self, user_id: str) -> list[dict[str, Any]]:
        ids = self.survey_ids(user_id)
        if not ids:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(ids))) as pool:
            fetched = list(pool.map(self.surveys.get, ids))
        found = [s for s in fetched if s]
        if len(found) < len(ids):
            logger.info("[INDEX] %s of %s indexed surveys no longer resolve", len(ids) - len(found), len(ids))
        # sorted() is stable, so equal timestamps keep index order.
        return sorted(found, key=_created_at, reverse=True)

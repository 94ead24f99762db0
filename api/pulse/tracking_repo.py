"""One-way record of who already responded to a survey.

Only an HMAC of ``"<survey_id>:<user_id>"`` is stored, so the list can answer
"has this user responded?" for a caller who already knows the user id, but
cannot be turned back into the set of respondents without the secret.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any

from .blob_store import BlobStore, read_modify_write
from .config import TRACKING_NAMESPACE

logger = logging.getLogger(__name__)


class DedupTracker:
    def __init__(self, store: BlobStore, secret: str, namespace: str = TRACKING_NAMESPACE) -> None:
        if not secret:
            raise ValueError("dedup secret must be a non-empty string")
        self.store = store
        self.namespace = namespace
        self._key = secret.encode("utf-8")
        self._warned_best_effort = False

    def digest(self, survey_id: str, user_id: str) -> str:
        message = f"{survey_id}:{user_id}".encode("utf-8")
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()

    def _digests(self, survey_id: str) -> list[str]:
        value = self.store.get_json(self.namespace, survey_id)
        return [d for d in value if isinstance(d, str)] if isinstance(value, list) else []

    def has_responded(self, survey_id: str, user_id: str) -> bool:
        return self.digest(survey_id, user_id) in self._digests(survey_id)

    def mark_responded(self, survey_id: str, user_id: str) -> bool:
        """Record the user's digest. Returns False if it was already present.

        On a store with conditional writes exactly one of several concurrent
        calls for the same pair returns True. Without them the check and the
        write can interleave and two callers may both see True.
        """
        if not self.store.supports_conditional_writes and not self._warned_best_effort:
            logger.warning("[DEDUP] store has no conditional writes; duplicate protection is best-effort")
            self._warned_best_effort = True

        digest = self.digest(survey_id, user_id)
        added = False

        def _add(current: list[Any] | None) -> list[Any] | None:
            nonlocal added
            digests = current if isinstance(current, list) else []
            if digest in digests:
                added = False
                return None
            digests.append(digest)
            added = True
            return digests

        read_modify_write(self.store, self.namespace, survey_id, _add, default=[])
        return added

    def release(self, survey_id: str, user_id: str) -> None:
        digest = self.digest(survey_id, user_id)

        def _remove(current: list[Any] | None) -> list[Any] | None:
            if not isinstance(current, list) or digest not in current:
                return None
            return [d for d in current if d != digest]

        read_modify_write(self.store, self.namespace, survey_id, _remove)
        logger.info("[DEDUP] released claim on survey=%s", survey_id)

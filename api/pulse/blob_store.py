"""Key-value blob storage used by every repository.

The contract mirrors a plain object store: ``get`` and ``set`` on one key at a
time, last write wins, no transactions across keys. Backends that can also do a
version-checked write advertise it with ``supports_conditional_writes`` and
implement ``set_if_version``; ``read_modify_write`` uses it to retry instead of
overwriting a concurrent update.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .config import STORE_MAX_ATTEMPTS
from .errors import StorageUnavailable, WriteConflict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredBlob:
    value: Any
    version: int


class BlobStore:
    supports_conditional_writes = False

    def get(self, namespace: str, key: str) -> StoredBlob | None:
        raise NotImplementedError

    def get_json(self, namespace: str, key: str) -> Any:
        blob = self.get(namespace, key)
        return blob.value if blob else None

    def set(self, namespace: str, key: str, value: Any) -> None:
        raise NotImplementedError

    def set_if_version(self, namespace: str, key: str, value: Any, expected_version: int | None) -> bool:
        """Write only if the stored version matches.

        ``expected_version=None`` means insert-if-absent. Returns False on conflict.
        """
        raise NotImplementedError


def _encode(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _decode(raw: str, namespace: str, key: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, json.JSONDecodeError) as exc:
        raise StorageUnavailable(f"undecodable value at {namespace}/{key}") from exc


class InMemoryBlobStore(BlobStore):
    """Process-local store for tests and local development.

    Values are stored JSON-encoded so callers never share mutable state with the
    store. ``conditional=False`` turns off ``set_if_version`` to behave like a
    plain last-write-wins store.
    """

    def __init__(self, conditional: bool = True) -> None:
        self._data: dict[tuple[str, str], tuple[str, int]] = {}
        self._lock = threading.Lock()
        self.supports_conditional_writes = conditional

    def get(self, namespace: str, key: str) -> StoredBlob | None:
        with self._lock:
            entry = self._data.get((namespace, key))
        if entry is None:
            return None
        raw, version = entry
        return StoredBlob(value=_decode(raw, namespace, key), version=version)

    def set(self, namespace: str, key: str, value: Any) -> None:
        raw = _encode(value)
        with self._lock:
            current = self._data.get((namespace, key))
            version = current[1] + 1 if current else 1
            self._data[(namespace, key)] = (raw, version)

    def set_if_version(self, namespace: str, key: str, value: Any, expected_version: int | None) -> bool:
        if not self.supports_conditional_writes:
            raise NotImplementedError("conditional writes are disabled for this store")
        raw = _encode(value)
        with self._lock:
            current = self._data.get((namespace, key))
            if expected_version is None:
                if current is not None:
                    return False
                self._data[(namespace, key)] = (raw, 1)
                return True
            if current is None or current[1] != expected_version:
                return False
            self._data[(namespace, key)] = (raw, expected_version + 1)
            return True


class SqlBlobStore(BlobStore):
    """Blob store over a single ``blob_record`` table.

    Insert-if-absent relies on the (namespace, blob_key) primary key; version-checked
    writes are an ``UPDATE ... WHERE version = :expected`` whose row count tells
    whether the write won.
    """

    supports_conditional_writes = True

    def __init__(self, session_factory: Callable[[], Any]) -> None:
        self._session_factory = session_factory

    def get(self, namespace: str, key: str) -> StoredBlob | None:
        try:
            with self._session_factory() as db:
                row = db.execute(
                    text("SELECT value, version FROM blob_record WHERE namespace=:namespace AND blob_key=:key"),
                    {"namespace": namespace, "key": key},
                ).mappings().first()
        except SQLAlchemyError as exc:
            logger.error("[STORE] get failed namespace=%s key=%s: %s", namespace, key, exc)
            raise StorageUnavailable("blob store read failed") from exc
        if not row:
            return None
        return StoredBlob(value=_decode(row["value"], namespace, key), version=int(row["version"]))

    def set(self, namespace: str, key: str, value: Any) -> None:
        try:
            with self._session_factory() as db:
                db.execute(
                    text(
                        """
                        INSERT INTO blob_record (namespace, blob_key, value, version, updated_at)
                        VALUES (:namespace, :key, :value, 1, CURRENT_TIMESTAMP)
                        ON CONFLICT (namespace, blob_key)
                        DO UPDATE SET value=excluded.value,
                                      version=blob_record.version + 1,
                                      updated_at=CURRENT_TIMESTAMP
                        """
                    ),
                    {"namespace": namespace, "key": key, "value": _encode(value)},
                )
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("[STORE] set failed namespace=%s key=%s: %s", namespace, key, exc)
            raise StorageUnavailable("blob store write failed") from exc

    def set_if_version(self, namespace: str, key: str, value: Any, expected_version: int | None) -> bool:
        params = {"namespace": namespace, "key": key, "value": _encode(value)}
        try:
            with self._session_factory() as db:
                if expected_version is None:
                    try:
                        db.execute(
                            text(
                                """
                                INSERT INTO blob_record (namespace, blob_key, value, version, updated_at)
                                VALUES (:namespace, :key, :value, 1, CURRENT_TIMESTAMP)
                                """
                            ),
                            params,
                        )
                        db.commit()
                    except IntegrityError:
                        db.rollback()
                        return False
                    return True
                result = db.execute(
                    text(
                        """
                        UPDATE blob_record
                        SET value=:value, version=version + 1, updated_at=CURRENT_TIMESTAMP
                        WHERE namespace=:namespace AND blob_key=:key AND version=:expected
                        """
                    ),
                    {**params, "expected": expected_version},
                )
                db.commit()
                return result.rowcount == 1
        except SQLAlchemyError as exc:
            logger.error("[STORE] conditional set failed namespace=%s key=%s: %s", namespace, key, exc)
            raise StorageUnavailable("blob store write failed") from exc


def read_modify_write(
    store: BlobStore,
    namespace: str,
    key: str,
    mutate: Callable[[Any], Any],
    *,
    default: Any = None,
    attempts: int | None = None,
) -> Any:
    """Apply ``mutate`` to the current value and persist the result.

    ``mutate`` receives a private copy of the current value (or of ``default``
    when the key is absent) and returns the new value, or None to skip the
    write. On a conditional store the write is version-checked and retried with
    a fresh read on conflict; ``WriteConflict`` is raised after ``attempts``
    tries. On a plain store the write is blind and a concurrent update between
    the read and the write is lost.
    """
    max_attempts = attempts or STORE_MAX_ATTEMPTS
    for attempt in range(1, max_attempts + 1):
        current = store.get(namespace, key)
        base = copy.deepcopy(current.value if current else default)
        updated = mutate(base)
        if updated is None:
            return current.value if current else None
        if not store.supports_conditional_writes:
            store.set(namespace, key, updated)
            return updated
        expected = current.version if current else None
        if store.set_if_version(namespace, key, updated, expected):
            return updated
        logger.debug("[STORE] conflict namespace=%s key=%s attempt=%s", namespace, key, attempt)
    logger.warning("[STORE] giving up after %s conflicting writes namespace=%s key=%s", max_attempts, namespace, key)
    raise WriteConflict(f"too many concurrent writes to {namespace}/{key}")

from __future__ import annotations


class PulseError(Exception):
    """Base class for typed outcomes surfaced to the boundary."""

    reason = "error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.reason
        super().__init__(self.detail)


class NotFound(PulseError):
    reason = "not_found"


class AlreadyResponded(PulseError):
    reason = "already_responded"


class SurveyClosed(PulseError):
    reason = "survey_closed"


class Forbidden(PulseError):
    reason = "forbidden"


class AlreadyClosed(PulseError):
    reason = "already_closed"


class InvalidAnswer(PulseError):
    reason = "invalid_answer"

    def __init__(self, detail: str | None = None, field: str | None = None):
        self.field = field
        super().__init__(detail)


class MalformedInput(PulseError):
    reason = "malformed_input"


class StorageError(PulseError):
    reason = "storage_error"


class StorageUnavailable(StorageError):
    reason = "storage_unavailable"


class WriteConflict(StorageError):
    reason = "write_conflict"

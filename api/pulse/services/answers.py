"""Typed view over stored response dictionaries.

Responses are persisted as ``{"q_<index>": value}``. The shape of ``value``
depends on the question at that index, so answers are resolved against the
survey's question list instead of being read as untyped dictionaries.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Union

from ..errors import InvalidAnswer
from ..schemas import FREE_TEXT, MULTI_SELECT, SCALE


@dataclass(frozen=True)
class ScaleAnswer:
    value: float


@dataclass(frozen=True)
class MultiSelectAnswer:
    selected: tuple[str, ...]


@dataclass(frozen=True)
class FreeTextAnswer:
    text: str


Answer = Union[ScaleAnswer, MultiSelectAnswer, FreeTextAnswer]

SCALE_MIN = 1
SCALE_MAX = 5
FREE_TEXT_MAX_CHARS = 3000


def answer_key(index: int) -> str:
    return f"q_{index}"


def _as_number(raw: Any) -> float | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def resolve_answer(question: dict[str, Any], raw: Any) -> Answer | None:
    """Read one stored value; None means unanswered or unreadable."""
    qtype = question.get("type")
    if raw is None:
        return None
    if qtype == SCALE:
        value = _as_number(raw)
        # 0 is outside the 1-5 domain and means "no rating".
        if value is None or value == 0:
            return None
        return ScaleAnswer(value=value)
    if qtype == MULTI_SELECT:
        if isinstance(raw, str):
            raw = [raw]
        if not isinstance(raw, list):
            return None
        return MultiSelectAnswer(selected=tuple(str(opt) for opt in raw if opt not in (None, "")))
    if qtype == FREE_TEXT:
        if not isinstance(raw, str) or not raw:
            return None
        return FreeTextAnswer(text=raw)
    return None


def resolve_response(questions: list[dict[str, Any]], response: dict[str, Any]) -> list[Answer | None]:
    return [resolve_answer(q, response.get(answer_key(i))) for i, q in enumerate(questions)]


def validate_submission(questions: list[dict[str, Any]], answers: dict[str, Any]) -> dict[str, Any]:
    """Normalize submitted answers into the stored shape.

    Unknown keys are dropped, skipped questions stay absent. Raises
    ``InvalidAnswer`` for a value that does not fit its question.
    """
    out: dict[str, Any] = {}
    for index, question in enumerate(questions):
        key = answer_key(index)
        raw = answers.get(key)
        if raw is None or raw == "" or raw == []:
            continue
        qtype = question.get("type")
        if qtype == SCALE:
            value = _as_number(raw)
            if value is None or not value.is_integer() or not SCALE_MIN <= value <= SCALE_MAX:
                raise InvalidAnswer(f"rating must be an integer from {SCALE_MIN} to {SCALE_MAX}", field=key)
            out[key] = int(value)
        elif qtype == MULTI_SELECT:
            if not isinstance(raw, list) or not all(isinstance(v, str) for v in raw):
                raise InvalidAnswer("selection must be a list of options", field=key)
            allowed = set(question.get("options") or [])
            unknown = [v for v in raw if v not in allowed]
            if unknown:
                raise InvalidAnswer(f"unknown options: {', '.join(unknown)}", field=key)
            selected: list[str] = []
            for v in raw:
                if v not in selected:
                    selected.append(v)
            out[key] = selected
        elif qtype == FREE_TEXT:
            if not isinstance(raw, str):
                raise InvalidAnswer("answer must be text", field=key)
            text = raw.strip()
            if len(text) > FREE_TEXT_MAX_CHARS:
                raise InvalidAnswer(f"answer must be {FREE_TEXT_MAX_CHARS} characters or fewer", field=key)
            if text:
                out[key] = text
    return out

"""Per-question statistics and CSV export.

Everything here is a pure function of the survey record, its responses and the
viewer; nothing touches storage.
"""

from __future__ import annotations

import math
from typing import Any

from ..schemas import FREE_TEXT, MULTI_SELECT, SCALE, ViewerContext
from .answers import FreeTextAnswer, MultiSelectAnswer, ScaleAnswer, answer_key, resolve_answer

FILLED = "█"
EMPTY = "░"
SCALE_SEGMENTS = 5
OPTION_SEGMENTS = 10


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _bar(filled: int, segments: int) -> str:
    filled = max(0, min(segments, filled))
    return FILLED * filled + EMPTY * (segments - filled)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _scale_stats(index: int, question: dict[str, Any], responses: list[dict[str, Any]]) -> dict[str, Any]:
    values: list[float] = []
    for response in responses:
        answer = resolve_answer(question, response.get(answer_key(index)))
        if isinstance(answer, ScaleAnswer):
            values.append(answer.value)

    distribution = {n: sum(1 for v in values if v == n) for n in range(1, SCALE_SEGMENTS + 1)}
    if values:
        mean = sum(values) / len(values)
        average: float | None = round_half_up(mean, 1)
        bar = _bar(int(round_half_up(mean)), SCALE_SEGMENTS)
        text = f"{bar} {format_number(average)}/5 ({_plural(len(values), 'response')})"
    else:
        average = None
        bar = _bar(0, SCALE_SEGMENTS)
        text = f"{bar} no ratings yet"

    return {
        "average": average,
        "answered": len(values),
        "distribution": distribution,
        "bar": bar,
        "text": text,
        "distribution_text": " · ".join(f"{n}★: {c}" for n, c in distribution.items()),
    }


def _multi_select_stats(index: int, question: dict[str, Any], responses: list[dict[str, Any]]) -> dict[str, Any]:
    counts: dict[str, int] = {}
    for response in responses:
        answer = resolve_answer(question, response.get(answer_key(index)))
        if isinstance(answer, MultiSelectAnswer):
            for option in answer.selected:
                counts[option] = counts.get(option, 0) + 1

    total = len(responses)
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    options = []
    for option, count in ranked:
        percent = int(round_half_up(count / total * 100)) if total else 0
        bar = _bar(int(round_half_up(percent / 10)), OPTION_SEGMENTS)
        options.append(
            {
                "option": option,
                "count": count,
                "percent": percent,
                "bar": bar,
                "text": f"{option}: {bar} {percent}% ({count})",
            }
        )
    return {"options": options}


def freetext_visible(survey: dict[str, Any], viewer: ViewerContext) -> bool:
    # A public share never carries verbatim text, whoever asked for it.
    if viewer.is_share:
        return False
    settings = survey.get("settings") or {}
    return viewer.is_admin or bool(settings.get("shareFreetext"))


def _free_text_stats(
    index: int,
    question: dict[str, Any],
    responses: list[dict[str, Any]],
    survey: dict[str, Any],
    viewer: ViewerContext,
) -> dict[str, Any]:
    texts: list[str] = []
    for response in responses:
        answer = resolve_answer(question, response.get(answer_key(index)))
        if isinstance(answer, FreeTextAnswer):
            texts.append(answer.text)

    visible = freetext_visible(survey, viewer) and bool(texts)
    if visible:
        note = None
    elif viewer.is_share:
        note = f"{_plural(len(texts), 'free-text response')} (visible to survey creator only)"
    else:
        note = f"{_plural(len(texts), 'response')} · Free-text answers are only visible to the survey creator"
    return {"count": len(texts), "visible": visible, "texts": texts if visible else [], "note": note}


def build_results_data(
    survey: dict[str, Any],
    responses: list[dict[str, Any]],
    viewer: ViewerContext | None = None,
) -> dict[str, Any]:
    viewer = viewer or ViewerContext()
    total = len(responses)
    data: dict[str, Any] = {
        "survey_id": survey.get("id"),
        "title": survey.get("title"),
        "status": survey.get("status"),
        "response_count": total,
        "summary": f"{_plural(total, 'response')} · Status: {survey.get('status')}",
        "questions": [],
    }
    if total == 0:
        return data

    for index, question in enumerate(survey.get("questions") or []):
        qtype = question.get("type")
        entry: dict[str, Any] = {"index": index, "label": question.get("label"), "type": qtype}
        if qtype == SCALE:
            entry.update(_scale_stats(index, question, responses))
        elif qtype == MULTI_SELECT:
            entry.update(_multi_select_stats(index, question, responses))
        elif qtype == FREE_TEXT:
            entry.update(_free_text_stats(index, question, responses, survey, viewer))
        else:
            continue
        data["questions"].append(entry)
    return data


def _needs_quoting(value: str) -> bool:
    return "," in value or '"' in value


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def csv_field(value: Any) -> str:
    if isinstance(value, list):
        return _quote(", ".join(str(v) for v in value))
    if value is None or value == "" or isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)) and value == 0:
        return ""
    if isinstance(value, str):
        return _quote(value) if _needs_quoting(value) else value
    if isinstance(value, float):
        return format_number(value)
    return str(value)


def build_csv_export(survey: dict[str, Any], responses: list[dict[str, Any]]) -> str:
    questions = survey.get("questions") or []
    lines = [",".join(str(q.get("label") or "") for q in questions)]
    for response in responses:
        lines.append(",".join(csv_field(response.get(answer_key(i))) for i in range(len(questions))))
    return "\n".join(lines)

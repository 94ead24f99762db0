"""Turn the free-form question text from the create form into Questions.

One question per non-blank line; a trailing ``(multi-select)`` or
``(free-text)`` marker sets the type, anything else is a 1-5 scale::

    How supported do you feel?
    Which events? (multi-select)
    Any other feedback? (free-text)

Multi-select options come from a separate blob keyed by question number::

    Q2: Social events, Mentorship, Speaker series
"""

from __future__ import annotations

import logging
import re

from ..config import DEFAULT_MULTI_SELECT_OPTIONS
from ..errors import MalformedInput
from ..schemas import FREE_TEXT, MULTI_SELECT, SCALE, Question

logger = logging.getLogger(__name__)

_MULTI_SELECT_MARKER = re.compile(r"\s*\(multi-select\)", re.IGNORECASE)
_FREE_TEXT_MARKER = re.compile(r"\s*\(free-text\)", re.IGNORECASE)
_OPTION_LINE = re.compile(r"^Q(\d+)\s*:\s*(.+)$", re.IGNORECASE)


def _non_blank_lines(raw: str | None) -> list[str]:
    return [line.strip() for line in (raw or "").splitlines() if line.strip()]


def _parse_option_line(line: str) -> tuple[int, list[str]]:
    match = _OPTION_LINE.match(line)
    if not match:
        raise MalformedInput(f"not an options line: {line!r}")
    options = [opt.strip() for opt in match.group(2).split(",") if opt.strip()]
    if not options:
        raise MalformedInput(f"no options in line: {line!r}")
    return int(match.group(1)), options


def parse_options(raw_options: str | None) -> dict[int, list[str]]:
    """Map 1-based question numbers to option lists; later lines win."""
    out: dict[int, list[str]] = {}
    for line in _non_blank_lines(raw_options):
        try:
            number, options = _parse_option_line(line)
        except MalformedInput as exc:
            logger.debug("[PARSER] ignoring options line: %s", exc.detail)
            continue
        out[number] = options
    return out


def parse_questions(raw_lines: str | None, raw_options: str | None = "") -> list[Question]:
    options_map = parse_options(raw_options)
    questions: list[Question] = []
    for position, line in enumerate(_non_blank_lines(raw_lines), start=1):
        if _MULTI_SELECT_MARKER.search(line):
            questions.append(
                Question(
                    label=_MULTI_SELECT_MARKER.sub("", line, count=1).strip(),
                    type=MULTI_SELECT,
                    options=list(options_map.get(position) or DEFAULT_MULTI_SELECT_OPTIONS),
                )
            )
        elif _FREE_TEXT_MARKER.search(line):
            questions.append(Question(label=_FREE_TEXT_MARKER.sub("", line, count=1).strip(), type=FREE_TEXT))
        else:
            questions.append(Question(label=line, type=SCALE))
    return questions

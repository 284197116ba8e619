"""Heuristic extraction of answer keys (gabarito) from loosely structured text.

Strategy, in priority order:

1. Parse the lines of a section introduced by a ``GABARITO`` header line, up to the
   next blank line, the next all-caps header or the end of the text.
2. If there is no such section, or it yields nothing, scan every line of the document
   that mentions one of the answer keywords.

Every candidate line is matched as ``Questão N - rest`` or ``N) rest``; ``rest`` is
stripped of its label (``Gabarito:``, ``Resposta:``, ``Letra`` ...), split on
alternative separators and the first token that is a valid answer wins. Justifications
are taken from the same line or back-filled from later ``Justificativa N:`` blocks.
"""

from __future__ import annotations

import re
from dataclasses import replace

from drive_course_import.application.naming import strip_diacritics
from drive_course_import.domain.course_structure import AnswerKeyEntry

DEFAULT_POINTS = 10
MIN_QUESTION_NUMBER = 1
MAX_QUESTION_NUMBER = 200

FALLBACK_KEYWORDS = ("gabarito", "resposta", "alternativa", "letra", "item", "resp")

_SECTION_HEADER_PATTERN = re.compile(r"^gabarito\s*[:\-–]?\s*$", re.IGNORECASE)
_SECTION_END_HEADER_PATTERN = re.compile(r"^[A-Z][A-Z\s]+:?$")
_QUESTION_LINE_PATTERN = re.compile(
    r"^(?:quest[aã]o|pergunta)\s*(?:n[º°o.]*\s*)?(\d+)\s*[.):\-–]?\s*(.+)$",
    re.IGNORECASE,
)
_NUMBERED_LINE_PATTERN = re.compile(r"^(\d+)\s*[.):\-–]\s*(.+)$")
_LABEL_PATTERN = re.compile(
    r"\b(?:gabarito|resposta|alternativa\s+correta|alternativa|letra|item)\b\s*[:\-–=]?\s*",
    re.IGNORECASE,
)
_LEADING_LABEL_PATTERN = re.compile(
    r"^(?:gabarito|resposta|alternativa\s+correta|alternativa|letra|item)\b\s*[:\-–=]?\s*",
    re.IGNORECASE,
)
_INLINE_JUSTIFICATION_PATTERN = re.compile(r"\s*justificativa\s*:\s*(.*)$", re.IGNORECASE)
_ALTERNATIVES_SPLIT_PATTERN = re.compile(r"\\|/|;|,|\||\bou\b", re.IGNORECASE)
_TOKEN_TRIM_CHARS = " \t()[]{}.:*-–\"'"
_JUSTIFICATION_BLOCK_PATTERN = re.compile(
    r"^justificativa\s*(\d+)?\s*[.:\-–]\s*(.*)$",
    re.IGNORECASE,
)
_TRUE_TOKENS = frozenset({"verdadeiro", "true", "v"})
_FALSE_TOKENS = frozenset({"falso", "false", "f"})
_LETTER_TOKENS = frozenset({"a", "b", "c", "d", "e"})


def parse_answer_key(document_text: str) -> list[AnswerKeyEntry]:
    """Extract answer key entries sorted by question number; empty when nothing matches."""
    if not document_text:
        return []

    lines = document_text.replace("\r\n", "\n").replace("\r", "\n").split("\n")

    entries: list[AnswerKeyEntry] = []
    section_lines = _find_gabarito_section(lines)
    if section_lines is not None:
        entries = _parse_candidate_lines(section_lines)

    if not entries:
        keyword_lines = [line for line in lines if _mentions_answer_keyword(line)]
        entries = _parse_candidate_lines(keyword_lines)

    if not entries:
        return []

    return sorted(
        _backfill_justifications(entries, _extract_justification_blocks(lines)),
        key=lambda entry: entry.question_number,
    )


def normalize_answer_token(token: str) -> str | None:
    """Map a raw token to ``A``-``E``, ``V`` or ``F``; None when it is not an answer."""
    cleaned = strip_diacritics(token).strip(_TOKEN_TRIM_CHARS).lower()
    if cleaned in _LETTER_TOKENS:
        return cleaned.upper()
    if cleaned in _TRUE_TOKENS:
        return "V"
    if cleaned in _FALSE_TOKENS:
        return "F"
    return None


def _find_gabarito_section(lines: list[str]) -> list[str] | None:
    for index, line in enumerate(lines):
        if not _SECTION_HEADER_PATTERN.match(line.strip()):
            continue

        section: list[str] = []
        for candidate in lines[index + 1 :]:
            stripped = candidate.strip()
            if not stripped:
                if section:
                    break
                continue
            if _SECTION_END_HEADER_PATTERN.match(stripped):
                break
            section.append(stripped)
        return section
    return None


def _mentions_answer_keyword(line: str) -> bool:
    normalized = strip_diacritics(line).lower()
    return any(keyword in normalized for keyword in FALLBACK_KEYWORDS)


def _parse_candidate_lines(lines: list[str]) -> list[AnswerKeyEntry]:
    entries: list[AnswerKeyEntry] = []
    seen_numbers: set[int] = set()
    for line in lines:
        entry = _parse_line(line.strip())
        if entry is None or entry.question_number in seen_numbers:
            continue
        seen_numbers.add(entry.question_number)
        entries.append(entry)
    return entries


def _parse_line(line: str) -> AnswerKeyEntry | None:
    match = _QUESTION_LINE_PATTERN.match(line) or _NUMBERED_LINE_PATTERN.match(line)
    if match is None:
        return None

    question_number = _bounded_number(match.group(1))
    if question_number is None or not MIN_QUESTION_NUMBER <= question_number <= MAX_QUESTION_NUMBER:
        return None

    rest = match.group(2)
    justification: str | None = None
    justification_match = _INLINE_JUSTIFICATION_PATTERN.search(rest)
    if justification_match is not None:
        justification = justification_match.group(1).strip() or None
        rest = rest[: justification_match.start()]

    label_match = _LABEL_PATTERN.search(rest)
    if label_match is not None:
        rest = rest[label_match.end() :]

    answer = _first_valid_answer(rest)
    if answer is None:
        return None

    return AnswerKeyEntry(
        question_number=question_number,
        correct_answer=answer,
        points=DEFAULT_POINTS,
        justification=justification,
    )


def _bounded_number(digits: str) -> int | None:
    """Convert a digit run no longer than the largest question number."""
    significant = digits.lstrip("0") or ("0" if digits else "")
    if not significant or len(significant) > len(str(MAX_QUESTION_NUMBER)):
        return None
    return int(significant)


def _first_valid_answer(rest: str) -> str | None:
    for piece in _ALTERNATIVES_SPLIT_PATTERN.split(rest):
        candidate = _LEADING_LABEL_PATTERN.sub("", piece.strip())
        answer = normalize_answer_token(candidate)
        if answer is not None:
            return answer

        words = candidate.split()
        if 1 < len(words) <= 2:
            answer = normalize_answer_token(words[0])
            if answer is not None:
                return answer
    return None


def _extract_justification_blocks(lines: list[str]) -> list[tuple[int, str]]:
    blocks: list[tuple[int, list[str]]] = []
    collecting = False
    for line in lines:
        stripped = line.strip()
        block_match = _JUSTIFICATION_BLOCK_PATTERN.match(stripped)
        if block_match is not None:
            number = _bounded_number(block_match.group(1) or "")
            if number is None:
                number = len(blocks) + 1
            first_line = block_match.group(2).strip()
            blocks.append((number, [first_line] if first_line else []))
            collecting = True
            continue

        if not collecting:
            continue
        if (
            not stripped
            or _NUMBERED_LINE_PATTERN.match(stripped)
            or _SECTION_END_HEADER_PATTERN.match(stripped)
        ):
            collecting = False
            continue
        blocks[-1][1].append(stripped)

    return [(number, " ".join(parts)) for number, parts in blocks if parts]


def _backfill_justifications(
    entries: list[AnswerKeyEntry],
    justifications: list[tuple[int, str]],
) -> list[AnswerKeyEntry]:
    by_number: dict[int, str] = {}
    for number, text in justifications:
        by_number.setdefault(number, text)

    return [
        replace(entry, justification=by_number[entry.question_number])
        if entry.justification is None and entry.question_number in by_number
        else entry
        for entry in entries
    ]

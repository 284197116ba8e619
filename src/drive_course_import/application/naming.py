"""Naming rules for remote titles: normalization, codes, slugs and test detection."""

from __future__ import annotations

import re
import unicodedata

from drive_course_import.domain.course_structure import RemoteNode

DRIVE_FILE_URL_TEMPLATE = "https://drive.google.com/file/d/{file_id}/view"
GENERATED_SUBJECT_CODE_PREFIX = "SUB_"
GENERATED_SUBJECT_CODE_MAX_LENGTH = 50
SLUG_FALLBACK = "item"

_WHITESPACE_PATTERN = re.compile(r"\s+")
_TEST_TOKEN_PATTERN = re.compile(r"\btest(?:e|es)?\b")
_NON_ALNUM_PATTERN = re.compile(r"[^a-z0-9]+")
_NON_ALNUM_UPPER_PATTERN = re.compile(r"[^A-Z0-9]+")
_EXPLICIT_SUBJECT_CODE_PATTERN = re.compile(r"^([A-Za-z0-9]{3,})\s*[-_]\s*\S")
_LESSON_CODE_PATTERN = re.compile(r"^([A-Z0-9]+)-(.+)$")
_FILE_EXTENSION_PATTERN = re.compile(
    r"\.(docx?|pdf|txt|pptx?|xlsx?|mp4|mp3|m4a|wav|avi|mov|zip|rar|png|jpg|jpeg|gif|svg"
    r"|html?|css|js|json|xml|csv|odt|ods|odp)$",
    re.IGNORECASE,
)
_FOLDER_ID_PATTERNS = (
    re.compile(r"/folders/([a-zA-Z0-9_-]+)"),
    re.compile(r"[?&]id=([a-zA-Z0-9_-]+)"),
    re.compile(r"/d/([a-zA-Z0-9_-]+)"),
)
_BARE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


class InvalidFolderReferenceError(ValueError):
    """Raised when a folder URL or id cannot be interpreted."""


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def normalize_name(value: str) -> str:
    """Return a case/diacritic/whitespace-insensitive lookup key."""
    return _WHITESPACE_PATTERN.sub(" ", strip_diacritics(value).casefold()).strip()


def strip_file_extension(filename: str) -> str:
    return _FILE_EXTENSION_PATTERN.sub("", filename).strip()


def is_test_file(title: str) -> bool:
    """Return whether a title names a test (standalone word "test"/"teste")."""
    normalized = strip_diacritics(strip_file_extension(title)).lower()
    return _TEST_TOKEN_PATTERN.search(normalized) is not None


def slugify(value: str) -> str:
    """Lower-case, diacritic-free, hyphen-separated path segment."""
    slug = _NON_ALNUM_PATTERN.sub("-", strip_diacritics(value).lower()).strip("-")
    return slug or SLUG_FALLBACK


def extract_explicit_subject_code(folder_name: str) -> str | None:
    """Return the upper-cased prefix code of names like ``DISC1 - Fundamentos``."""
    match = _EXPLICIT_SUBJECT_CODE_PATTERN.match(folder_name.strip())
    if match is None:
        return None
    return match.group(1).upper()


def generate_subject_code(module_name: str, subject_name: str) -> str:
    """Derive a deterministic subject code from module and subject names."""
    combined = strip_diacritics(f"{module_name} {subject_name}").upper()
    body = _NON_ALNUM_UPPER_PATTERN.sub("_", combined).strip("_")
    return f"{GENERATED_SUBJECT_CODE_PREFIX}{body}"[:GENERATED_SUBJECT_CODE_MAX_LENGTH]


def parse_lesson_filename(filename: str, index: int) -> tuple[str, str]:
    """Split ``CODE-Name.ext`` into (code, name); auto-generate the code otherwise."""
    title = strip_file_extension(filename)
    match = _LESSON_CODE_PATTERN.match(title)
    if match is not None:
        return match.group(1), match.group(2).strip()
    return f"A{index:02d}", title


def drive_file_url(file_id: str) -> str:
    return DRIVE_FILE_URL_TEMPLATE.format(file_id=file_id)


def module_display_name(node: RemoteNode, order: int) -> str:
    name = (node.name or "").strip()
    return name if name else f"Módulo {order}"


def subject_display_name(node: RemoteNode, module_name: str, order: int) -> str:
    name = (node.name or "").strip()
    return name if name else f"{module_name} - Disciplina {order}"


def extract_drive_folder_id(reference: str) -> str:
    """Return the folder id from a Drive folder URL or a bare id."""
    candidate = reference.strip()
    for pattern in _FOLDER_ID_PATTERNS:
        match = pattern.search(candidate)
        if match is not None:
            return match.group(1)

    if _BARE_ID_PATTERN.match(candidate):
        return candidate
    raise InvalidFolderReferenceError(f"Unsupported Drive folder reference: {reference!r}")

"""Domain models for the remote tree and the in-memory course structure."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
GOOGLE_DOC_MIME_TYPE = "application/vnd.google-apps.document"
GOOGLE_SLIDES_MIME_TYPE = "application/vnd.google-apps.presentation"
GOOGLE_SHEETS_MIME_TYPE = "application/vnd.google-apps.spreadsheet"
GOOGLE_VIDEO_MIME_TYPE = "application/vnd.google-apps.video"
GOOGLE_NATIVE_PREFIX = "application/vnd.google-apps."


class RemoteNodeKind(StrEnum):
    """Kinds of nodes returned by remote folder listings."""

    FOLDER = "folder"
    FILE = "file"


class LessonContentType(StrEnum):
    """Content type stored on lesson and test rows."""

    TEXT = "text"
    VIDEO = "video"
    TEST = "test"


@dataclass(frozen=True)
class RemoteNode:
    """One child entry of a remote folder listing."""

    id: str
    name: str | None
    kind: RemoteNodeKind
    mime_type: str
    size_bytes: int | None = None

    @property
    def is_folder(self) -> bool:
        return self.kind is RemoteNodeKind.FOLDER


@dataclass(frozen=True)
class AnswerKeyEntry:
    """Correct answer for one question of a test."""

    question_number: int
    correct_answer: str
    points: int = 10
    justification: str | None = None


@dataclass
class LessonDraft:
    """Lesson discovered during traversal, not yet persisted."""

    name: str
    code: str
    order: int
    content_type: LessonContentType
    description: str
    content: str | None = None
    content_url: str | None = None
    attachment_url: str | None = None

    @property
    def full_title(self) -> str:
        return f"{self.code} - {self.name}" if self.code else self.name


@dataclass
class TestDraft:
    """Test document discovered during traversal, not yet persisted."""

    __test__ = False

    name: str
    order: int
    content_url: str
    description: str
    answer_key: list[AnswerKeyEntry] | None = None
    requires_manual_answer_key: bool = True
    attachment_url: str | None = None
    content_type: LessonContentType = LessonContentType.TEST


@dataclass
class SubjectDraft:
    """Subject folder with its new lessons and tests."""

    name: str
    code: str
    order: int
    explicit_code: bool = False
    existing_id: str | None = None
    lessons: list[LessonDraft] = field(default_factory=list)
    tests: list[TestDraft] = field(default_factory=list)

    @property
    def has_new_items(self) -> bool:
        return bool(self.lessons or self.tests)


@dataclass
class ModuleDraft:
    """Top-level module folder with its subjects."""

    name: str
    order: int
    existing_id: str | None = None
    subjects: list[SubjectDraft] = field(default_factory=list)


@dataclass
class CourseStructure:
    """Root aggregate built by one traversal of the remote tree."""

    modules: list[ModuleDraft] = field(default_factory=list)
    skipped_lessons: int = 0
    skipped_tests: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def lesson_count(self) -> int:
        return sum(
            len(subject.lessons) for module in self.modules for subject in module.subjects
        )

    @property
    def test_count(self) -> int:
        return sum(
            len(subject.tests) for module in self.modules for subject in module.subjects
        )

"""Application ports for the destination course store."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from types import TracebackType
from typing import Protocol

from drive_course_import.domain.course_structure import AnswerKeyEntry


@dataclass(frozen=True)
class ModuleRecord:
    """Persisted course module."""

    id: str
    course_id: str
    title: str
    order_index: int


@dataclass(frozen=True)
class SubjectRecord:
    """Persisted subject."""

    id: str
    code: str
    name: str


@dataclass(frozen=True)
class ModuleSubjectRecord:
    """Association of a subject with a module."""

    module_id: str
    subject: SubjectRecord


@dataclass(frozen=True)
class LessonRecord:
    """Persisted lesson."""

    id: str
    module_id: str
    title: str
    content_url: str | None
    order_index: int


@dataclass(frozen=True)
class TestRecord:
    """Persisted test."""

    __test__ = False

    id: str
    course_id: str
    title: str
    content_url: str
    is_active: bool


@dataclass(frozen=True)
class NewLesson:
    """Insert payload for a lesson row."""

    module_id: str
    title: str
    description: str
    content: str
    content_type: str
    content_url: str | None
    attachment_url: str | None
    order_index: int


@dataclass(frozen=True)
class NewTest:
    """Insert payload for a test row."""

    course_id: str
    module_id: str | None
    subject_id: str | None
    title: str
    description: str
    content_url: str
    attachment_url: str | None
    is_active: bool
    requires_manual_answer_key: bool
    duration_minutes: int = 60
    passing_score: int = 70
    max_attempts: int = 3


class CourseStore(Protocol):
    """Narrow table operations used by the importer."""

    def list_modules(self, course_id: str) -> list[ModuleRecord]:
        """Return modules of a course."""
        ...

    def list_module_subjects(self, module_ids: Iterable[str]) -> list[ModuleSubjectRecord]:
        """Return subjects associated with the given modules."""
        ...

    def list_lesson_content_urls(self, module_ids: Iterable[str]) -> set[str]:
        """Return content URLs of lessons in the given modules."""
        ...

    def list_test_content_urls(self, course_id: str) -> set[str]:
        """Return content URLs of tests in a course."""
        ...

    def find_module(self, course_id: str, title: str) -> ModuleRecord | None:
        """Return module with exactly this title in the course."""
        ...

    def max_module_order(self, course_id: str) -> int | None:
        """Return highest module order_index of the course."""
        ...

    def insert_module(self, course_id: str, title: str, order_index: int) -> ModuleRecord:
        """Create a module."""
        ...

    def find_subject_by_code(self, code: str) -> SubjectRecord | None:
        """Return subject with this code."""
        ...

    def find_subject_by_name(self, name: str) -> SubjectRecord | None:
        """Return subject with exactly this name."""
        ...

    def insert_subject(self, code: str, name: str, description: str) -> SubjectRecord:
        """Create a subject."""
        ...

    def has_module_subject(self, module_id: str, subject_id: str) -> bool:
        """Return whether the module/subject association exists."""
        ...

    def max_module_subject_order(self, module_id: str) -> int | None:
        """Return highest subject order_index within a module."""
        ...

    def insert_module_subject(self, module_id: str, subject_id: str, order_index: int) -> None:
        """Associate a subject with a module."""
        ...

    def find_lesson(self, module_id: str, title: str) -> LessonRecord | None:
        """Return lesson with exactly this title in the module."""
        ...

    def max_lesson_order(self, module_id: str) -> int | None:
        """Return highest lesson order_index within a module."""
        ...

    def insert_lesson(self, lesson: NewLesson) -> LessonRecord:
        """Create a lesson."""
        ...

    def has_subject_lesson(self, subject_id: str, lesson_id: str) -> bool:
        """Return whether the subject/lesson association exists."""
        ...

    def insert_subject_lesson(self, subject_id: str, lesson_id: str) -> None:
        """Associate a lesson with a subject."""
        ...

    def find_test_by_url(self, course_id: str, content_url: str) -> TestRecord | None:
        """Return test of the course imported from this content URL."""
        ...

    def insert_test(self, test: NewTest) -> TestRecord:
        """Create a test."""
        ...

    def delete_answer_keys(self, test_id: str) -> None:
        """Delete all answer-key rows of a test."""
        ...

    def insert_answer_keys(self, test_id: str, entries: Iterable[AnswerKeyEntry]) -> None:
        """Insert answer-key rows for a test."""
        ...

    def activate_test(self, test_id: str) -> None:
        """Mark a test as active."""
        ...


class CourseUnitOfWork(Protocol):
    """Unit-of-work port around course store operations."""

    store: CourseStore

    def __enter__(self) -> CourseUnitOfWork:
        """Start transactional scope."""
        ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Finalize transactional scope."""
        ...

    def commit(self) -> None:
        """Commit current transaction."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction."""
        ...


CourseUnitOfWorkFactory = Callable[[], CourseUnitOfWork]

"""SQLAlchemy unit-of-work implementation for course persistence."""

from __future__ import annotations

from collections.abc import Iterable
from types import TracebackType

from sqlalchemy.orm import Session, sessionmaker

from drive_course_import.application.course_store import (
    CourseStore,
    CourseUnitOfWork,
    LessonRecord,
    ModuleRecord,
    ModuleSubjectRecord,
    NewLesson,
    NewTest,
    SubjectRecord,
    TestRecord,
)
from drive_course_import.domain.course_structure import AnswerKeyEntry
from drive_course_import.infrastructure.db.course_store import SqlAlchemyCourseStore


class _UninitializedStore(CourseStore):
    """Placeholder store before entering unit-of-work context."""

    def _inactive(self) -> RuntimeError:
        return RuntimeError("Unit of work is not active.")

    def list_modules(self, course_id: str) -> list[ModuleRecord]:
        raise self._inactive()

    def list_module_subjects(self, module_ids: Iterable[str]) -> list[ModuleSubjectRecord]:
        raise self._inactive()

    def list_lesson_content_urls(self, module_ids: Iterable[str]) -> set[str]:
        raise self._inactive()

    def list_test_content_urls(self, course_id: str) -> set[str]:
        raise self._inactive()

    def find_module(self, course_id: str, title: str) -> ModuleRecord | None:
        raise self._inactive()

    def max_module_order(self, course_id: str) -> int | None:
        raise self._inactive()

    def insert_module(self, course_id: str, title: str, order_index: int) -> ModuleRecord:
        raise self._inactive()

    def find_subject_by_code(self, code: str) -> SubjectRecord | None:
        raise self._inactive()

    def find_subject_by_name(self, name: str) -> SubjectRecord | None:
        raise self._inactive()

    def insert_subject(self, code: str, name: str, description: str) -> SubjectRecord:
        raise self._inactive()

    def has_module_subject(self, module_id: str, subject_id: str) -> bool:
        raise self._inactive()

    def max_module_subject_order(self, module_id: str) -> int | None:
        raise self._inactive()

    def insert_module_subject(self, module_id: str, subject_id: str, order_index: int) -> None:
        raise self._inactive()

    def find_lesson(self, module_id: str, title: str) -> LessonRecord | None:
        raise self._inactive()

    def max_lesson_order(self, module_id: str) -> int | None:
        raise self._inactive()

    def insert_lesson(self, lesson: NewLesson) -> LessonRecord:
        raise self._inactive()

    def has_subject_lesson(self, subject_id: str, lesson_id: str) -> bool:
        raise self._inactive()

    def insert_subject_lesson(self, subject_id: str, lesson_id: str) -> None:
        raise self._inactive()

    def find_test_by_url(self, course_id: str, content_url: str) -> TestRecord | None:
        raise self._inactive()

    def insert_test(self, test: NewTest) -> TestRecord:
        raise self._inactive()

    def delete_answer_keys(self, test_id: str) -> None:
        raise self._inactive()

    def insert_answer_keys(self, test_id: str, entries: Iterable[AnswerKeyEntry]) -> None:
        raise self._inactive()

    def activate_test(self, test_id: str) -> None:
        raise self._inactive()


class SqlAlchemyCourseUnitOfWork(CourseUnitOfWork):
    """Manage transactional scope for course writes."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory
        self._session: Session | None = None
        self.store: CourseStore = _UninitializedStore()

    def __enter__(self) -> SqlAlchemyCourseUnitOfWork:
        self._session = self._session_factory()
        self.store = SqlAlchemyCourseStore(self._session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc is not None:
            self.rollback()

        session = self._session
        self._session = None
        self.store = _UninitializedStore()
        if session is not None:
            session.close()

    def commit(self) -> None:
        session = self._require_session()
        session.commit()

    def rollback(self) -> None:
        session = self._session
        if session is not None:
            session.rollback()

    def _require_session(self) -> Session:
        if self._session is None:
            raise RuntimeError("Unit of work is not active.")
        return self._session

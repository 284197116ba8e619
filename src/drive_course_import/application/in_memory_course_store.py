"""Process-local course store used by tests and dry runs."""

from __future__ import annotations

import copy
from collections.abc import Iterable
from dataclasses import dataclass, field
from types import TracebackType
from uuid import uuid4

from drive_course_import.application.course_store import (
    LessonRecord,
    ModuleRecord,
    ModuleSubjectRecord,
    NewLesson,
    NewTest,
    SubjectRecord,
    TestRecord,
)
from drive_course_import.domain.course_structure import AnswerKeyEntry


@dataclass
class InMemoryCourseState:
    """Plain row collections keyed by id."""

    modules: dict[str, ModuleRecord] = field(default_factory=dict)
    subjects: dict[str, SubjectRecord] = field(default_factory=dict)
    module_subjects: dict[tuple[str, str], int] = field(default_factory=dict)
    lessons: dict[str, LessonRecord] = field(default_factory=dict)
    lesson_rows: dict[str, NewLesson] = field(default_factory=dict)
    subject_lessons: set[tuple[str, str]] = field(default_factory=set)
    tests: dict[str, TestRecord] = field(default_factory=dict)
    test_rows: dict[str, NewTest] = field(default_factory=dict)
    answer_keys: dict[str, list[AnswerKeyEntry]] = field(default_factory=dict)


class InMemoryCourseStore:
    """CourseStore over an InMemoryCourseState."""

    def __init__(self, state: InMemoryCourseState | None = None) -> None:
        self.state = state or InMemoryCourseState()

    def list_modules(self, course_id: str) -> list[ModuleRecord]:
        return sorted(
            (module for module in self.state.modules.values() if module.course_id == course_id),
            key=lambda module: module.order_index,
        )

    def list_module_subjects(self, module_ids: Iterable[str]) -> list[ModuleSubjectRecord]:
        wanted = set(module_ids)
        return [
            ModuleSubjectRecord(module_id=module_id, subject=self.state.subjects[subject_id])
            for (module_id, subject_id) in self.state.module_subjects
            if module_id in wanted
        ]

    def list_lesson_content_urls(self, module_ids: Iterable[str]) -> set[str]:
        wanted = set(module_ids)
        return {
            lesson.content_url
            for lesson in self.state.lessons.values()
            if lesson.module_id in wanted and lesson.content_url
        }

    def list_test_content_urls(self, course_id: str) -> set[str]:
        return {
            test.content_url
            for test in self.state.tests.values()
            if test.course_id == course_id
        }

    def find_module(self, course_id: str, title: str) -> ModuleRecord | None:
        for module in self.state.modules.values():
            if module.course_id == course_id and module.title == title:
                return module
        return None

    def max_module_order(self, course_id: str) -> int | None:
        orders = [m.order_index for m in self.state.modules.values() if m.course_id == course_id]
        return max(orders, default=None)

    def insert_module(self, course_id: str, title: str, order_index: int) -> ModuleRecord:
        record = ModuleRecord(
            id=str(uuid4()),
            course_id=course_id,
            title=title,
            order_index=order_index,
        )
        self.state.modules[record.id] = record
        return record

    def find_subject_by_code(self, code: str) -> SubjectRecord | None:
        for subject in self.state.subjects.values():
            if subject.code == code:
                return subject
        return None

    def find_subject_by_name(self, name: str) -> SubjectRecord | None:
        for subject in self.state.subjects.values():
            if subject.name == name:
                return subject
        return None

    def insert_subject(self, code: str, name: str, description: str) -> SubjectRecord:
        if self.find_subject_by_code(code) is not None:
            raise ValueError(f"Subject code already exists: {code}")
        record = SubjectRecord(id=str(uuid4()), code=code, name=name)
        self.state.subjects[record.id] = record
        return record

    def has_module_subject(self, module_id: str, subject_id: str) -> bool:
        return (module_id, subject_id) in self.state.module_subjects

    def max_module_subject_order(self, module_id: str) -> int | None:
        orders = [
            order
            for (linked_module_id, _), order in self.state.module_subjects.items()
            if linked_module_id == module_id
        ]
        return max(orders, default=None)

    def insert_module_subject(self, module_id: str, subject_id: str, order_index: int) -> None:
        self.state.module_subjects[(module_id, subject_id)] = order_index

    def find_lesson(self, module_id: str, title: str) -> LessonRecord | None:
        for lesson in self.state.lessons.values():
            if lesson.module_id == module_id and lesson.title == title:
                return lesson
        return None

    def max_lesson_order(self, module_id: str) -> int | None:
        orders = [
            lesson.order_index
            for lesson in self.state.lessons.values()
            if lesson.module_id == module_id
        ]
        return max(orders, default=None)

    def insert_lesson(self, lesson: NewLesson) -> LessonRecord:
        record = LessonRecord(
            id=str(uuid4()),
            module_id=lesson.module_id,
            title=lesson.title,
            content_url=lesson.content_url,
            order_index=lesson.order_index,
        )
        self.state.lessons[record.id] = record
        self.state.lesson_rows[record.id] = lesson
        return record

    def has_subject_lesson(self, subject_id: str, lesson_id: str) -> bool:
        return (subject_id, lesson_id) in self.state.subject_lessons

    def insert_subject_lesson(self, subject_id: str, lesson_id: str) -> None:
        self.state.subject_lessons.add((subject_id, lesson_id))

    def find_test_by_url(self, course_id: str, content_url: str) -> TestRecord | None:
        for test in self.state.tests.values():
            if test.course_id == course_id and test.content_url == content_url:
                return test
        return None

    def insert_test(self, test: NewTest) -> TestRecord:
        record = TestRecord(
            id=str(uuid4()),
            course_id=test.course_id,
            title=test.title,
            content_url=test.content_url,
            is_active=test.is_active,
        )
        self.state.tests[record.id] = record
        self.state.test_rows[record.id] = test
        return record

    def delete_answer_keys(self, test_id: str) -> None:
        self.state.answer_keys.pop(test_id, None)

    def insert_answer_keys(self, test_id: str, entries: Iterable[AnswerKeyEntry]) -> None:
        self.state.answer_keys.setdefault(test_id, []).extend(entries)

    def activate_test(self, test_id: str) -> None:
        test = self.state.tests[test_id]
        self.state.tests[test_id] = TestRecord(
            id=test.id,
            course_id=test.course_id,
            title=test.title,
            content_url=test.content_url,
            is_active=True,
        )


class InMemoryCourseUnitOfWork:
    """Unit of work restoring a state snapshot on rollback."""

    def __init__(self, state: InMemoryCourseState) -> None:
        self._state = state
        self._snapshot: InMemoryCourseState | None = None
        self.store = InMemoryCourseStore(state)

    def __enter__(self) -> InMemoryCourseUnitOfWork:
        self._snapshot = copy.deepcopy(self._state)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc is not None or self._snapshot is not None:
            self.rollback()
        self._snapshot = None

    def commit(self) -> None:
        self._snapshot = None

    def rollback(self) -> None:
        snapshot = self._snapshot
        if snapshot is None:
            return
        for name in vars(snapshot):
            setattr(self._state, name, getattr(snapshot, name))
        self._snapshot = None

"""Idempotent persistence of a traversed course structure."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from drive_course_import.application.course_store import (
    CourseStore,
    CourseUnitOfWorkFactory,
    NewLesson,
    NewTest,
)
from drive_course_import.application.naming import generate_subject_code
from drive_course_import.application.progress import ImportPhase, ProgressTracker
from drive_course_import.domain.course_structure import (
    CourseStructure,
    LessonDraft,
    ModuleDraft,
    SubjectDraft,
    TestDraft,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_TEST_DURATION_MINUTES = 60
DEFAULT_PASSING_SCORE = 70
DEFAULT_MAX_ATTEMPTS = 3

_T = TypeVar("_T")


@dataclass
class ImportCounts:
    """Per-entity counters."""

    modules: int = 0
    subjects: int = 0
    lessons: int = 0
    tests: int = 0


@dataclass
class ImportResult:
    """Outcome of one write pass; per-item failures are listed in ``errors``."""

    modules: int = 0
    subjects: int = 0
    lessons: int = 0
    tests: int = 0
    skipped: ImportCounts = field(default_factory=ImportCounts)
    errors: list[str] = field(default_factory=list)
    tests_updated: int = 0


@dataclass(frozen=True)
class _Written:
    id: str
    created: bool


class ImportWriter:
    """Write modules, subjects, lessons and tests in foreign-key order.

    Every item runs in its own unit of work: a rejected insert rolls back only
    that item, is appended to ``errors`` and the pass moves on.
    """

    def __init__(
        self,
        uow_factory: CourseUnitOfWorkFactory,
        *,
        tracker: ProgressTracker | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._tracker = tracker

    def write(self, structure: CourseStructure, course_id: str) -> ImportResult:
        result = ImportResult()
        result.skipped.lessons = structure.skipped_lessons
        result.skipped.tests = structure.skipped_tests

        for module in structure.modules:
            self._report("Saving modules", f"Module: {module.name}")
            written_module = self._run(
                result,
                f"Module {module.name}",
                lambda store, module=module: _write_module(store, course_id, module),
            )
            if written_module is None:
                continue
            _count(result, "modules", written_module.created)

            for subject in module.subjects:
                self._write_subject_tree(result, course_id, written_module.id, module.name, subject)

        LOGGER.info(
            (
                "event=import_write_completed course_id=%s modules=%s subjects=%s "
                "lessons=%s tests=%s skipped_modules=%s skipped_subjects=%s "
                "skipped_lessons=%s skipped_tests=%s tests_updated=%s errors=%s"
            ),
            course_id,
            result.modules,
            result.subjects,
            result.lessons,
            result.tests,
            result.skipped.modules,
            result.skipped.subjects,
            result.skipped.lessons,
            result.skipped.tests,
            result.tests_updated,
            len(result.errors),
        )
        return result

    def _write_subject_tree(
        self,
        result: ImportResult,
        course_id: str,
        module_id: str,
        module_name: str,
        subject: SubjectDraft,
    ) -> None:
        self._report("Saving subjects", f"Subject: {subject.name}")
        written_subject = self._run(
            result,
            f"Subject {subject.name}",
            lambda store: _write_subject(store, module_id, module_name, subject),
        )
        if written_subject is None:
            return
        _count(result, "subjects", written_subject.created)
        subject_id = written_subject.id

        for lesson in subject.lessons:
            self._report("Saving lessons", f"Lesson: {lesson.full_title}")
            written_lesson = self._run(
                result,
                f"Lesson {lesson.full_title}",
                lambda store, lesson=lesson: _write_lesson(store, module_id, subject_id, lesson),
            )
            if written_lesson is not None:
                _count(result, "lessons", written_lesson.created)

        for test in subject.tests:
            self._report("Saving tests", f"Test: {test.name}")
            written_test = self._run(
                result,
                f"Test {test.name}",
                lambda store, test=test: _write_test(
                    store, course_id, module_id, subject_id, test
                ),
            )
            if written_test is None:
                continue
            _count(result, "tests", written_test.created)
            if not written_test.created and test.answer_key:
                result.tests_updated += 1

    def _run(
        self,
        result: ImportResult,
        item_label: str,
        action: Callable[[CourseStore], _T],
    ) -> _T | None:
        try:
            with self._uow_factory() as uow:
                outcome = action(uow.store)
                uow.commit()
                return outcome
        except Exception as exc:
            message = f"{item_label}: {exc}"
            LOGGER.warning(
                "event=import_item_failed item=%s error_type=%s",
                item_label,
                exc.__class__.__name__,
            )
            result.errors.append(message)
            if self._tracker is not None:
                self._tracker.record_error(message)
            return None

    def _report(self, step: str, item: str) -> None:
        if self._tracker is not None:
            self._tracker.report(step, item, phase=ImportPhase.SAVING)


def _count(result: ImportResult, name: str, created: bool) -> None:
    if created:
        setattr(result, name, getattr(result, name) + 1)
    else:
        setattr(result.skipped, name, getattr(result.skipped, name) + 1)


def _next_order(current_max: int | None) -> int:
    return 0 if current_max is None else current_max + 1


def _write_module(store: CourseStore, course_id: str, module: ModuleDraft) -> _Written:
    existing = store.find_module(course_id, module.name)
    if existing is not None:
        return _Written(id=existing.id, created=False)

    record = store.insert_module(
        course_id,
        module.name,
        _next_order(store.max_module_order(course_id)),
    )
    return _Written(id=record.id, created=True)


def _write_subject(
    store: CourseStore,
    module_id: str,
    module_name: str,
    subject: SubjectDraft,
) -> _Written:
    existing_id = subject.existing_id
    if existing_id is None:
        existing = store.find_subject_by_code(subject.code)
        if existing is None and subject.explicit_code:
            existing = store.find_subject_by_code(
                generate_subject_code(module_name, subject.name)
            )
        if existing is None:
            existing = store.find_subject_by_name(subject.name)
        existing_id = existing.id if existing is not None else None

    if existing_id is None:
        record = store.insert_subject(subject.code, subject.name, f"Disciplina {subject.code}")
        subject_id, created = record.id, True
    else:
        subject_id, created = existing_id, False

    if not store.has_module_subject(module_id, subject_id):
        store.insert_module_subject(
            module_id,
            subject_id,
            _next_order(store.max_module_subject_order(module_id)),
        )
    return _Written(id=subject_id, created=created)


def _write_lesson(
    store: CourseStore,
    module_id: str,
    subject_id: str,
    lesson: LessonDraft,
) -> _Written:
    title = lesson.full_title
    existing = store.find_lesson(module_id, title)
    if existing is not None:
        lesson_id, created = existing.id, False
    else:
        record = store.insert_lesson(
            NewLesson(
                module_id=module_id,
                title=title,
                description=lesson.description,
                content=lesson.content or "",
                content_type=lesson.content_type.value,
                content_url=lesson.content_url,
                attachment_url=lesson.attachment_url,
                order_index=_next_order(store.max_lesson_order(module_id)),
            )
        )
        lesson_id, created = record.id, True

    if not store.has_subject_lesson(subject_id, lesson_id):
        store.insert_subject_lesson(subject_id, lesson_id)
    return _Written(id=lesson_id, created=created)


def _write_test(
    store: CourseStore,
    course_id: str,
    module_id: str,
    subject_id: str,
    test: TestDraft,
) -> _Written:
    existing = store.find_test_by_url(course_id, test.content_url)
    if existing is not None:
        if test.answer_key:
            store.delete_answer_keys(existing.id)
            store.insert_answer_keys(existing.id, test.answer_key)
            store.activate_test(existing.id)
            LOGGER.info(
                "event=import_test_answer_key_replaced test_id=%s entries=%s",
                existing.id,
                len(test.answer_key),
            )
        return _Written(id=existing.id, created=False)

    record = store.insert_test(
        NewTest(
            course_id=course_id,
            module_id=module_id,
            subject_id=subject_id,
            title=test.name,
            description=test.description,
            content_url=test.content_url,
            attachment_url=test.attachment_url,
            is_active=bool(test.answer_key),
            requires_manual_answer_key=test.requires_manual_answer_key,
            duration_minutes=DEFAULT_TEST_DURATION_MINUTES,
            passing_score=DEFAULT_PASSING_SCORE,
            max_attempts=DEFAULT_MAX_ATTEMPTS,
        )
    )
    if test.answer_key:
        store.insert_answer_keys(record.id, test.answer_key)
    return _Written(id=record.id, created=True)

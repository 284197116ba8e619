"""SQLAlchemy implementation of the course store port."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, joinedload

from drive_course_import.application.course_store import (
    CourseStore,
    LessonRecord,
    ModuleRecord,
    ModuleSubjectRecord,
    NewLesson,
    NewTest,
    SubjectRecord,
    TestRecord,
)
from drive_course_import.domain.course_structure import AnswerKeyEntry
from drive_course_import.infrastructure.db.models import (
    CourseModuleModel,
    LessonModel,
    ModuleSubjectModel,
    SubjectLessonModel,
    SubjectModel,
    TestAnswerKeyModel,
    TestModel,
)


class SqlAlchemyCourseStore(CourseStore):
    """Read and write course rows via a SQLAlchemy session."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def list_modules(self, course_id: str) -> list[ModuleRecord]:
        statement = (
            select(CourseModuleModel)
            .where(CourseModuleModel.course_id == course_id)
            .order_by(CourseModuleModel.order_index)
        )
        return [_to_module_record(row) for row in self._session.scalars(statement)]

    def list_module_subjects(self, module_ids: Iterable[str]) -> list[ModuleSubjectRecord]:
        ids = list(module_ids)
        if not ids:
            return []
        statement = (
            select(ModuleSubjectModel)
            .options(joinedload(ModuleSubjectModel.subject))
            .where(ModuleSubjectModel.module_id.in_(ids))
            .order_by(ModuleSubjectModel.order_index)
        )
        return [
            ModuleSubjectRecord(module_id=row.module_id, subject=_to_subject_record(row.subject))
            for row in self._session.scalars(statement)
        ]

    def list_lesson_content_urls(self, module_ids: Iterable[str]) -> set[str]:
        ids = list(module_ids)
        if not ids:
            return set()
        statement = select(LessonModel.content_url).where(
            LessonModel.module_id.in_(ids),
            LessonModel.content_url.is_not(None),
        )
        return {url for url in self._session.scalars(statement) if url}

    def list_test_content_urls(self, course_id: str) -> set[str]:
        statement = select(TestModel.google_drive_url).where(TestModel.course_id == course_id)
        return set(self._session.scalars(statement))

    def find_module(self, course_id: str, title: str) -> ModuleRecord | None:
        statement = (
            select(CourseModuleModel)
            .where(CourseModuleModel.course_id == course_id, CourseModuleModel.title == title)
            .limit(1)
        )
        row = self._session.scalars(statement).first()
        return _to_module_record(row) if row is not None else None

    def max_module_order(self, course_id: str) -> int | None:
        statement = select(func.max(CourseModuleModel.order_index)).where(
            CourseModuleModel.course_id == course_id
        )
        return self._session.scalar(statement)

    def insert_module(self, course_id: str, title: str, order_index: int) -> ModuleRecord:
        row = CourseModuleModel(
            id=_new_id(),
            course_id=course_id,
            title=title,
            order_index=order_index,
            created_at=_now(),
        )
        self._session.add(row)
        self._session.flush()
        return _to_module_record(row)

    def find_subject_by_code(self, code: str) -> SubjectRecord | None:
        row = self._session.scalars(
            select(SubjectModel).where(SubjectModel.code == code).limit(1)
        ).first()
        return _to_subject_record(row) if row is not None else None

    def find_subject_by_name(self, name: str) -> SubjectRecord | None:
        row = self._session.scalars(
            select(SubjectModel).where(SubjectModel.name == name).limit(1)
        ).first()
        return _to_subject_record(row) if row is not None else None

    def insert_subject(self, code: str, name: str, description: str) -> SubjectRecord:
        row = SubjectModel(
            id=_new_id(),
            code=code,
            name=name,
            description=description,
            created_at=_now(),
        )
        self._session.add(row)
        self._session.flush()
        return _to_subject_record(row)

    def has_module_subject(self, module_id: str, subject_id: str) -> bool:
        statement = select(ModuleSubjectModel.id).where(
            ModuleSubjectModel.module_id == module_id,
            ModuleSubjectModel.subject_id == subject_id,
        )
        return self._session.scalars(statement).first() is not None

    def max_module_subject_order(self, module_id: str) -> int | None:
        statement = select(func.max(ModuleSubjectModel.order_index)).where(
            ModuleSubjectModel.module_id == module_id
        )
        return self._session.scalar(statement)

    def insert_module_subject(self, module_id: str, subject_id: str, order_index: int) -> None:
        self._session.add(
            ModuleSubjectModel(
                id=_new_id(),
                module_id=module_id,
                subject_id=subject_id,
                order_index=order_index,
            )
        )
        self._session.flush()

    def find_lesson(self, module_id: str, title: str) -> LessonRecord | None:
        statement = (
            select(LessonModel)
            .where(LessonModel.module_id == module_id, LessonModel.title == title)
            .limit(1)
        )
        row = self._session.scalars(statement).first()
        return _to_lesson_record(row) if row is not None else None

    def max_lesson_order(self, module_id: str) -> int | None:
        statement = select(func.max(LessonModel.order_index)).where(
            LessonModel.module_id == module_id
        )
        return self._session.scalar(statement)

    def insert_lesson(self, lesson: NewLesson) -> LessonRecord:
        row = LessonModel(
            id=_new_id(),
            module_id=lesson.module_id,
            title=lesson.title,
            description=lesson.description,
            content=lesson.content,
            content_type=lesson.content_type,
            content_url=lesson.content_url,
            attachment_url=lesson.attachment_url,
            order_index=lesson.order_index,
            created_at=_now(),
        )
        self._session.add(row)
        self._session.flush()
        return _to_lesson_record(row)

    def has_subject_lesson(self, subject_id: str, lesson_id: str) -> bool:
        statement = select(SubjectLessonModel.id).where(
            SubjectLessonModel.subject_id == subject_id,
            SubjectLessonModel.lesson_id == lesson_id,
        )
        return self._session.scalars(statement).first() is not None

    def insert_subject_lesson(self, subject_id: str, lesson_id: str) -> None:
        self._session.add(
            SubjectLessonModel(id=_new_id(), subject_id=subject_id, lesson_id=lesson_id)
        )
        self._session.flush()

    def find_test_by_url(self, course_id: str, content_url: str) -> TestRecord | None:
        statement = (
            select(TestModel)
            .where(TestModel.course_id == course_id, TestModel.google_drive_url == content_url)
            .limit(1)
        )
        row = self._session.scalars(statement).first()
        return _to_test_record(row) if row is not None else None

    def insert_test(self, test: NewTest) -> TestRecord:
        row = TestModel(
            id=_new_id(),
            course_id=test.course_id,
            module_id=test.module_id,
            subject_id=test.subject_id,
            title=test.title,
            description=test.description,
            google_drive_url=test.content_url,
            attachment_url=test.attachment_url,
            is_active=test.is_active,
            requires_manual_answer_key=test.requires_manual_answer_key,
            duration_minutes=test.duration_minutes,
            passing_score=test.passing_score,
            max_attempts=test.max_attempts,
            created_at=_now(),
        )
        self._session.add(row)
        self._session.flush()
        return _to_test_record(row)

    def delete_answer_keys(self, test_id: str) -> None:
        self._session.execute(
            delete(TestAnswerKeyModel).where(TestAnswerKeyModel.test_id == test_id)
        )

    def insert_answer_keys(self, test_id: str, entries: Iterable[AnswerKeyEntry]) -> None:
        for entry in entries:
            self._session.add(
                TestAnswerKeyModel(
                    id=_new_id(),
                    test_id=test_id,
                    question_number=entry.question_number,
                    correct_answer=entry.correct_answer,
                    points=entry.points,
                    justification=entry.justification,
                )
            )
        self._session.flush()

    def activate_test(self, test_id: str) -> None:
        row = self._session.get(TestModel, test_id)
        if row is None:
            raise LookupError(f"Test not found: {test_id}")
        row.is_active = True
        row.requires_manual_answer_key = False
        row.updated_at = _now()
        self._session.flush()


def _new_id() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _to_module_record(row: CourseModuleModel) -> ModuleRecord:
    return ModuleRecord(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        order_index=row.order_index,
    )


def _to_subject_record(row: SubjectModel) -> SubjectRecord:
    return SubjectRecord(id=row.id, code=row.code, name=row.name)


def _to_lesson_record(row: LessonModel) -> LessonRecord:
    return LessonRecord(
        id=row.id,
        module_id=row.module_id,
        title=row.title,
        content_url=row.content_url,
        order_index=row.order_index,
    )


def _to_test_record(row: TestModel) -> TestRecord:
    return TestRecord(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        content_url=row.google_drive_url,
        is_active=row.is_active,
    )

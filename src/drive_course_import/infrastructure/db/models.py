"""SQLAlchemy models for imported course content."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from drive_course_import.infrastructure.db.base import Base


class CourseModuleModel(Base):
    """Top-level module of a destination course."""

    __tablename__ = "course_modules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    subject_links: Mapped[list[ModuleSubjectModel]] = relationship(back_populates="module")
    lessons: Mapped[list[LessonModel]] = relationship(back_populates="module")


class SubjectModel(Base):
    """Subject shared across modules, unique by code."""

    __tablename__ = "subjects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    module_links: Mapped[list[ModuleSubjectModel]] = relationship(back_populates="subject")


class ModuleSubjectModel(Base):
    """Association between a module and a subject."""

    __tablename__ = "module_subjects"
    __table_args__ = (UniqueConstraint("module_id", "subject_id", name="uq_module_subjects_pair"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    module_id: Mapped[str] = mapped_column(
        ForeignKey("course_modules.id"),
        nullable=False,
        index=True,
    )
    subject_id: Mapped[str] = mapped_column(ForeignKey("subjects.id"), nullable=False, index=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)

    module: Mapped[CourseModuleModel] = relationship(back_populates="subject_links")
    subject: Mapped[SubjectModel] = relationship(back_populates="module_links")


class LessonModel(Base):
    """Lesson imported from one remote file."""

    __tablename__ = "lessons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    module_id: Mapped[str] = mapped_column(
        ForeignKey("course_modules.id"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content_type: Mapped[str] = mapped_column(String(16), nullable=False)
    content_url: Mapped[str | None] = mapped_column(String(512), nullable=True, index=True)
    attachment_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    module: Mapped[CourseModuleModel] = relationship(back_populates="lessons")


class SubjectLessonModel(Base):
    """Association between a subject and a lesson."""

    __tablename__ = "subject_lessons"
    __table_args__ = (UniqueConstraint("subject_id", "lesson_id", name="uq_subject_lessons_pair"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    subject_id: Mapped[str] = mapped_column(ForeignKey("subjects.id"), nullable=False, index=True)
    lesson_id: Mapped[str] = mapped_column(ForeignKey("lessons.id"), nullable=False, index=True)


class TestModel(Base):
    """Assessment imported from a remote test document."""

    __test__ = False
    __tablename__ = "tests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    module_id: Mapped[str | None] = mapped_column(
        ForeignKey("course_modules.id"),
        nullable=True,
        index=True,
    )
    subject_id: Mapped[str | None] = mapped_column(
        ForeignKey("subjects.id"),
        nullable=True,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    google_drive_url: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    attachment_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requires_manual_answer_key: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    passing_score: Mapped[int] = mapped_column(Integer, nullable=False, default=70)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    answer_keys: Mapped[list[TestAnswerKeyModel]] = relationship(
        back_populates="test",
        cascade="all, delete-orphan",
        order_by="TestAnswerKeyModel.question_number",
    )


class TestAnswerKeyModel(Base):
    """Correct answer for one question of a test."""

    __test__ = False
    __tablename__ = "test_answer_keys"
    __table_args__ = (
        UniqueConstraint("test_id", "question_number", name="uq_test_answer_keys_question"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    test_id: Mapped[str] = mapped_column(ForeignKey("tests.id"), nullable=False, index=True)
    question_number: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_answer: Mapped[str] = mapped_column(String(1), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    justification: Mapped[str | None] = mapped_column(Text, nullable=True)

    test: Mapped[TestModel] = relationship(back_populates="answer_keys")


class ImportProgressModel(Base):
    """Latest progress snapshot of one import run."""

    __tablename__ = "import_progress"

    import_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    phase: Mapped[str] = mapped_column(String(16), nullable=False)
    current_step: Mapped[str] = mapped_column(String(255), nullable=False)
    current_item: Mapped[str] = mapped_column(String(512), nullable=False)
    total_modules: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_modules: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_subjects: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_subjects: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_lessons: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_lessons: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

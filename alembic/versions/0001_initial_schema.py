"""Create initial SQLite schema for drive-course-import."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Apply initial schema."""
    op.create_table(
        "course_modules",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("course_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_course_modules_course_id", "course_modules", ["course_id"])

    op.create_table(
        "subjects",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_subjects_code"),
    )
    op.create_index("ix_subjects_name", "subjects", ["name"])

    op.create_table(
        "module_subjects",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("module_id", sa.String(length=36), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["module_id"], ["course_modules.id"]),
        sa.ForeignKeyConstraint(["subject_id"], ["subjects.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("module_id", "subject_id", name="uq_module_subjects_pair"),
    )
    op.create_index("ix_module_subjects_module_id", "module_subjects", ["module_id"])
    op.create_index("ix_module_subjects_subject_id", "module_subjects", ["subject_id"])

    op.create_table(
        "lessons",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("module_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("content_type", sa.String(length=16), nullable=False),
        sa.Column("content_url", sa.String(length=512), nullable=True),
        sa.Column("attachment_url", sa.String(length=1024), nullable=True),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["module_id"], ["course_modules.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lessons_module_id", "lessons", ["module_id"])
    op.create_index("ix_lessons_content_url", "lessons", ["content_url"])

    op.create_table(
        "subject_lessons",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=False),
        sa.Column("lesson_id", sa.String(length=36), nullable=False),
        sa.ForeignKeyConstraint(["subject_id"], ["subjects.id"]),
        sa.ForeignKeyConstraint(["lesson_id"], ["lessons.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("subject_id", "lesson_id", name="uq_subject_lessons_pair"),
    )
    op.create_index("ix_subject_lessons_subject_id", "subject_lessons", ["subject_id"])
    op.create_index("ix_subject_lessons_lesson_id", "subject_lessons", ["lesson_id"])

    op.create_table(
        "tests",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("course_id", sa.String(length=64), nullable=False),
        sa.Column("module_id", sa.String(length=36), nullable=True),
        sa.Column("subject_id", sa.String(length=36), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("google_drive_url", sa.String(length=512), nullable=False),
        sa.Column("attachment_url", sa.String(length=1024), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "requires_manual_answer_key",
            sa.Boolean(),
            nullable=False,
            server_default=sa.true(),
        ),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("passing_score", sa.Integer(), nullable=False, server_default="70"),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["module_id"], ["course_modules.id"]),
        sa.ForeignKeyConstraint(["subject_id"], ["subjects.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tests_course_id", "tests", ["course_id"])
    op.create_index("ix_tests_module_id", "tests", ["module_id"])
    op.create_index("ix_tests_subject_id", "tests", ["subject_id"])
    op.create_index("ix_tests_google_drive_url", "tests", ["google_drive_url"])

    op.create_table(
        "test_answer_keys",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("test_id", sa.String(length=36), nullable=False),
        sa.Column("question_number", sa.Integer(), nullable=False),
        sa.Column("correct_answer", sa.String(length=1), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("justification", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["test_id"], ["tests.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("test_id", "question_number", name="uq_test_answer_keys_question"),
    )
    op.create_index("ix_test_answer_keys_test_id", "test_answer_keys", ["test_id"])

    op.create_table(
        "import_progress",
        sa.Column("import_id", sa.String(length=36), nullable=False),
        sa.Column("course_id", sa.String(length=64), nullable=False),
        sa.Column("phase", sa.String(length=16), nullable=False),
        sa.Column("current_step", sa.String(length=255), nullable=False),
        sa.Column("current_item", sa.String(length=512), nullable=False),
        sa.Column("total_modules", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("processed_modules", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_subjects", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("processed_subjects", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_lessons", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("processed_lessons", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("percentage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors", sa.JSON(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("import_id"),
    )
    op.create_index("ix_import_progress_course_id", "import_progress", ["course_id"])


def downgrade() -> None:
    """Revert initial schema."""
    op.drop_index("ix_import_progress_course_id", table_name="import_progress")
    op.drop_table("import_progress")

    op.drop_index("ix_test_answer_keys_test_id", table_name="test_answer_keys")
    op.drop_table("test_answer_keys")

    op.drop_index("ix_tests_google_drive_url", table_name="tests")
    op.drop_index("ix_tests_subject_id", table_name="tests")
    op.drop_index("ix_tests_module_id", table_name="tests")
    op.drop_index("ix_tests_course_id", table_name="tests")
    op.drop_table("tests")

    op.drop_index("ix_subject_lessons_lesson_id", table_name="subject_lessons")
    op.drop_index("ix_subject_lessons_subject_id", table_name="subject_lessons")
    op.drop_table("subject_lessons")

    op.drop_index("ix_lessons_content_url", table_name="lessons")
    op.drop_index("ix_lessons_module_id", table_name="lessons")
    op.drop_table("lessons")

    op.drop_index("ix_module_subjects_subject_id", table_name="module_subjects")
    op.drop_index("ix_module_subjects_module_id", table_name="module_subjects")
    op.drop_table("module_subjects")

    op.drop_index("ix_subjects_name", table_name="subjects")
    op.drop_table("subjects")

    op.drop_index("ix_course_modules_course_id", table_name="course_modules")
    op.drop_table("course_modules")

"""Progress sink persisting the latest snapshot per import run."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy.orm import Session, sessionmaker

from drive_course_import.application.progress import ImportProgressSnapshot, ProgressSink
from drive_course_import.infrastructure.db.models import ImportProgressModel


class SqlAlchemyProgressSink(ProgressSink):
    """Upsert one ``import_progress`` row per import id."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def publish(self, snapshot: ImportProgressSnapshot) -> None:
        with self._session_factory() as session:
            row = session.get(ImportProgressModel, snapshot.import_id)
            if row is None:
                row = ImportProgressModel(
                    import_id=snapshot.import_id,
                    course_id=snapshot.course_id,
                )
                session.add(row)

            row.phase = snapshot.phase.value
            row.current_step = snapshot.current_step
            row.current_item = snapshot.current_item
            row.total_modules = snapshot.totals.modules
            row.total_subjects = snapshot.totals.subjects
            row.total_lessons = snapshot.totals.lessons
            row.processed_modules = snapshot.processed.modules
            row.processed_subjects = snapshot.processed.subjects
            row.processed_lessons = snapshot.processed.lessons
            row.percentage = snapshot.percentage
            row.errors = list(snapshot.errors)
            row.completed = snapshot.completed
            row.updated_at = datetime.now(tz=UTC)
            session.commit()

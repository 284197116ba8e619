"""Database infrastructure package."""

from drive_course_import.infrastructure.db.config import get_database_path, make_sqlite_url
from drive_course_import.infrastructure.db.course_store import SqlAlchemyCourseStore
from drive_course_import.infrastructure.db.progress_sink import SqlAlchemyProgressSink
from drive_course_import.infrastructure.db.session import (
    create_default_session_factory,
    create_session_factory,
    create_sqlite_engine,
)
from drive_course_import.infrastructure.db.unit_of_work import SqlAlchemyCourseUnitOfWork

__all__ = [
    "SqlAlchemyCourseStore",
    "SqlAlchemyCourseUnitOfWork",
    "SqlAlchemyProgressSink",
    "create_default_session_factory",
    "create_session_factory",
    "create_sqlite_engine",
    "get_database_path",
    "make_sqlite_url",
]

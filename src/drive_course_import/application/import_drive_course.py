"""Application use-case importing a Drive folder tree into a course."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import uuid4

from drive_course_import.application.course_store import CourseUnitOfWorkFactory
from drive_course_import.application.existing_state import load_existing_state
from drive_course_import.application.import_writer import ImportResult, ImportWriter
from drive_course_import.application.naming import extract_drive_folder_id
from drive_course_import.application.progress import ImportPhase, ProgressSink, ProgressTracker
from drive_course_import.application.tree_walker import TreeWalker

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportDriveCourseCommand:
    """Input contract for one import run."""

    folder_reference: str
    course_id: str
    import_id: str | None = None


@dataclass(frozen=True)
class ImportDriveCourseOutcome:
    """Result of a finished run, including non-fatal warnings."""

    import_id: str
    course_id: str
    root_folder_id: str
    result: ImportResult
    warnings: tuple[str, ...] = ()


class ImportDriveCourseUseCase:
    """Index existing state, walk the remote tree and persist what is new.

    Fatal failures publish a ``failed`` snapshot and propagate; item-level
    failures end up in ``ImportResult.errors``.
    """

    def __init__(
        self,
        *,
        walker: TreeWalker,
        uow_factory: CourseUnitOfWorkFactory,
        progress_sink: ProgressSink | None = None,
    ) -> None:
        self._walker = walker
        self._uow_factory = uow_factory
        self._progress_sink = progress_sink

    def execute(self, command: ImportDriveCourseCommand) -> ImportDriveCourseOutcome:
        import_id = command.import_id or str(uuid4())
        course_id = command.course_id.strip()
        tracker = ProgressTracker(
            import_id=import_id,
            course_id=course_id,
            sink=self._progress_sink,
        )

        try:
            if not course_id:
                raise ValueError("course_id must not be empty")
            root_folder_id = extract_drive_folder_id(command.folder_reference)
            LOGGER.info(
                "event=drive_import_started import_id=%s course_id=%s root_folder_id=%s",
                import_id,
                course_id,
                root_folder_id,
            )

            with self._uow_factory() as uow:
                index = load_existing_state(uow.store, course_id)

            structure = self._walker.walk(
                root_folder_id,
                course_id=course_id,
                index=index,
                tracker=tracker,
            )
            result = ImportWriter(self._uow_factory, tracker=tracker).write(structure, course_id)
        except Exception as exc:
            LOGGER.exception(
                "event=drive_import_failed import_id=%s course_id=%s error_type=%s",
                import_id,
                course_id or "-",
                exc.__class__.__name__,
            )
            tracker.fail(str(exc))
            raise

        tracker.report(
            "Import completed",
            (
                f"{result.modules} modules, {result.subjects} subjects, "
                f"{result.lessons} lessons, {result.tests} tests"
            ),
            phase=ImportPhase.COMPLETED,
            completed=True,
        )
        LOGGER.info(
            (
                "event=drive_import_completed import_id=%s course_id=%s modules=%s "
                "subjects=%s lessons=%s tests=%s errors=%s warnings=%s"
            ),
            import_id,
            course_id,
            result.modules,
            result.subjects,
            result.lessons,
            result.tests,
            len(result.errors),
            len(structure.warnings),
        )
        return ImportDriveCourseOutcome(
            import_id=import_id,
            course_id=course_id,
            root_folder_id=root_folder_id,
            result=result,
            warnings=tuple(structure.warnings),
        )

"""Progress sink writing snapshots to the log."""

from __future__ import annotations

import logging

from drive_course_import.application.progress import ImportProgressSnapshot, ProgressSink

LOGGER = logging.getLogger(__name__)


class LoggingProgressSink(ProgressSink):
    """Emit one ``event=import_progress`` line per snapshot."""

    def publish(self, snapshot: ImportProgressSnapshot) -> None:
        LOGGER.info(
            (
                "event=import_progress import_id=%s course_id=%s phase=%s step=%r "
                "item=%r percentage=%s processed=%s/%s errors=%s completed=%s"
            ),
            snapshot.import_id,
            snapshot.course_id,
            snapshot.phase.value,
            snapshot.current_step,
            snapshot.current_item,
            snapshot.percentage,
            snapshot.processed.total,
            snapshot.totals.total,
            len(snapshot.errors),
            snapshot.completed,
        )

"""Import progress snapshots and best-effort delivery to a progress sink."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

LOGGER = logging.getLogger(__name__)


class ImportPhase(StrEnum):
    """Lifecycle phases reported to the progress sink."""

    PROCESSING = "processing"
    SAVING = "saving"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressCounts:
    """Module/subject/lesson counters."""

    modules: int = 0
    subjects: int = 0
    lessons: int = 0

    @property
    def total(self) -> int:
        return self.modules + self.subjects + self.lessons


@dataclass(frozen=True)
class ImportProgressSnapshot:
    """Point-in-time view of an import run."""

    import_id: str
    course_id: str
    phase: ImportPhase
    current_step: str
    totals: ProgressCounts
    processed: ProgressCounts
    current_item: str
    percentage: int
    errors: tuple[str, ...] = ()
    completed: bool = False


class ProgressSink(Protocol):
    """Port receiving progress snapshots."""

    def publish(self, snapshot: ImportProgressSnapshot) -> None:
        """Deliver one snapshot."""
        ...


def compute_percentage(processed: ProgressCounts, totals: ProgressCounts) -> int:
    if totals.total <= 0:
        return 0
    return round(100 * processed.total / totals.total)


class ProgressTracker:
    """Mutable counters of one run; every report is delivered best-effort.

    Totals grow as deeper listings complete, so the percentage may dip before
    climbing again.
    """

    def __init__(self, *, import_id: str, course_id: str, sink: ProgressSink | None) -> None:
        self._import_id = import_id
        self._course_id = course_id
        self._sink = sink
        self._totals = ProgressCounts()
        self._processed = ProgressCounts()
        self._errors: list[str] = []

    @property
    def totals(self) -> ProgressCounts:
        return self._totals

    @property
    def processed(self) -> ProgressCounts:
        return self._processed

    @property
    def errors(self) -> tuple[str, ...]:
        return tuple(self._errors)

    @property
    def percentage(self) -> int:
        return compute_percentage(self._processed, self._totals)

    def add_totals(self, *, modules: int = 0, subjects: int = 0, lessons: int = 0) -> None:
        self._totals = ProgressCounts(
            modules=self._totals.modules + modules,
            subjects=self._totals.subjects + subjects,
            lessons=self._totals.lessons + lessons,
        )

    def mark_processed(self, *, modules: int = 0, subjects: int = 0, lessons: int = 0) -> None:
        self._processed = ProgressCounts(
            modules=self._processed.modules + modules,
            subjects=self._processed.subjects + subjects,
            lessons=self._processed.lessons + lessons,
        )

    def record_error(self, message: str) -> None:
        self._errors.append(message)

    def report(
        self,
        step: str,
        item: str,
        *,
        phase: ImportPhase = ImportPhase.PROCESSING,
        completed: bool = False,
    ) -> ImportProgressSnapshot:
        snapshot = ImportProgressSnapshot(
            import_id=self._import_id,
            course_id=self._course_id,
            phase=phase,
            current_step=step,
            totals=self._totals,
            processed=self._processed,
            current_item=item,
            percentage=100 if completed else self.percentage,
            errors=tuple(self._errors),
            completed=completed,
        )
        self._publish(snapshot)
        return snapshot

    def fail(self, message: str) -> ImportProgressSnapshot:
        self._errors.append(message)
        return self.report("Import failed", message, phase=ImportPhase.FAILED)

    def _publish(self, snapshot: ImportProgressSnapshot) -> None:
        if self._sink is None:
            return
        try:
            self._sink.publish(snapshot)
        except Exception as exc:
            LOGGER.warning(
                (
                    "event=import_progress_publish_failed import_id=%s course_id=%s "
                    "phase=%s error_type=%s"
                ),
                self._import_id,
                self._course_id,
                snapshot.phase.value,
                exc.__class__.__name__,
            )


class CompositeProgressSink:
    """Deliver each snapshot to several sinks in order."""

    def __init__(self, *sinks: ProgressSink) -> None:
        self._sinks = sinks

    def publish(self, snapshot: ImportProgressSnapshot) -> None:
        for sink in self._sinks:
            sink.publish(snapshot)

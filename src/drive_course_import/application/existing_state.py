"""Read-only snapshot of already imported destination state."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from drive_course_import.application.course_store import (
    CourseStore,
    ModuleRecord,
    ModuleSubjectRecord,
)
from drive_course_import.application.naming import normalize_name

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExistingSubject:
    """Subject already linked to a module of the destination course."""

    id: str
    code: str
    name: str


@dataclass(frozen=True)
class ExistingModule:
    """Module already present in the destination course."""

    id: str
    title: str
    subjects_by_name: dict[str, ExistingSubject] = field(default_factory=dict)


@dataclass(frozen=True)
class ExistingStateIndex:
    """Deduplication lookups built once per import run."""

    modules_by_name: dict[str, ExistingModule] = field(default_factory=dict)
    subjects_by_code: dict[str, ExistingSubject] = field(default_factory=dict)
    lesson_urls: frozenset[str] = frozenset()
    test_urls: frozenset[str] = frozenset()

    @classmethod
    def empty(cls) -> ExistingStateIndex:
        return cls()

    @classmethod
    def from_records(
        cls,
        *,
        modules: Iterable[ModuleRecord],
        module_subjects: Iterable[ModuleSubjectRecord],
        lesson_urls: Iterable[str],
        test_urls: Iterable[str],
    ) -> ExistingStateIndex:
        subjects_by_module: dict[str, dict[str, ExistingSubject]] = {}
        subjects_by_code: dict[str, ExistingSubject] = {}
        for link in module_subjects:
            subject = ExistingSubject(
                id=link.subject.id,
                code=link.subject.code,
                name=link.subject.name,
            )
            subjects_by_module.setdefault(link.module_id, {}).setdefault(
                normalize_name(subject.name),
                subject,
            )
            if subject.code:
                subjects_by_code.setdefault(subject.code.upper(), subject)

        modules_by_name: dict[str, ExistingModule] = {}
        for module in modules:
            modules_by_name.setdefault(
                normalize_name(module.title),
                ExistingModule(
                    id=module.id,
                    title=module.title,
                    subjects_by_name=subjects_by_module.get(module.id, {}),
                ),
            )

        return cls(
            modules_by_name=modules_by_name,
            subjects_by_code=subjects_by_code,
            lesson_urls=frozenset(lesson_urls),
            test_urls=frozenset(test_urls),
        )

    def find_module(self, name: str) -> ExistingModule | None:
        return self.modules_by_name.get(normalize_name(name))

    def find_subject(
        self,
        module: ExistingModule | None,
        name: str,
        *,
        explicit_code: str | None = None,
    ) -> ExistingSubject | None:
        """Look up by explicit code first, then by name within the module."""
        if explicit_code:
            by_code = self.subjects_by_code.get(explicit_code.upper())
            if by_code is not None:
                return by_code
        if module is None:
            return None
        return module.subjects_by_name.get(normalize_name(name))

    def has_lesson_url(self, url: str) -> bool:
        return url in self.lesson_urls

    def has_test_url(self, url: str) -> bool:
        return url in self.test_urls


def load_existing_state(store: CourseStore, course_id: str) -> ExistingStateIndex:
    """Build the index from the destination store for one course."""
    modules = store.list_modules(course_id)
    module_ids = [module.id for module in modules]
    index = ExistingStateIndex.from_records(
        modules=modules,
        module_subjects=store.list_module_subjects(module_ids),
        lesson_urls=store.list_lesson_content_urls(module_ids),
        test_urls=store.list_test_content_urls(course_id),
    )
    LOGGER.info(
        (
            "event=existing_state_loaded course_id=%s modules=%s subjects=%s "
            "lesson_urls=%s test_urls=%s"
        ),
        course_id,
        len(index.modules_by_name),
        len(index.subjects_by_code),
        len(index.lesson_urls),
        len(index.test_urls),
    )
    return index

"""Traversal of the remote folder tree into an in-memory course structure."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial

from drive_course_import.application.answer_key_parser import parse_answer_key
from drive_course_import.application.existing_state import ExistingModule, ExistingStateIndex
from drive_course_import.application.naming import (
    drive_file_url,
    extract_explicit_subject_code,
    generate_subject_code,
    is_test_file,
    module_display_name,
    parse_lesson_filename,
    strip_file_extension,
    subject_display_name,
)
from drive_course_import.application.progress import ProgressTracker
from drive_course_import.application.remote_content import RemoteContentProvider
from drive_course_import.domain.course_structure import (
    GOOGLE_DOC_MIME_TYPE,
    GOOGLE_NATIVE_PREFIX,
    GOOGLE_SHEETS_MIME_TYPE,
    GOOGLE_SLIDES_MIME_TYPE,
    GOOGLE_VIDEO_MIME_TYPE,
    CourseStructure,
    LessonContentType,
    LessonDraft,
    ModuleDraft,
    RemoteNode,
    SubjectDraft,
    TestDraft,
)
from drive_course_import.infrastructure.remote.errors import RemoteAuthError
from drive_course_import.infrastructure.remote.retry import RetryExecutor
from drive_course_import.infrastructure.storage.transfer import (
    StorageTarget,
    StreamTransferManager,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_DOC_EXPORT_BYTES = 25 * 1024 * 1024
PDF_MIME_TYPE = "application/pdf"
_TEXT_EXPORT_TYPES = {
    GOOGLE_DOC_MIME_TYPE: "text/plain",
    GOOGLE_SLIDES_MIME_TYPE: "text/plain",
    GOOGLE_SHEETS_MIME_TYPE: "text/csv",
}
_PDF_EXPORTABLE_TYPES = frozenset({GOOGLE_DOC_MIME_TYPE, GOOGLE_SLIDES_MIME_TYPE})


class NoModulesFoundError(RuntimeError):
    """Raised when the root folder contains no module folders."""


@dataclass(frozen=True)
class WalkSettings:
    """Thresholds applied while extracting content."""

    max_doc_export_bytes: int = DEFAULT_MAX_DOC_EXPORT_BYTES


@dataclass(frozen=True)
class _SubjectContext:
    course_id: str
    module_name: str
    subject_name: str


class TreeWalker:
    """Build a CourseStructure from ``root → module → subject → files``."""

    def __init__(
        self,
        *,
        provider: RemoteContentProvider,
        retry_executor: RetryExecutor,
        transfer_manager: StreamTransferManager | None = None,
        settings: WalkSettings | None = None,
    ) -> None:
        self._provider = provider
        self._retry = retry_executor
        self._transfer_manager = transfer_manager
        self._settings = settings or WalkSettings()

    def walk(
        self,
        root_folder_id: str,
        *,
        course_id: str,
        index: ExistingStateIndex,
        tracker: ProgressTracker,
    ) -> CourseStructure:
        """Traverse the tree; raise NoModulesFoundError when nothing is importable."""
        structure = CourseStructure()
        tracker.report("Listing modules", "Preparing import")

        top_level = self._list_all(root_folder_id)
        module_nodes = [node for node in top_level if node.is_folder]
        for node in top_level:
            if not node.is_folder:
                LOGGER.info(
                    "event=drive_root_file_ignored course_id=%s file_id=%s name=%s",
                    course_id,
                    node.id,
                    node.name,
                )
        if not module_nodes:
            raise NoModulesFoundError(
                f"No module folders found in Drive folder {root_folder_id}."
            )

        tracker.add_totals(modules=len(module_nodes))
        for order, node in enumerate(module_nodes, start=1):
            module = self._build_module(
                node,
                order,
                course_id=course_id,
                index=index,
                tracker=tracker,
                structure=structure,
            )
            if module.subjects or module.existing_id:
                structure.modules.append(module)
            else:
                LOGGER.info(
                    "event=drive_module_dropped course_id=%s module=%s reason=nothing_new",
                    course_id,
                    module.name,
                )
            tracker.mark_processed(modules=1)
            tracker.report(
                f"Module {tracker.processed.modules}/{tracker.totals.modules} processed",
                f"Done: {module.name}",
            )

        LOGGER.info(
            (
                "event=drive_walk_completed course_id=%s modules=%s lessons=%s tests=%s "
                "skipped_lessons=%s skipped_tests=%s warnings=%s"
            ),
            course_id,
            len(structure.modules),
            structure.lesson_count,
            structure.test_count,
            structure.skipped_lessons,
            structure.skipped_tests,
            len(structure.warnings),
        )
        return structure

    def _build_module(
        self,
        node: RemoteNode,
        order: int,
        *,
        course_id: str,
        index: ExistingStateIndex,
        tracker: ProgressTracker,
        structure: CourseStructure,
    ) -> ModuleDraft:
        name = module_display_name(node, order)
        existing = index.find_module(name)
        module = ModuleDraft(
            name=name,
            order=order,
            existing_id=existing.id if existing is not None else None,
        )
        tracker.report(
            f"Processing module {tracker.processed.modules + 1}/{tracker.totals.modules}",
            f"Module: {name}",
        )

        children = self._list_all(node.id)
        subject_nodes = [child for child in children if child.is_folder]
        for child in children:
            if not child.is_folder:
                LOGGER.info(
                    "event=drive_module_file_ignored module=%s file_id=%s name=%s",
                    name,
                    child.id,
                    child.name,
                )

        tracker.add_totals(subjects=len(subject_nodes))
        for subject_order, subject_node in enumerate(subject_nodes, start=1):
            subject = self._build_subject(
                subject_node,
                subject_order,
                module_name=name,
                existing_module=existing,
                course_id=course_id,
                index=index,
                tracker=tracker,
                structure=structure,
            )
            if subject.has_new_items or subject.existing_id:
                module.subjects.append(subject)
            tracker.mark_processed(subjects=1)
            tracker.report(
                f"Subject {tracker.processed.subjects}/{tracker.totals.subjects} processed",
                f"Done: {subject.name}",
            )
        return module

    def _build_subject(
        self,
        node: RemoteNode,
        order: int,
        *,
        module_name: str,
        existing_module: ExistingModule | None,
        course_id: str,
        index: ExistingStateIndex,
        tracker: ProgressTracker,
        structure: CourseStructure,
    ) -> SubjectDraft:
        name = subject_display_name(node, module_name, order)
        explicit_code = extract_explicit_subject_code(name)
        existing = index.find_subject(existing_module, name, explicit_code=explicit_code)
        subject = SubjectDraft(
            name=name,
            code=explicit_code or generate_subject_code(module_name, name),
            order=order,
            explicit_code=explicit_code is not None,
            existing_id=existing.id if existing is not None else None,
        )
        tracker.report(
            f"Processing subject {tracker.processed.subjects + 1}/{tracker.totals.subjects}",
            f"Subject: {name}",
        )

        assets = self._list_all(node.id)
        files: list[RemoteNode] = []
        for asset in assets:
            if asset.is_folder:
                message = f"Nested folder ignored in subject {name}: {asset.name or asset.id}"
                LOGGER.warning(
                    "event=drive_nested_folder_skipped subject=%s folder_id=%s name=%s",
                    name,
                    asset.id,
                    asset.name,
                )
                structure.warnings.append(message)
                continue
            files.append(asset)

        tracker.add_totals(lessons=len(files))
        context = _SubjectContext(course_id=course_id, module_name=module_name, subject_name=name)
        lesson_position = 0
        test_position = 0
        for file_node in files:
            title = strip_file_extension(file_node.name or file_node.id)
            content_url = drive_file_url(file_node.id)
            if is_test_file(title):
                test_position += 1
                if index.has_test_url(content_url):
                    structure.skipped_tests += 1
                else:
                    subject.tests.append(
                        self._build_test(
                            file_node, title, test_position, context, tracker, structure
                        )
                    )
            else:
                lesson_position += 1
                if index.has_lesson_url(content_url):
                    structure.skipped_lessons += 1
                else:
                    subject.lessons.append(
                        self._build_lesson(file_node, lesson_position, context, tracker, structure)
                    )

            tracker.mark_processed(lessons=1)
            tracker.report(
                f"Item {tracker.processed.lessons}/{tracker.totals.lessons} processed",
                f"Done: {title}",
            )
        return subject

    def _build_lesson(
        self,
        node: RemoteNode,
        position: int,
        context: _SubjectContext,
        tracker: ProgressTracker,
        structure: CourseStructure,
    ) -> LessonDraft:
        code, name = parse_lesson_filename(node.name or node.id, position)
        lesson = LessonDraft(
            name=name,
            code=code,
            order=position,
            content_type=_lesson_content_type(node.mime_type),
            description=f"Aula {code}: {name}",
            content_url=drive_file_url(node.id),
        )

        try:
            if node.mime_type in _PDF_EXPORTABLE_TYPES and self._is_large_document(node):
                lesson.attachment_url = self._store_as_pdf(node, context)
            elif node.mime_type in _TEXT_EXPORT_TYPES:
                lesson.content = self._export_text(node, _TEXT_EXPORT_TYPES[node.mime_type])
            elif not node.mime_type.startswith(GOOGLE_NATIVE_PREFIX):
                lesson.content = f"[Arquivo: {node.name or node.id}]"
        except RemoteAuthError:
            raise
        except Exception as exc:
            lesson.content = None
            lesson.attachment_url = None
            self._record_extraction_failure(node, exc, tracker, structure)
        return lesson

    def _build_test(
        self,
        node: RemoteNode,
        title: str,
        position: int,
        context: _SubjectContext,
        tracker: ProgressTracker,
        structure: CourseStructure,
    ) -> TestDraft:
        test = TestDraft(
            name=title,
            order=position,
            content_url=drive_file_url(node.id),
            description=f"Teste importado: {title}",
        )
        if node.mime_type != GOOGLE_DOC_MIME_TYPE:
            return test

        try:
            if self._is_large_document(node):
                test.attachment_url = self._store_as_pdf(node, context)
            else:
                answer_key = parse_answer_key(self._export_text(node, "text/plain"))
                test.answer_key = answer_key or None
                test.requires_manual_answer_key = not answer_key
        except RemoteAuthError:
            raise
        except Exception as exc:
            test.answer_key = None
            test.requires_manual_answer_key = True
            self._record_extraction_failure(node, exc, tracker, structure)
        return test

    def _is_large_document(self, node: RemoteNode) -> bool:
        return node.size_bytes is not None and node.size_bytes > self._settings.max_doc_export_bytes

    def _store_as_pdf(self, node: RemoteNode, context: _SubjectContext) -> str | None:
        if self._transfer_manager is None:
            LOGGER.warning(
                "event=drive_large_document_reference_only file_id=%s size_bytes=%s",
                node.id,
                node.size_bytes,
            )
            return None

        stored = self._transfer_manager.download_then_store(
            node.id,
            node.mime_type,
            StorageTarget(
                course_id=context.course_id,
                module_name=context.module_name,
                subject_name=context.subject_name,
            ),
            export_mime_type=PDF_MIME_TYPE,
        )
        return stored.public_url

    def _export_text(self, node: RemoteNode, mime_type: str) -> str:
        return self._retry.execute(
            f"drive.export:{node.id}",
            partial(self._provider.export_text, node.id, mime_type),
        )

    def _list_all(self, folder_id: str) -> list[RemoteNode]:
        nodes: list[RemoteNode] = []
        page_token: str | None = None
        while True:
            page = self._retry.execute(
                f"drive.list:{folder_id}",
                partial(self._provider.list_children, folder_id, page_token),
            )
            nodes.extend(page.nodes)
            page_token = page.next_page_token
            if not page_token:
                return nodes

    def _record_extraction_failure(
        self,
        node: RemoteNode,
        error: Exception,
        tracker: ProgressTracker,
        structure: CourseStructure,
    ) -> None:
        message = f"Content extraction failed for {node.name or node.id}: {error}"
        LOGGER.warning(
            "event=drive_content_extraction_failed file_id=%s mime_type=%s error_type=%s",
            node.id,
            node.mime_type,
            error.__class__.__name__,
        )
        structure.warnings.append(message)
        tracker.record_error(message)


def _lesson_content_type(mime_type: str) -> LessonContentType:
    if mime_type.startswith("video/") or mime_type == GOOGLE_VIDEO_MIME_TYPE:
        return LessonContentType.VIDEO
    return LessonContentType.TEXT

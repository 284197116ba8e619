"""Tests for remote tree traversal into a course structure."""

from __future__ import annotations

import httpx
import pytest

from drive_course_import.application.existing_state import (
    ExistingModule,
    ExistingStateIndex,
    ExistingSubject,
)
from drive_course_import.application.progress import ProgressTracker
from drive_course_import.application.tree_walker import (
    NoModulesFoundError,
    TreeWalker,
    WalkSettings,
)
from drive_course_import.domain.course_structure import (
    FOLDER_MIME_TYPE,
    GOOGLE_DOC_MIME_TYPE,
    GOOGLE_SHEETS_MIME_TYPE,
    GOOGLE_SLIDES_MIME_TYPE,
    LessonContentType,
)
from drive_course_import.infrastructure.remote.drive_client import GoogleDriveClient
from drive_course_import.infrastructure.remote.errors import RemoteAuthError, RemoteServerError
from drive_course_import.infrastructure.storage.transfer import StreamTransferManager
from tests.drive_fixture_utils import (
    FakeDriveProvider,
    FakeObjectStorage,
    RecordingProgressSink,
    file_node,
    folder,
    google_doc,
    make_retry_executor,
)

LESSON_URL = "https://drive.google.com/file/d/lesson-1/view"
TEST_URL = "https://drive.google.com/file/d/test-1/view"


def test_walk_builds_modules_subjects_lessons_and_tests() -> None:
    provider = FakeDriveProvider(
        _basic_tree(),
        texts={"test-1": "GABARITO\n1 - A\n2 - C\n"},
    )
    sink = RecordingProgressSink()
    tracker = _tracker(sink)

    structure = _walker(provider).walk(
        "root",
        course_id="course-1",
        index=ExistingStateIndex.empty(),
        tracker=tracker,
    )

    assert [module.name for module in structure.modules] == ["Módulo 1"]
    subject = structure.modules[0].subjects[0]
    assert subject.name == "Disciplina 1"
    assert subject.code == "SUB_MODULO_1_DISCIPLINA_1"
    assert subject.explicit_code is False

    lesson = subject.lessons[0]
    assert (lesson.code, lesson.name, lesson.order) == ("A01", "Intro", 1)
    assert lesson.full_title == "A01 - Intro"
    assert lesson.content_type is LessonContentType.TEXT
    assert lesson.content == "[Arquivo: A01-Intro.pdf]"
    assert lesson.content_url == LESSON_URL
    assert lesson.description == "Aula A01: Intro"

    test = subject.tests[0]
    assert test.name == "Teste FINAL"
    assert test.content_url == TEST_URL
    assert test.description == "Teste importado: Teste FINAL"
    assert test.requires_manual_answer_key is False
    assert [(entry.question_number, entry.correct_answer) for entry in test.answer_key or []] == [
        (1, "A"),
        (2, "C"),
    ]

    assert any("Extras" in warning for warning in structure.warnings)
    assert tracker.totals.modules == 1
    assert tracker.totals.subjects == 1
    assert tracker.totals.lessons == 2
    assert tracker.processed == tracker.totals
    assert sink.snapshots[-1].percentage == 100
    assert all(0 <= snapshot.percentage <= 100 for snapshot in sink.snapshots)


def test_walk_raises_when_root_has_no_module_folders() -> None:
    provider = FakeDriveProvider({"root": [file_node("loose", "solto.pdf")]})

    with pytest.raises(NoModulesFoundError):
        _walker(provider).walk(
            "root",
            course_id="course-1",
            index=ExistingStateIndex.empty(),
            tracker=_tracker(),
        )


def test_walk_concatenates_all_listing_pages() -> None:
    tree = {
        "root": [folder("m1", "Módulo 1")],
        "m1": [folder("s1", "Disciplina 1")],
        "s1": [file_node(f"f{index}", f"Aula {index}.pdf") for index in range(1, 6)],
    }
    provider = FakeDriveProvider(tree, page_size=2)

    structure = _walker(provider).walk(
        "root",
        course_id="course-1",
        index=ExistingStateIndex.empty(),
        tracker=_tracker(),
    )

    lessons = structure.modules[0].subjects[0].lessons
    assert [lesson.code for lesson in lessons] == ["A01", "A02", "A03", "A04", "A05"]
    assert ("s1", None) in provider.list_calls
    assert ("s1", "2") in provider.list_calls
    assert ("s1", "4") in provider.list_calls


def test_walk_skips_known_urls_and_drops_empty_new_branches() -> None:
    provider = FakeDriveProvider(_basic_tree())
    index = ExistingStateIndex(lesson_urls=frozenset({LESSON_URL}), test_urls=frozenset({TEST_URL}))
    tracker = _tracker()

    structure = _walker(provider).walk("root", course_id="course-1", index=index, tracker=tracker)

    assert structure.modules == []
    assert structure.skipped_lessons == 1
    assert structure.skipped_tests == 1
    assert tracker.processed.lessons == 2
    assert provider.export_calls == []


def test_walk_keeps_existing_branches_without_new_items() -> None:
    provider = FakeDriveProvider(_basic_tree())
    existing_subject = ExistingSubject(id="subject-1", code="SUB_X", name="Disciplina 1")
    index = ExistingStateIndex(
        modules_by_name={
            "modulo 1": ExistingModule(
                id="module-1",
                title="Módulo 1",
                subjects_by_name={"disciplina 1": existing_subject},
            )
        },
        lesson_urls=frozenset({LESSON_URL}),
        test_urls=frozenset({TEST_URL}),
    )

    structure = _walker(provider).walk(
        "root", course_id="course-1", index=index, tracker=_tracker()
    )

    module = structure.modules[0]
    assert module.existing_id == "module-1"
    assert module.subjects[0].existing_id == "subject-1"
    assert module.subjects[0].has_new_items is False


def test_walk_prefers_explicit_subject_code() -> None:
    tree = {
        "root": [folder("m1", "Módulo 1")],
        "m1": [folder("s1", "DISC1 - Fundamentos"), folder("s2", "Fundamentos")],
        "s1": [file_node("f1", "Aula.pdf")],
        "s2": [file_node("f2", "Aula.pdf")],
    }
    index = ExistingStateIndex(
        subjects_by_code={"DISC1": ExistingSubject(id="subject-9", code="DISC1", name="Outro")}
    )

    structure = _walker(FakeDriveProvider(tree)).walk(
        "root", course_id="course-1", index=index, tracker=_tracker()
    )

    explicit, generated = structure.modules[0].subjects
    assert explicit.code == "DISC1"
    assert explicit.explicit_code is True
    assert explicit.existing_id == "subject-9"
    assert generated.code == "SUB_MODULO_1_FUNDAMENTOS"
    assert generated.existing_id is None


def test_walk_names_nameless_folders() -> None:
    tree = {
        "root": [folder("m1", None)],
        "m1": [folder("s1", None)],
        "s1": [file_node("f1", "Aula.pdf")],
    }

    structure = _walker(FakeDriveProvider(tree)).walk(
        "root", course_id="course-1", index=ExistingStateIndex.empty(), tracker=_tracker()
    )

    assert structure.modules[0].name == "Módulo 1"
    assert structure.modules[0].subjects[0].name == "Módulo 1 - Disciplina 1"


def test_walk_extracts_content_by_mime_type() -> None:
    tree = {
        "root": [folder("m1", "Módulo 1")],
        "m1": [folder("s1", "Disciplina 1")],
        "s1": [
            google_doc("doc", "A01-Texto"),
            file_node("sheet", "A02-Planilha", GOOGLE_SHEETS_MIME_TYPE),
            file_node("slides", "A03-Slides", GOOGLE_SLIDES_MIME_TYPE),
            file_node("video", "A04-Video.mp4", "video/mp4"),
        ],
    }
    provider = FakeDriveProvider(
        tree,
        texts={"doc": "texto", "sheet": "a,b\n1,2", "slides": "slide 1"},
    )

    structure = _walker(provider).walk(
        "root", course_id="course-1", index=ExistingStateIndex.empty(), tracker=_tracker()
    )

    lessons = {lesson.code: lesson for lesson in structure.modules[0].subjects[0].lessons}
    assert lessons["A01"].content == "texto"
    assert lessons["A02"].content == "a,b\n1,2"
    assert lessons["A03"].content == "slide 1"
    assert lessons["A04"].content_type is LessonContentType.VIDEO
    assert lessons["A04"].content == "[Arquivo: A04-Video.mp4]"
    assert provider.export_calls == [
        ("doc", "text/plain"),
        ("sheet", "text/csv"),
        ("slides", "text/plain"),
    ]


def test_walk_degrades_failed_extraction_to_reference_only() -> None:
    tree = {
        "root": [folder("m1", "Módulo 1")],
        "m1": [folder("s1", "Disciplina 1")],
        "s1": [google_doc("doc", "A01-Texto"), google_doc("test-doc", "Teste 1")],
    }
    provider = FakeDriveProvider(
        tree,
        export_errors={
            "doc": RemoteServerError("boom", status_code=500),
            "test-doc": RemoteServerError("boom", status_code=500),
        },
    )
    tracker = _tracker()

    structure = _walker(provider).walk(
        "root", course_id="course-1", index=ExistingStateIndex.empty(), tracker=tracker
    )

    subject = structure.modules[0].subjects[0]
    assert subject.lessons[0].content is None
    assert subject.lessons[0].content_url == "https://drive.google.com/file/d/doc/view"
    assert subject.tests[0].answer_key is None
    assert subject.tests[0].requires_manual_answer_key is True
    assert len(structure.warnings) == 2
    assert len(tracker.errors) == 2


def test_walk_propagates_auth_failures() -> None:
    tree = {
        "root": [folder("m1", "Módulo 1")],
        "m1": [folder("s1", "Disciplina 1")],
        "s1": [google_doc("doc", "A01-Texto")],
    }
    provider = FakeDriveProvider(
        tree,
        export_errors={"doc": RemoteAuthError("denied", status_code=401)},
    )

    with pytest.raises(RemoteAuthError):
        _walker(provider).walk(
            "root", course_id="course-1", index=ExistingStateIndex.empty(), tracker=_tracker()
        )


def test_walk_degrades_file_scoped_forbidden_export_over_http() -> None:
    listings = {
        "root": [{"id": "m1", "name": "Módulo 1", "mimeType": FOLDER_MIME_TYPE}],
        "m1": [{"id": "s1", "name": "Disciplina 1", "mimeType": FOLDER_MIME_TYPE}],
        "s1": [
            {
                "id": "big-doc",
                "name": "A01-Apostila",
                "mimeType": GOOGLE_DOC_MIME_TYPE,
                "size": str(12 * 1024 * 1024),
            },
            {"id": "pdf-1", "name": "A02-Slides.pdf", "mimeType": "application/pdf", "size": "10"},
        ],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/export"):
            return httpx.Response(
                status_code=403,
                json={
                    "error": {
                        "errors": [{"reason": "exportSizeLimitExceeded"}],
                        "message": "This file is too large to be exported.",
                    }
                },
            )
        folder_id = request.url.params["q"].split("'")[1]
        return httpx.Response(status_code=200, json={"files": listings[folder_id]})

    http_client = httpx.Client(
        transport=httpx.MockTransport(handler),
        base_url="https://www.googleapis.com",
    )
    provider = GoogleDriveClient(token_provider=lambda: "drive-token", http_client=http_client)
    tracker = _tracker()
    try:
        structure = TreeWalker(provider=provider, retry_executor=make_retry_executor()).walk(
            "root", course_id="course-1", index=ExistingStateIndex.empty(), tracker=tracker
        )
    finally:
        http_client.close()

    lessons = structure.modules[0].subjects[0].lessons
    assert [lesson.code for lesson in lessons] == ["A01", "A02"]
    assert lessons[0].content is None
    assert lessons[0].content_url == "https://drive.google.com/file/d/big-doc/view"
    assert lessons[1].content == "[Arquivo: A02-Slides.pdf]"
    assert len(tracker.errors) == 1
    assert "exportSizeLimitExceeded" in tracker.errors[0]


def test_walk_routes_large_test_document_to_storage() -> None:
    tree = {
        "root": [folder("m1", "Módulo 1")],
        "m1": [folder("s1", "Disciplina 1")],
        "s1": [google_doc("big-test", "Teste Final", size_bytes=30 * 1024 * 1024)],
    }
    provider = FakeDriveProvider(tree, downloads={"big-test": b"%PDF-1.4 big"})
    storage = FakeObjectStorage(bucket_exists=True)
    retry_executor = make_retry_executor()
    walker = TreeWalker(
        provider=provider,
        retry_executor=retry_executor,
        transfer_manager=StreamTransferManager(
            provider=provider,
            storage=storage,
            retry_executor=retry_executor,
        ),
        settings=WalkSettings(max_doc_export_bytes=25 * 1024 * 1024),
    )

    structure = walker.walk(
        "root", course_id="course-1", index=ExistingStateIndex.empty(), tracker=_tracker()
    )

    test = structure.modules[0].subjects[0].tests[0]
    assert test.requires_manual_answer_key is True
    assert test.answer_key is None
    assert test.attachment_url is not None
    assert test.attachment_url.endswith("course-1/modulo-1/disciplina-1/big-test.pdf")
    assert test.content_url == "https://drive.google.com/file/d/big-test/view"
    assert provider.export_calls == []
    assert provider.download_calls == [("big-test", "application/pdf")]


def test_walk_keeps_reference_when_large_document_cannot_be_stored() -> None:
    tree = {
        "root": [folder("m1", "Módulo 1")],
        "m1": [folder("s1", "Disciplina 1")],
        "s1": [google_doc("big-doc", "A01-Apostila", size_bytes=100)],
    }
    provider = FakeDriveProvider(tree)
    walker = TreeWalker(
        provider=provider,
        retry_executor=make_retry_executor(),
        settings=WalkSettings(max_doc_export_bytes=10),
    )

    structure = walker.walk(
        "root", course_id="course-1", index=ExistingStateIndex.empty(), tracker=_tracker()
    )

    lesson = structure.modules[0].subjects[0].lessons[0]
    assert lesson.attachment_url is None
    assert lesson.content is None
    assert provider.export_calls == []


def test_walk_never_routes_unknown_size_documents_to_storage() -> None:
    tree = {
        "root": [folder("m1", "Módulo 1")],
        "m1": [folder("s1", "Disciplina 1")],
        "s1": [google_doc("doc", "A01-Texto", size_bytes=None)],
    }
    provider = FakeDriveProvider(tree, texts={"doc": "conteúdo"})
    walker = TreeWalker(
        provider=provider,
        retry_executor=make_retry_executor(),
        settings=WalkSettings(max_doc_export_bytes=1),
    )

    structure = walker.walk(
        "root", course_id="course-1", index=ExistingStateIndex.empty(), tracker=_tracker()
    )

    assert structure.modules[0].subjects[0].lessons[0].content == "conteúdo"


def _basic_tree() -> dict[str, list]:
    return {
        "root": [folder("m1", "Módulo 1"), file_node("readme", "LEIAME.txt")],
        "m1": [folder("s1", "Disciplina 1")],
        "s1": [
            file_node("lesson-1", "A01-Intro.pdf"),
            google_doc("test-1", "Teste FINAL"),
            folder("nested", "Extras"),
        ],
    }


def _walker(provider: FakeDriveProvider) -> TreeWalker:
    return TreeWalker(provider=provider, retry_executor=make_retry_executor())


def _tracker(sink: RecordingProgressSink | None = None) -> ProgressTracker:
    return ProgressTracker(import_id="import-1", course_id="course-1", sink=sink)

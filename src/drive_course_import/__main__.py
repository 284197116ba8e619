"""Command-line entrypoint running one Drive folder import."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from uuid import uuid4

from drive_course_import.application.import_drive_course import (
    ImportDriveCourseCommand,
    ImportDriveCourseUseCase,
)
from drive_course_import.application.progress import CompositeProgressSink
from drive_course_import.application.tree_walker import TreeWalker, WalkSettings
from drive_course_import.infrastructure.config import (
    DRIVE_ACCESS_TOKEN_ENV_VAR,
    STORAGE_SERVICE_KEY_ENV_VAR,
    ImportSettings,
    load_import_settings,
    resolve_secret,
)
from drive_course_import.infrastructure.db import (
    SqlAlchemyCourseUnitOfWork,
    SqlAlchemyProgressSink,
    create_default_session_factory,
)
from drive_course_import.infrastructure.logging_config import configure_logging
from drive_course_import.infrastructure.progress_logging import LoggingProgressSink
from drive_course_import.infrastructure.remote import (
    GoogleDriveClient,
    RateLimiter,
    RetryExecutor,
    RetryPolicy,
)
from drive_course_import.infrastructure.security import KeyringSecretStore
from drive_course_import.infrastructure.storage import (
    StreamTransferManager,
    SupabaseStorageClient,
    TransferSettings,
)

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drive_course_import",
        description="Import a Google Drive folder tree into a course.",
    )
    parser.add_argument("folder", help="Drive folder URL or folder id")
    parser.add_argument("course_id", help="Destination course id")
    parser.add_argument("--import-id", default=None, help="Reuse a known import id")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run one import and return the process exit code."""
    configure_logging()
    args = build_parser().parse_args(argv)
    import_id = args.import_id or str(uuid4())

    try:
        settings = load_import_settings()
        secrets = KeyringSecretStore()
        drive_token = resolve_secret(DRIVE_ACCESS_TOKEN_ENV_VAR, fallback=secrets)
        if not drive_token:
            print(f"Missing Drive access token: set {DRIVE_ACCESS_TOKEN_ENV_VAR}.")
            return 2
        storage_key = resolve_secret(STORAGE_SERVICE_KEY_ENV_VAR, fallback=secrets)

        session_factory = create_default_session_factory()
        retry_executor = _build_retry_executor(settings)
        drive_client = GoogleDriveClient(
            token_provider=lambda: drive_token,
            timeout_seconds=settings.call_timeout_ms / 1000,
        )
        storage_client = _build_storage_client(settings, storage_key)
        transfer_manager = (
            StreamTransferManager(
                provider=drive_client,
                storage=storage_client,
                retry_executor=retry_executor,
                settings=TransferSettings(
                    bucket=settings.storage_bucket,
                    tus_threshold_bytes=settings.tus_threshold_bytes,
                    download_request_timeout_ms=settings.download_request_timeout_ms,
                    stream_timeout_ms=settings.stream_timeout_ms,
                ),
            )
            if storage_client is not None
            else None
        )

        use_case = ImportDriveCourseUseCase(
            walker=TreeWalker(
                provider=drive_client,
                retry_executor=retry_executor,
                transfer_manager=transfer_manager,
                settings=WalkSettings(max_doc_export_bytes=settings.max_doc_export_bytes),
            ),
            uow_factory=lambda: SqlAlchemyCourseUnitOfWork(session_factory),
            progress_sink=CompositeProgressSink(
                LoggingProgressSink(),
                SqlAlchemyProgressSink(session_factory),
            ),
        )
        try:
            outcome = use_case.execute(
                ImportDriveCourseCommand(
                    folder_reference=args.folder,
                    course_id=args.course_id,
                    import_id=import_id,
                )
            )
        finally:
            retry_executor.close()
            drive_client.close()
            if storage_client is not None:
                storage_client.close()
    except Exception:
        LOGGER.exception("event=cli_import_failed import_id=%s", import_id)
        print(f"Import failed. import_id={import_id}")
        return 1

    result = outcome.result
    print(
        f"Imported {result.modules} modules, {result.subjects} subjects, "
        f"{result.lessons} lessons, {result.tests} tests "
        f"(skipped {result.skipped.modules}/{result.skipped.subjects}/"
        f"{result.skipped.lessons}/{result.skipped.tests}, errors {len(result.errors)})."
    )
    return 0


def _build_retry_executor(settings: ImportSettings) -> RetryExecutor:
    return RetryExecutor(
        RetryPolicy(
            retries=settings.retry_attempts,
            base_delay_ms=settings.retry_base_delay_ms,
            timeout_ms=settings.call_timeout_ms,
            max_rate_limit_backoff_ms=settings.max_rate_limit_backoff_ms,
        ),
        rate_limiter=RateLimiter(settings.rate_limit_interval_ms),
    )


def _build_storage_client(
    settings: ImportSettings,
    service_key: str | None,
) -> SupabaseStorageClient | None:
    if not settings.supabase_url or not service_key:
        LOGGER.warning(
            "event=storage_not_configured large_documents=reference_only",
        )
        return None
    return SupabaseStorageClient(
        base_url=settings.supabase_url,
        service_key=service_key,
        tus_chunk_bytes=settings.tus_chunk_bytes,
    )


if __name__ == "__main__":
    raise SystemExit(main())

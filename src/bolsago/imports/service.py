from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol, Sequence

from bolsago.exceptions import PersistenceError
from bolsago.imports.classifier import Clock, build_preview, commit, resolve_duplicates
from bolsago.imports.lookup import ExistingRecordsLookup
from bolsago.imports.models import ImportedRecord, ImportPreview, ImportResult
from bolsago.imports.parser import SpreadsheetParser
from bolsago.imports.types import ImportType, parse_import_type

logger = logging.getLogger(__name__)


class RecordSink(Protocol):
    """Durable storage for accepted rows (the hosted backend in production)."""

    def persist(self, import_type: ImportType, records: Sequence[ImportedRecord]) -> None:
        ...


class AuditLog(Protocol):
    def record(self, result: ImportResult) -> None:
        ...


class InMemoryRecordSink:
    def __init__(self):
        self._lock = threading.Lock()
        self.records: dict[ImportType, list[ImportedRecord]] = {}

    def persist(self, import_type: ImportType, records: Sequence[ImportedRecord]) -> None:
        with self._lock:
            self.records.setdefault(import_type, []).extend(records)


class LoggingAuditLog:
    """Writes one structured log line per finished import."""

    def __init__(self, logger_name: str = "bolsago.audit"):
        self.logger = logging.getLogger(logger_name)

    def record(self, result: ImportResult) -> None:
        summary = result.summary
        self.logger.info(
            "bulk import",
            extra={
                "import_type": summary.import_type.value,
                "file_name": summary.file_name,
                "started_at": summary.started_at.isoformat(),
                "completed_at": summary.completed_at.isoformat(),
                "total_processed": summary.total_processed,
                "imported": result.imported_count,
                "updated": result.updated_count,
                "skipped": result.skipped_count,
                "rejected": result.rejected_count,
            },
        )


class ImportService:
    """
    One entry point for an import session: parse -> preview -> resolve -> commit.
    Collaborator failures (lookup, sink) raise; row problems stay on the rows.
    """

    def __init__(
        self,
        lookup: ExistingRecordsLookup,
        sink: Optional[RecordSink] = None,
        audit: Optional[AuditLog] = None,
        parser: Optional[SpreadsheetParser] = None,
        workers: Optional[int] = None,
    ):
        self.lookup = lookup
        self.sink = sink
        self.audit = audit or LoggingAuditLog()
        self.parser = parser or SpreadsheetParser()
        self.workers = workers

    def preview_file(
        self,
        import_type: ImportType | str,
        source: Path | bytes,
        file_name: Optional[str] = None,
    ) -> ImportPreview:
        import_type = parse_import_type(import_type)
        if file_name is None and not isinstance(source, (bytes, bytearray)):
            file_name = Path(source).name
        records = self.parser.parse(source, file_name=file_name)
        return build_preview(records, import_type, self.lookup, file_name=file_name or "", workers=self.workers)

    def commit(
        self,
        preview: ImportPreview,
        actions: Optional[Mapping[Any, Any]] = None,
        strict: Optional[bool] = None,
        clock: Optional[Clock] = None,
    ) -> ImportResult:
        resolved = preview.model_copy(update={"rows": resolve_duplicates(preview.rows, actions, strict=strict)})
        result = commit(resolved, clock=clock)

        if self.sink is not None and result.imported_records:
            try:
                self.sink.persist(preview.import_type, result.imported_records)
            except Exception as exc:
                logger.exception(
                    "failed to persist imported records",
                    extra={"import_type": preview.import_type.value, "file_name": preview.file_name},
                )
                raise PersistenceError(f"Failed to persist {result.imported_count} imported records: {exc}") from exc

        self.audit.record(result)
        return result

from bolsago.imports.classifier import build_preview, classify_row, commit, resolve_duplicates
from bolsago.imports.lookup import ExistingRecord, ExistingRecordsLookup, InMemoryExistingRecords
from bolsago.imports.models import (
    DuplicateAction,
    DuplicateInfo,
    DuplicateStatus,
    ImportedRecord,
    ImportPreview,
    ImportResult,
    ImportSummary,
    ParsedRow,
    RawRecord,
    RejectedRecord,
)
from bolsago.imports.parser import SpreadsheetParser
from bolsago.imports.service import ImportService, InMemoryRecordSink, LoggingAuditLog
from bolsago.imports.types import IMPORT_TYPES, ImportType, ImportTypeConfig, get_import_config

__all__ = [
    "DuplicateAction",
    "DuplicateInfo",
    "DuplicateStatus",
    "ExistingRecord",
    "ExistingRecordsLookup",
    "IMPORT_TYPES",
    "ImportPreview",
    "ImportResult",
    "ImportService",
    "ImportSummary",
    "ImportType",
    "ImportTypeConfig",
    "ImportedRecord",
    "InMemoryExistingRecords",
    "InMemoryRecordSink",
    "LoggingAuditLog",
    "ParsedRow",
    "RawRecord",
    "RejectedRecord",
    "SpreadsheetParser",
    "build_preview",
    "classify_row",
    "commit",
    "get_import_config",
    "resolve_duplicates",
]

from __future__ import annotations

from typing import Generator, Optional

from fastapi import Depends

from bolsago.config import settings
from bolsago.imports import ImportService, InMemoryExistingRecords, InMemoryRecordSink
from bolsago.imports.lookup import ExistingRecordsLookup
from bolsago.imports.service import RecordSink

# Global/Cached instances
_lookup_instance: Optional[ExistingRecordsLookup] = None
_sink_instance: Optional[RecordSink] = None


def get_existing_records() -> ExistingRecordsLookup:
    global _lookup_instance
    if _lookup_instance is None:
        path = settings.imports.existing_records_file
        _lookup_instance = InMemoryExistingRecords.from_json_file(path) if path else InMemoryExistingRecords()
    return _lookup_instance


def get_record_sink() -> RecordSink:
    global _sink_instance
    if _sink_instance is None:
        _sink_instance = InMemoryRecordSink()
    return _sink_instance


def get_import_service(
    lookup: ExistingRecordsLookup = Depends(get_existing_records),
    sink: RecordSink = Depends(get_record_sink),
) -> Generator[ImportService, None, None]:
    yield ImportService(lookup=lookup, sink=sink)


def reset_cached_instances() -> None:
    global _lookup_instance, _sink_instance
    _lookup_instance = None
    _sink_instance = None

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Protocol

from pydantic import BaseModel, Field, ValidationError

from bolsago.cpf import unformat_cpf
from bolsago.domain.models import BankValidationStatus
from bolsago.exceptions import DataSourceError
from bolsago.imports.types import ImportType, get_import_config, parse_import_type

logger = logging.getLogger(__name__)

NaturalKey = tuple[str, ...]


class ExistingRecord(BaseModel):
    """A record already persisted by the backend, as seen by the import core."""
    record_id: str
    fields: dict[str, Any] = Field(default_factory=dict)
    # Only meaningful for bank accounts; None when the backend has no review state.
    validation_status: Optional[BankValidationStatus] = None


class ExistingRecordsLookup(Protocol):
    def find(self, import_type: ImportType, key: NaturalKey) -> Optional[ExistingRecord]:
        ...


def normalize_key_part(field_name: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if field_name == "cpf":
        return unformat_cpf(text) or None
    if "email" in field_name:
        return text.lower()
    if "code" in field_name:
        return text.upper()
    return text


def natural_key_for(import_type: ImportType, data: Mapping[str, Any]) -> Optional[NaturalKey]:
    """Build the lookup key for a row; None when any key component is missing."""
    parts: list[str] = []
    for name in get_import_config(import_type).natural_key:
        part = normalize_key_part(name, data.get(name))
        if part is None:
            return None
        parts.append(part)
    return tuple(parts)


class InMemoryExistingRecords:
    """
    Read-only index of existing records keyed by (import type, natural key).
    Populated once, then only read, so concurrent ``find`` calls are safe.
    """

    def __init__(self, records: Optional[Mapping[ImportType, Iterable[ExistingRecord]]] = None):
        self._index: dict[tuple[ImportType, NaturalKey], ExistingRecord] = {}
        for import_type, items in (records or {}).items():
            for record in items:
                self.add(import_type, record)

    def add(self, import_type: ImportType | str, record: ExistingRecord) -> None:
        import_type = parse_import_type(import_type)
        key = natural_key_for(import_type, record.fields)
        if key is None:
            raise ValueError(
                f"existing {import_type.value} record {record.record_id} lacks natural key "
                f"{get_import_config(import_type).natural_key}"
            )
        self._index[(import_type, key)] = record

    def find(self, import_type: ImportType, key: NaturalKey) -> Optional[ExistingRecord]:
        return self._index.get((import_type, key))

    def __len__(self) -> int:
        return len(self._index)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Iterable[Mapping[str, Any]]]) -> "InMemoryExistingRecords":
        """
        Build from ``{"scholars": [{"record_id": "...", "fields": {...}}, ...], ...}``.
        """
        index = cls()
        for type_name, items in payload.items():
            import_type = parse_import_type(type_name)
            for item in items:
                index.add(import_type, ExistingRecord.model_validate(item))
        return index

    @classmethod
    def from_json_file(cls, path: Path) -> "InMemoryExistingRecords":
        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
            index = cls.from_mapping(payload)
        except (OSError, json.JSONDecodeError, ValidationError, ValueError) as exc:
            raise DataSourceError(f"Failed to load existing records from {path}: {exc}") from exc
        logger.info("existing records loaded", extra={"path": str(path), "records": len(index)})
        return index

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from bolsago.imports.types import ImportType

SKIPPED_DUPLICATE_REASON = "Registro duplicado ignorado"


class DuplicateStatus(str, Enum):
    NEW = "new"
    DUPLICATE = "duplicate"
    CONFLICT = "conflict"


class DuplicateAction(str, Enum):
    UPDATE = "update"
    SKIP = "skip"


class RawRecord(BaseModel):
    """A row as read from the uploaded file, before validation."""
    row_number: int = Field(..., ge=1)
    fields: dict[str, Any] = Field(default_factory=dict)


class DuplicateInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: DuplicateStatus
    existing_id: Optional[str] = None
    conflict_reason: Optional[str] = None
    action: Optional[DuplicateAction] = None

    @model_validator(mode="after")
    def _action_only_for_matches(self) -> "DuplicateInfo":
        if self.status == DuplicateStatus.NEW and self.action is not None:
            raise ValueError("duplicate action is not applicable to a new record")
        return self

    @property
    def is_match(self) -> bool:
        return self.status != DuplicateStatus.NEW


class ParsedRow(BaseModel):
    """One uploaded row after validation. Only the duplicate action may change afterwards."""
    model_config = ConfigDict(frozen=True)

    row_number: int = Field(..., ge=1)
    data: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    duplicate_info: Optional[DuplicateInfo] = None

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def action(self) -> Optional[DuplicateAction]:
        return self.duplicate_info.action if self.duplicate_info else None

    @property
    def status(self) -> Optional[DuplicateStatus]:
        return self.duplicate_info.status if self.duplicate_info else None


class ImportPreview(BaseModel):
    file_name: str
    import_type: ImportType
    rows: list[ParsedRow] = Field(default_factory=list)

    @field_validator("rows")
    @classmethod
    def _rows_in_file_order(cls, rows: list[ParsedRow]) -> list[ParsedRow]:
        numbers = [r.row_number for r in rows]
        if any(b <= a for a, b in zip(numbers, numbers[1:])):
            raise ValueError("rows must be in strictly increasing row_number order")
        return rows

    @computed_field
    @property
    def total_rows(self) -> int:
        return len(self.rows)

    @computed_field
    @property
    def valid_rows(self) -> int:
        return sum(1 for r in self.rows if r.is_valid)

    @computed_field
    @property
    def invalid_rows(self) -> int:
        return self.total_rows - self.valid_rows

    @computed_field
    @property
    def new_rows(self) -> int:
        return self._count_status(DuplicateStatus.NEW)

    @computed_field
    @property
    def duplicate_rows(self) -> int:
        return self._count_status(DuplicateStatus.DUPLICATE)

    @computed_field
    @property
    def conflict_rows(self) -> int:
        return self._count_status(DuplicateStatus.CONFLICT)

    @computed_field
    @property
    def warning_rows(self) -> int:
        return sum(1 for r in self.rows if r.is_valid and r.warnings)

    def _count_status(self, status: DuplicateStatus) -> int:
        return sum(1 for r in self.rows if r.status == status)


class ImportedRecord(BaseModel):
    row_number: int
    data: dict[str, Any]
    action: Optional[DuplicateAction] = None


class RejectedRecord(BaseModel):
    row_number: int
    data: dict[str, Any]
    reasons: list[str] = Field(..., min_length=1)


class ImportSummary(BaseModel):
    started_at: datetime
    completed_at: datetime
    import_type: ImportType
    file_name: str
    total_processed: int

    @model_validator(mode="after")
    def _ordered_timestamps(self) -> "ImportSummary":
        if self.completed_at < self.started_at:
            raise ValueError("completed_at precedes started_at")
        return self


class ImportResult(BaseModel):
    success: bool
    imported_count: int
    rejected_count: int
    updated_count: int = 0
    skipped_count: int = 0
    imported_records: list[ImportedRecord] = Field(default_factory=list)
    rejected_records: list[RejectedRecord] = Field(default_factory=list)
    summary: ImportSummary

    @model_validator(mode="after")
    def _consistent_counts(self) -> "ImportResult":
        if self.imported_count != len(self.imported_records):
            raise ValueError("imported_count does not match imported_records")
        if self.rejected_count != len(self.rejected_records):
            raise ValueError("rejected_count does not match rejected_records")
        if self.imported_count + self.rejected_count != self.summary.total_processed:
            raise ValueError("imported + rejected must equal total_processed")
        if self.updated_count > self.imported_count or self.skipped_count > self.rejected_count:
            raise ValueError("updated/skipped counts exceed their record lists")
        return self

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from bolsago.config import settings
from bolsago.exceptions import ContractViolationError, LookupUnavailableError
from bolsago.imports.lookup import ExistingRecord, ExistingRecordsLookup, natural_key_for, normalize_key_part
from bolsago.imports.models import (
    DuplicateAction,
    DuplicateInfo,
    DuplicateStatus,
    ImportedRecord,
    ImportPreview,
    ImportResult,
    ImportSummary,
    ParsedRow,
    SKIPPED_DUPLICATE_REASON,
    RawRecord,
    RejectedRecord,
)
from bolsago.imports.rules import FORMAT_RULES, RowIssues
from bolsago.imports.types import ImportType, get_import_config, parse_import_type

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _clean_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, str):
        text = value.strip()
        return text or None
    return value


def _normalize_fields(raw_fields: Mapping[str, Any]) -> dict[str, Any]:
    clean: dict[str, Any] = {}
    for key, value in raw_fields.items():
        if key is None:
            continue
        text_key = str(key).strip()
        if not text_key:
            continue
        value = _clean_value(value)
        if value is not None:
            clean[text_key] = value
    return clean


def _conflict_reason(import_type: ImportType, data: Mapping[str, Any], match: ExistingRecord) -> Optional[str]:
    if import_type == ImportType.SCHOLARS:
        stored = normalize_key_part("email", match.fields.get("email"))
        incoming = normalize_key_part("email", data.get("email"))
        if stored and incoming and stored != incoming:
            return f"CPF já cadastrado com outro email ({match.fields.get('email')})"
    elif import_type == ImportType.BANK_ACCOUNTS:
        status = match.validation_status
        if status is not None and status.locked:
            return f"Dados bancários existentes com status '{status.value}'"
    return None


def _find_duplicate(
    import_type: ImportType,
    data: Mapping[str, Any],
    existing_records: ExistingRecordsLookup,
    issues: RowIssues,
) -> Optional[DuplicateInfo]:
    key = natural_key_for(import_type, data)
    if key is None:
        return None
    try:
        match = existing_records.find(import_type, key)
    except Exception as exc:
        raise LookupUnavailableError(
            f"Existing-records lookup failed for {import_type.value} key {key}: {exc}"
        ) from exc
    if match is None:
        return DuplicateInfo(status=DuplicateStatus.NEW)

    reason = _conflict_reason(import_type, data, match)
    if reason:
        issues.warn(f"Registro em conflito com cadastro existente: {reason}")
        status = DuplicateStatus.CONFLICT
    else:
        issues.warn("Registro já existe na base (duplicado)")
        status = DuplicateStatus.DUPLICATE
    return DuplicateInfo(
        status=status,
        existing_id=match.record_id,
        conflict_reason=reason,
        action=DuplicateAction.SKIP,
    )


def classify_row(
    raw_fields: Mapping[str, Any],
    import_type: ImportType | str,
    existing_records: ExistingRecordsLookup,
    row_number: int = 1,
) -> ParsedRow:
    """
    Validate one raw row against the import contract of ``import_type``.

    Row problems end up in ``errors``/``warnings`` of the returned row; only a
    failing ``existing_records`` lookup raises (``LookupUnavailableError``).
    """
    import_type = parse_import_type(import_type)
    config = get_import_config(import_type)
    data = _normalize_fields(raw_fields)
    issues = RowIssues()

    for name in config.required_fields:
        if name not in data:
            issues.error(f"Campo obrigatório ausente: {name}")

    known = set(config.all_fields)
    for name in data:
        if name not in known:
            issues.warn(f"Campo não reconhecido: {name}")

    FORMAT_RULES[import_type](data, issues)
    duplicate_info = _find_duplicate(import_type, data, existing_records, issues)

    return ParsedRow(
        row_number=row_number,
        data=data,
        errors=issues.errors,
        warnings=issues.warnings,
        duplicate_info=duplicate_info,
    )


def build_preview(
    records: Iterable[RawRecord],
    import_type: ImportType | str,
    existing_records: ExistingRecordsLookup,
    file_name: str,
    workers: Optional[int] = None,
) -> ImportPreview:
    import_type = parse_import_type(import_type)
    records = list(records)
    workers = workers or settings.imports.classify_workers

    def _classify(record: RawRecord) -> ParsedRow:
        return classify_row(record.fields, import_type, existing_records, row_number=record.row_number)

    if workers > 1 and len(records) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            rows = list(pool.map(_classify, records))
    else:
        rows = [_classify(record) for record in records]

    preview = ImportPreview(file_name=file_name, import_type=import_type, rows=rows)
    logger.info(
        "import preview built",
        extra={
            "import_type": import_type.value,
            "file_name": file_name,
            "total_rows": preview.total_rows,
            "valid_rows": preview.valid_rows,
            "invalid_rows": preview.invalid_rows,
            "duplicate_rows": preview.duplicate_rows,
            "conflict_rows": preview.conflict_rows,
        },
    )
    return preview


def _coerce_actions(actions_by_row: Optional[Mapping[Any, Any]]) -> dict[int, DuplicateAction]:
    coerced: dict[int, DuplicateAction] = {}
    for row_key, action in (actions_by_row or {}).items():
        try:
            coerced[int(row_key)] = DuplicateAction(action)
        except (TypeError, ValueError) as exc:
            raise ContractViolationError(f"Invalid duplicate action for row {row_key}: {action!r}") from exc
    return coerced


def resolve_duplicates(
    rows: Iterable[ParsedRow],
    actions_by_row: Optional[Mapping[Any, Any]] = None,
    strict: Optional[bool] = None,
) -> list[ParsedRow]:
    """
    Attach the caller's duplicate actions (keyed by row number) to matched rows.

    Matched rows without a supplied action keep their current action, ``skip``
    by default. An action for a row that did not match an existing record is a
    contract violation: raised when ``strict``, logged and dropped otherwise.
    """
    strict = settings.imports.strict_contract if strict is None else strict
    actions = _coerce_actions(actions_by_row)
    resolved: list[ParsedRow] = []
    seen: set[int] = set()

    for row in rows:
        seen.add(row.row_number)
        info = row.duplicate_info
        if info is not None and info.is_match:
            action = actions.get(row.row_number, info.action or DuplicateAction.SKIP)
            resolved.append(row.model_copy(update={"duplicate_info": info.model_copy(update={"action": action})}))
            continue
        if row.row_number in actions:
            _violation(f"Duplicate action given for row {row.row_number}, which is not a duplicate", strict)
        resolved.append(row)

    unknown = sorted(set(actions) - seen)
    if unknown:
        _violation(f"Duplicate actions given for unknown rows: {unknown}", strict)
    return resolved


def _violation(message: str, strict: bool) -> None:
    if strict:
        raise ContractViolationError(message)
    logger.warning("ignoring duplicate action: %s", message)


def commit(preview: ImportPreview, clock: Optional[Clock] = None) -> ImportResult:
    """
    Partition a resolved preview into imported and rejected records.

    Skipped duplicates are reported as rejected with ``SKIPPED_DUPLICATE_REASON``.
    The result depends only on the preview and the two clock readings.
    """
    clock = clock or _utcnow
    started_at = clock()

    imported: list[ImportedRecord] = []
    rejected: list[RejectedRecord] = []
    updated = skipped = 0

    for row in preview.rows:
        if not row.is_valid:
            rejected.append(RejectedRecord(row_number=row.row_number, data=row.data, reasons=list(row.errors)))
            continue
        if row.action == DuplicateAction.SKIP:
            rejected.append(
                RejectedRecord(row_number=row.row_number, data=row.data, reasons=[SKIPPED_DUPLICATE_REASON])
            )
            skipped += 1
            continue
        if row.action == DuplicateAction.UPDATE:
            updated += 1
        imported.append(ImportedRecord(row_number=row.row_number, data=row.data, action=row.action))

    completed_at = max(clock(), started_at)
    result = ImportResult(
        success=bool(imported),
        imported_count=len(imported),
        rejected_count=len(rejected),
        updated_count=updated,
        skipped_count=skipped,
        imported_records=imported,
        rejected_records=rejected,
        summary=ImportSummary(
            started_at=started_at,
            completed_at=completed_at,
            import_type=preview.import_type,
            file_name=preview.file_name,
            total_processed=preview.total_rows,
        ),
    )
    logger.info(
        "import committed",
        extra={
            "import_type": preview.import_type.value,
            "file_name": preview.file_name,
            "imported": result.imported_count,
            "updated": updated,
            "skipped": skipped,
            "rejected": result.rejected_count,
        },
    )
    return result

from __future__ import annotations

import csv
import io
import json
from datetime import UTC, datetime
from typing import Any, Iterator, Optional

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from bolsago.imports.models import SKIPPED_DUPLICATE_REASON, DuplicateAction, ImportResult
from bolsago.imports.types import ImportType, get_import_config, parse_import_type, template_headers

STATUS_IMPORTED = "Importado"
STATUS_UPDATED = "Atualizado"
STATUS_SKIPPED = "Ignorado"
STATUS_REJECTED = "Rejeitado"

REPORT_HEADERS = ["Linha", "Status", "Motivos"]


def template_csv(import_type: ImportType | str) -> str:
    return ",".join(template_headers(import_type)) + "\n"


def template_filename(import_type: ImportType | str) -> str:
    return f"modelo-{parse_import_type(import_type).value}.csv"


def report_filename(result: ImportResult, ext: str, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now(UTC)).strftime("%Y-%m-%d-%H%M%S")
    return f"relatorio-importacao-{result.summary.import_type.value}-{stamp}.{ext}"


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


def _report_rows(result: ImportResult) -> Iterator[list[str]]:
    """Imported, updated, skipped, rejected; each group in row order."""
    fields = template_headers(result.summary.import_type)
    groups: list[tuple[str, list[tuple[int, dict, str]]]] = [
        (
            STATUS_IMPORTED,
            [(r.row_number, r.data, "") for r in result.imported_records if r.action != DuplicateAction.UPDATE],
        ),
        (
            STATUS_UPDATED,
            [(r.row_number, r.data, "") for r in result.imported_records if r.action == DuplicateAction.UPDATE],
        ),
        (STATUS_SKIPPED, []),
        (STATUS_REJECTED, []),
    ]
    for record in result.rejected_records:
        reasons = "; ".join(record.reasons)
        target = groups[2][1] if _is_skipped(record.reasons) else groups[3][1]
        target.append((record.row_number, record.data, reasons))

    for status, entries in groups:
        for row_number, data, reasons in entries:
            yield [str(row_number), status, reasons, *(_cell(data.get(f)) for f in fields)]


def _is_skipped(reasons: list[str]) -> bool:
    return reasons == [SKIPPED_DUPLICATE_REASON]


def result_to_csv(result: ImportResult) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(REPORT_HEADERS + template_headers(result.summary.import_type))
    for row in _report_rows(result):
        writer.writerow(row)
    return buffer.getvalue()


def result_to_json(result: ImportResult, generated_at: Optional[datetime] = None) -> str:
    payload = result.model_dump(mode="json")
    payload["generated_at"] = (generated_at or datetime.now(UTC)).isoformat()
    return json.dumps(payload, ensure_ascii=False, indent=2)


def result_to_workbook(result: ImportResult) -> bytes:
    config = get_import_config(result.summary.import_type)
    summary = result.summary
    wb = Workbook()

    ws_summary = wb.active
    ws_summary.title = "Resumo"
    for label, value in (
        ("Tipo de importação", config.label),
        ("Arquivo", summary.file_name),
        ("Início", summary.started_at.isoformat()),
        ("Conclusão", summary.completed_at.isoformat()),
        ("Total processado", summary.total_processed),
        ("Importados", result.imported_count),
        ("Atualizados", result.updated_count),
        ("Ignorados", result.skipped_count),
        ("Rejeitados", result.rejected_count),
    ):
        ws_summary.append([label, value])
    _autosize(ws_summary)

    ws_rows = wb.create_sheet("Registros")
    ws_rows.append(REPORT_HEADERS + template_headers(summary.import_type))
    for row in _report_rows(result):
        ws_rows.append([int(row[0]), *row[1:]])
    _autosize(ws_rows)

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _autosize(ws):
    for column_cells in ws.columns:
        length = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column_cells)
        ws.column_dimensions[get_column_letter(column_cells[0].column)].width = min(max(length + 2, 12), 60)

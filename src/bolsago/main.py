from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
import uvicorn

from bolsago.config import settings
from bolsago.exceptions import BolsaGOError
from bolsago.imports import IMPORT_TYPES, ImportService, InMemoryExistingRecords, ImportType
from bolsago.imports.models import ImportPreview, ImportResult
from bolsago.imports.report import (
    report_filename,
    result_to_csv,
    result_to_json,
    result_to_workbook,
    template_csv,
)

cli = typer.Typer(help="BolsaGO bulk-import CLI")

_REPORT_FORMATS = ("csv", "json", "xlsx")


def _configure_logging() -> None:
    logging.basicConfig(level=getattr(logging, settings.logging.level.upper(), logging.INFO))


def _build_service(existing: Optional[Path]) -> ImportService:
    path = existing or settings.imports.existing_records_file
    lookup = InMemoryExistingRecords.from_json_file(path) if path else InMemoryExistingRecords()
    return ImportService(lookup=lookup)


def _parse_actions(raw: List[str]) -> dict[int, str]:
    actions: dict[int, str] = {}
    for item in raw:
        row, sep, action = item.partition("=")
        if not sep or not row.strip().isdigit():
            raise typer.BadParameter(f"expected ROW=update|skip, got '{item}'", param_hint="--action")
        actions[int(row)] = action.strip().lower()
    return actions


def _write_report(result: ImportResult, path: Path) -> None:
    suffix = path.suffix.lower()
    if suffix == ".json":
        path.write_text(result_to_json(result), encoding="utf-8")
    elif suffix == ".xlsx":
        path.write_bytes(result_to_workbook(result))
    else:
        path.write_text(result_to_csv(result), encoding="utf-8")


def _echo_preview(preview: ImportPreview) -> None:
    typer.echo(
        f"{preview.file_name}: {preview.total_rows} linha(s), {preview.valid_rows} válida(s), "
        f"{preview.invalid_rows} inválida(s), {preview.duplicate_rows} duplicada(s), "
        f"{preview.conflict_rows} em conflito"
    )
    for row in preview.rows:
        if row.errors:
            typer.echo(f"  linha {row.row_number}: ERRO {'; '.join(row.errors)}")
        elif row.warnings:
            typer.echo(f"  linha {row.row_number}: aviso {'; '.join(row.warnings)}")


@cli.command()
def version() -> None:
    """Print runtime version."""
    typer.echo(f"{settings.app.name} {settings.app.version}")


@cli.command()
def types() -> None:
    """List import types and their fields."""
    for import_type, config in IMPORT_TYPES.items():
        typer.echo(f"{import_type.value} ({config.label})")
        typer.echo(f"  obrigatórios: {', '.join(config.required_fields)}")
        if config.optional_fields:
            typer.echo(f"  opcionais: {', '.join(config.optional_fields)}")


@cli.command()
def template(
    import_type: ImportType = typer.Argument(..., help="Import type"),
    out: Optional[Path] = typer.Option(None, help="Write the CSV template to this path"),
) -> None:
    """Print (or write) a blank CSV template for an import type."""
    content = template_csv(import_type)
    if out:
        out.write_text(content, encoding="utf-8")
        typer.echo(f"Modelo salvo em {out}")
    else:
        typer.echo(content, nl=False)


@cli.command()
def preview(
    import_type: ImportType = typer.Argument(..., help="Import type"),
    file: Path = typer.Argument(..., help="CSV or XLSX file"),
    existing: Optional[Path] = typer.Option(None, help="JSON snapshot of existing records"),
) -> None:
    """Validate a file and show per-row problems without importing."""
    _configure_logging()
    try:
        result = _build_service(existing).preview_file(import_type, file)
    except BolsaGOError as exc:
        typer.echo(f"Erro: {exc}", err=True)
        raise typer.Exit(code=2)
    _echo_preview(result)


@cli.command()
def run(
    import_type: ImportType = typer.Argument(..., help="Import type"),
    file: Path = typer.Argument(..., help="CSV or XLSX file"),
    existing: Optional[Path] = typer.Option(None, help="JSON snapshot of existing records"),
    action: List[str] = typer.Option([], "--action", help="Duplicate resolution, e.g. 3=update"),
    report: Optional[Path] = typer.Option(None, help="Write the result report (.csv, .json or .xlsx)"),
    report_format: Optional[str] = typer.Option(
        None, "--report-format", help="csv, json or xlsx; written to paths.output_dir with a timestamped name"
    ),
) -> None:
    """Validate and commit a file, optionally writing a result report."""
    _configure_logging()
    actions = _parse_actions(action)
    if report_format and report_format.lower() not in _REPORT_FORMATS:
        raise typer.BadParameter(f"expected one of {', '.join(_REPORT_FORMATS)}", param_hint="--report-format")
    try:
        svc = _build_service(existing)
        parsed = svc.preview_file(import_type, file)
        result = svc.commit(parsed, actions=actions)
    except BolsaGOError as exc:
        typer.echo(f"Erro: {exc}", err=True)
        raise typer.Exit(code=2)

    _echo_preview(parsed)
    typer.echo(
        f"{result.imported_count} registro(s) importado(s) ({result.updated_count} atualizado(s)), "
        f"{result.rejected_count} rejeitado(s) ({result.skipped_count} ignorado(s))"
    )
    if report is None and report_format:
        settings.paths.output_dir.mkdir(parents=True, exist_ok=True)
        report = settings.paths.output_dir / report_filename(result, report_format.lower())
    if report:
        _write_report(result, report)
        typer.echo(f"Relatório salvo em {report}")
    if not result.success:
        raise typer.Exit(code=1)


@cli.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind"),
    port: int = typer.Option(8000, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload for local development"),
) -> None:
    """Run the BolsaGO import API server."""
    uvicorn.run(
        "bolsago.api.main:app",
        host=host,
        port=port,
        reload=reload,
        app_dir="src",
    )


if __name__ == "__main__":
    cli()

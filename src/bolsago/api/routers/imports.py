from typing import Literal

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field

from bolsago.api.deps import get_import_service
from bolsago.imports import IMPORT_TYPES, ImportPreview, ImportResult, ImportService, ImportType
from bolsago.imports.models import DuplicateAction
from bolsago.imports.report import (
    report_filename,
    result_to_csv,
    result_to_json,
    result_to_workbook,
    template_csv,
    template_filename,
)

router = APIRouter(prefix="/imports", tags=["Imports"])

_XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class CommitRequest(BaseModel):
    preview: ImportPreview
    actions: dict[int, DuplicateAction] = Field(default_factory=dict)


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@router.get("/types")
def list_import_types():
    return [
        {
            "type": import_type.value,
            "label": config.label,
            "description": config.description,
            "required_fields": list(config.required_fields),
            "optional_fields": list(config.optional_fields),
        }
        for import_type, config in IMPORT_TYPES.items()
    ]


@router.get("/types/{import_type}/template")
def download_template(import_type: ImportType):
    return Response(
        content=template_csv(import_type),
        media_type="text/csv; charset=utf-8",
        headers=_attachment(template_filename(import_type)),
    )


@router.post("/{import_type}/preview", response_model=ImportPreview)
def preview_import(
    import_type: ImportType,
    file: UploadFile = File(...),
    svc: ImportService = Depends(get_import_service),
):
    content = file.file.read()
    return svc.preview_file(import_type, content, file_name=file.filename or "upload")


@router.post("/commit", response_model=ImportResult)
def commit_import(
    request: CommitRequest,
    svc: ImportService = Depends(get_import_service),
):
    return svc.commit(request.preview, actions=request.actions)


@router.post("/report")
def download_report(
    result: ImportResult,
    format: Literal["csv", "json", "xlsx"] = Query("csv"),
):
    if format == "json":
        return Response(
            content=result_to_json(result),
            media_type="application/json",
            headers=_attachment(report_filename(result, "json")),
        )
    if format == "xlsx":
        return Response(
            content=result_to_workbook(result),
            media_type=_XLSX_MEDIA_TYPE,
            headers=_attachment(report_filename(result, "xlsx")),
        )
    return Response(
        content=result_to_csv(result),
        media_type="text/csv; charset=utf-8",
        headers=_attachment(report_filename(result, "csv")),
    )

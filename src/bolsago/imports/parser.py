from __future__ import annotations

import io
import logging
import re
import unicodedata
from pathlib import Path
from typing import Any, Iterable, Optional

import pandas as pd

from bolsago.config import settings
from bolsago.exceptions import DataSourceError
from bolsago.imports.models import RawRecord

logger = logging.getLogger(__name__)

_UNNAMED = re.compile(r"^unnamed(_\d+)*$")


def normalize_header(text: Any) -> str:
    """``"Nome Completo "`` -> ``"nome_completo"``, ``"E-mail"`` -> ``"email"``."""
    if text is None:
        return ""
    normalized = unicodedata.normalize("NFKD", str(text))
    normalized = "".join(ch for ch in normalized if unicodedata.category(ch) != "Mn")
    normalized = normalized.strip().lower()
    normalized = re.sub(r"\s+", "_", normalized)
    normalized = re.sub(r"[^a-z0-9_]", "", normalized)
    return normalized.strip("_")


class SpreadsheetParser:
    """
    Reads an uploaded CSV/XLSX file into raw rows keyed by normalized header.
    Row numbers are 1-based positions in the file, header excluded; blank rows
    are dropped without renumbering the rest.
    """

    def __init__(self, accepted_extensions: Optional[Iterable[str]] = None, max_upload_mb: Optional[int] = None):
        self.accepted_extensions = tuple(
            ext.lower() for ext in (accepted_extensions or settings.imports.accepted_extensions)
        )
        self.max_upload_mb = settings.imports.max_upload_mb if max_upload_mb is None else max_upload_mb

    def parse(self, source: Path | bytes, file_name: Optional[str] = None) -> list[RawRecord]:
        if isinstance(source, (bytes, bytearray)):
            if not file_name:
                raise DataSourceError("file_name is required when parsing raw bytes")
            content = bytes(source)
        else:
            path = Path(source)
            file_name = file_name or path.name
            try:
                content = path.read_bytes()
            except OSError as exc:
                raise DataSourceError(f"Input file not found or unreadable: {path}") from exc

        suffix = Path(file_name).suffix.lower()
        if suffix not in self.accepted_extensions:
            raise DataSourceError(
                f"Tipo de arquivo não suportado: {suffix or file_name}. Use: {', '.join(self.accepted_extensions)}"
            )
        max_bytes = self.max_upload_mb * 1024 * 1024
        if max_bytes and len(content) > max_bytes:
            raise DataSourceError(f"Arquivo muito grande. Tamanho máximo: {self.max_upload_mb}MB")

        df = self._read_frame(content, suffix, file_name)
        records = self._to_records(df, file_name)
        if not records:
            raise DataSourceError(f"Planilha vazia ou sem dados válidos: {file_name}")
        logger.info(
            "file parsed",
            extra={"file_name": file_name, "rows": len(records), "columns": list(df.columns)},
        )
        return records

    def _read_frame(self, content: bytes, suffix: str, file_name: str) -> pd.DataFrame:
        try:
            if suffix == ".csv":
                text = self._decode(content)
                df = pd.read_csv(
                    io.StringIO(text),
                    sep=self._sniff_delimiter(text),
                    dtype=str,
                    keep_default_na=False,
                    skip_blank_lines=False,
                )
            else:
                df = pd.read_excel(io.BytesIO(content), sheet_name=0, dtype=str, engine="openpyxl")
        except pd.errors.EmptyDataError as exc:
            raise DataSourceError(f"Arquivo vazio ou sem cabeçalho: {file_name}") from exc
        except Exception as exc:
            raise DataSourceError(f"Failed to read {file_name}: {exc}") from exc

        headers = [normalize_header(col) for col in df.columns]
        keep = [i for i, h in enumerate(headers) if h and not _UNNAMED.match(h)]
        if not keep:
            raise DataSourceError(f"Arquivo sem cabeçalho reconhecível: {file_name}")
        df = df.iloc[:, keep]
        df.columns = [headers[i] for i in keep]

        duplicated = sorted({h for h in df.columns if list(df.columns).count(h) > 1})
        if duplicated:
            raise DataSourceError(f"Colunas duplicadas no arquivo: {', '.join(duplicated)}")
        return df

    @staticmethod
    def _to_records(df: pd.DataFrame, file_name: str) -> list[RawRecord]:
        records: list[RawRecord] = []
        for position, (_, row) in enumerate(df.iterrows(), start=1):
            fields: dict[str, Any] = {}
            for column, value in row.items():
                if value is None or (isinstance(value, float) and pd.isna(value)):
                    fields[column] = None
                    continue
                text = str(value).strip()
                fields[column] = text or None
            if all(v is None for v in fields.values()):
                continue
            records.append(RawRecord(row_number=position, fields=fields))
        return records

    @staticmethod
    def _decode(content: bytes) -> str:
        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError:
            # Spreadsheets exported on Windows in Brazil are usually cp1252.
            return content.decode("cp1252", errors="replace")

    @staticmethod
    def _sniff_delimiter(text: str) -> str:
        header = text.splitlines()[0] if text else ""
        return ";" if header.count(";") > header.count(",") else ","

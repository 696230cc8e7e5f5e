from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping

from pydantic import BaseModel, ConfigDict, model_validator

from bolsago.exceptions import UnknownImportTypeError


class ImportType(str, Enum):
    SCHOLARS = "scholars"
    BANK_ACCOUNTS = "bank_accounts"
    PROJECTS = "projects"
    ENROLLMENTS = "enrollments"


class ImportTypeConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    description: str
    required_fields: tuple[str, ...]
    optional_fields: tuple[str, ...] = ()
    natural_key: tuple[str, ...]

    @model_validator(mode="after")
    def _check_fields(self) -> "ImportTypeConfig":
        if len(set(self.required_fields)) != len(self.required_fields):
            raise ValueError("required_fields must be unique")
        overlap = set(self.required_fields) & set(self.optional_fields)
        if overlap:
            raise ValueError(f"fields both required and optional: {sorted(overlap)}")
        missing_key = set(self.natural_key) - set(self.required_fields)
        if missing_key:
            raise ValueError(f"natural key fields must be required: {sorted(missing_key)}")
        return self

    @property
    def all_fields(self) -> tuple[str, ...]:
        return self.required_fields + self.optional_fields


IMPORT_TYPES: Mapping[ImportType, ImportTypeConfig] = MappingProxyType(
    {
        ImportType.SCHOLARS: ImportTypeConfig(
            label="Bolsistas",
            description="Dados pessoais dos bolsistas (nome, email, CPF, telefone)",
            required_fields=("full_name", "email", "cpf"),
            optional_fields=("phone", "avatar_url"),
            natural_key=("cpf",),
        ),
        ImportType.BANK_ACCOUNTS: ImportTypeConfig(
            label="Dados Bancários",
            description="Informações bancárias dos bolsistas",
            required_fields=("user_email", "bank_code", "bank_name", "agency", "account_number"),
            optional_fields=("account_type", "pix_key", "pix_key_type"),
            natural_key=("user_email",),
        ),
        ImportType.PROJECTS: ImportTypeConfig(
            label="Projetos",
            description="Projetos de pesquisa e bolsas (modelo ICCA)",
            required_fields=(
                "code",
                "title",
                "empresa_parceira",
                "modalidade_bolsa",
                "valor_mensal",
                "start_date",
                "end_date",
            ),
            optional_fields=("coordenador_tecnico_icca",),
            natural_key=("code",),
        ),
        ImportType.ENROLLMENTS: ImportTypeConfig(
            label="Vínculos",
            description="Vínculos entre bolsistas e projetos",
            required_fields=(
                "user_email",
                "project_code",
                "modality",
                "grant_value",
                "start_date",
                "end_date",
                "total_installments",
            ),
            optional_fields=("observations",),
            natural_key=("user_email", "project_code"),
        ),
    }
)

_missing = set(ImportType) - set(IMPORT_TYPES)
if _missing:
    raise RuntimeError(f"import types without configuration: {sorted(t.value for t in _missing)}")


def parse_import_type(value: ImportType | str) -> ImportType:
    if isinstance(value, ImportType):
        return value
    try:
        return ImportType(str(value).strip().lower())
    except ValueError as exc:
        valid = ", ".join(t.value for t in ImportType)
        raise UnknownImportTypeError(f"Unknown import type '{value}'; expected one of: {valid}") from exc


def get_import_config(value: ImportType | str) -> ImportTypeConfig:
    return IMPORT_TYPES[parse_import_type(value)]


def template_headers(value: ImportType | str) -> list[str]:
    """Column order for a blank import template: required first, then optional."""
    return list(get_import_config(value).all_fields)

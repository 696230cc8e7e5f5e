import pytest
from pydantic import ValidationError

from bolsago.exceptions import UnknownImportTypeError
from bolsago.imports.types import (
    IMPORT_TYPES,
    ImportType,
    ImportTypeConfig,
    get_import_config,
    parse_import_type,
    template_headers,
)


def test_every_import_type_is_configured():
    assert set(IMPORT_TYPES) == set(ImportType)


@pytest.mark.parametrize("import_type", list(ImportType))
def test_required_and_optional_fields_are_disjoint(import_type):
    config = IMPORT_TYPES[import_type]
    assert len(set(config.required_fields)) == len(config.required_fields)
    assert not set(config.required_fields) & set(config.optional_fields)
    assert set(config.natural_key) <= set(config.required_fields)


def test_scholars_config_matches_contract():
    config = IMPORT_TYPES[ImportType.SCHOLARS]
    assert config.label == "Bolsistas"
    assert config.required_fields == ("full_name", "email", "cpf")
    assert config.optional_fields == ("phone", "avatar_url")
    assert config.natural_key == ("cpf",)


def test_enrollments_use_composite_natural_key():
    assert IMPORT_TYPES[ImportType.ENROLLMENTS].natural_key == ("user_email", "project_code")


def test_table_is_read_only():
    with pytest.raises(TypeError):
        IMPORT_TYPES[ImportType.SCHOLARS] = IMPORT_TYPES[ImportType.PROJECTS]  # type: ignore[index]
    with pytest.raises(ValidationError):
        IMPORT_TYPES[ImportType.SCHOLARS].label = "Outro"  # type: ignore[misc]


def test_config_rejects_overlapping_fields():
    with pytest.raises(ValidationError):
        ImportTypeConfig(
            label="x",
            description="x",
            required_fields=("a", "b"),
            optional_fields=("b",),
            natural_key=("a",),
        )


def test_config_rejects_duplicate_required_fields():
    with pytest.raises(ValidationError):
        ImportTypeConfig(label="x", description="x", required_fields=("a", "a"), natural_key=("a",))


@pytest.mark.parametrize("raw,expected", [
    ("scholars", ImportType.SCHOLARS),
    (" Bank_Accounts ", ImportType.BANK_ACCOUNTS),
    (ImportType.PROJECTS, ImportType.PROJECTS),
])
def test_parse_import_type(raw, expected):
    assert parse_import_type(raw) is expected


def test_unknown_import_type_raises():
    with pytest.raises(UnknownImportTypeError):
        get_import_config("payments")


def test_template_headers_required_first():
    assert template_headers("bank_accounts") == [
        "user_email",
        "bank_code",
        "bank_name",
        "agency",
        "account_number",
        "account_type",
        "pix_key",
        "pix_key_type",
    ]

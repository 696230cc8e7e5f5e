"""
Format rules applied to a single import row, one rule set per import type.

Rules only look at fields that are present; missing required fields are reported
by the classifier. Each rule appends to a shared :class:`RowIssues` accumulator and
may rewrite values in the row to their canonical form (CPF digits, ISO dates,
numbers as floats).
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Optional

from bolsago.cpf import format_cpf, is_valid_cpf, unformat_cpf
from bolsago.domain.models import GrantModality
from bolsago.imports.types import ImportType

_EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_ISO_DATE_REGEX = re.compile(
    r"^(\d{4}-\d{2}-\d{2})(?:[ T]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)?$"
)
_BR_DATE_REGEX = re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$")
_AGENCY_REGEX = re.compile(r"^\d{1,5}(-[\dxX])?$")
_ACCOUNT_REGEX = re.compile(r"^\d{1,12}(-[\dxX])?$")
_NON_DIGITS = re.compile(r"[^0-9]")

_ACCOUNT_TYPES = {
    "checking": "checking",
    "corrente": "checking",
    "conta corrente": "checking",
    "cc": "checking",
    "savings": "savings",
    "poupanca": "savings",
    "poupança": "savings",
    "conta poupança": "savings",
    "conta poupanca": "savings",
}

_PIX_KEY_TYPES = {
    "cpf": "cpf",
    "email": "email",
    "e-mail": "email",
    "phone": "phone",
    "telefone": "phone",
    "celular": "phone",
    "random": "random",
    "aleatoria": "random",
    "aleatória": "random",
    "evp": "random",
}


@dataclass
class RowIssues:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def error(self, message: str) -> None:
        self.errors.append(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)


Rule = Callable[[dict[str, Any], RowIssues], None]


def _digits(value: Any) -> str:
    return _NON_DIGITS.sub("", str(value))


def is_valid_email(value: Any) -> bool:
    return bool(value) and bool(_EMAIL_REGEX.match(str(value).strip()))


def parse_date(value: Any) -> Optional[date]:
    """Accepts ISO ``YYYY-MM-DD`` (optionally followed by a time) and ``DD/MM/YYYY``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        iso = _ISO_DATE_REGEX.match(text)
        if iso:
            return date.fromisoformat(iso.group(1))
        if _BR_DATE_REGEX.match(text):
            return datetime.strptime(text, "%d/%m/%Y").date()
    except ValueError:
        return None
    return None


def parse_amount(value: Any) -> Optional[Decimal]:
    """Parse ``1234.56``, ``1.234,56`` and ``R$ 1.500,00`` style amounts."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        text = str(value)
    else:
        text = str(value).strip().replace("R$", "").replace(" ", "")
    if not text:
        return None
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    elif text.count(".") > 1:
        text = text.replace(".", "")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_positive_int(value: Any) -> Optional[int]:
    amount = parse_amount(value)
    if amount is None or amount != amount.to_integral_value() or amount <= 0:
        return None
    return int(amount)


def _check_email(data: dict[str, Any], key: str, issues: RowIssues) -> None:
    if key in data and not is_valid_email(data[key]):
        issues.error(f"Email inválido no campo {key}: {data[key]}")


def _check_modality(data: dict[str, Any], key: str, issues: RowIssues) -> None:
    if key not in data:
        return
    modality = GrantModality.parse(data[key])
    if modality is None:
        issues.warn(f"Modalidade de bolsa não reconhecida: {data[key]}")
    else:
        data[key] = modality.value


def _check_positive_amount(data: dict[str, Any], key: str, issues: RowIssues) -> None:
    if key not in data:
        return
    amount = parse_amount(data[key])
    if amount is None:
        issues.error(f"Valor numérico inválido no campo {key}: {data[key]}")
    elif amount <= 0:
        issues.error(f"O campo {key} deve ser maior que zero")
    else:
        data[key] = float(amount)


def _check_date_range(data: dict[str, Any], issues: RowIssues) -> None:
    parsed: dict[str, date] = {}
    for key in ("start_date", "end_date"):
        if key not in data:
            continue
        value = parse_date(data[key])
        if value is None:
            issues.error(f"Data inválida no campo {key}: {data[key]} (use AAAA-MM-DD ou DD/MM/AAAA)")
            continue
        parsed[key] = value
        data[key] = value.isoformat()
    if len(parsed) == 2 and parsed["end_date"] <= parsed["start_date"]:
        issues.error("Data final deve ser posterior à data inicial")


def scholar_rules(data: dict[str, Any], issues: RowIssues) -> None:
    if "cpf" in data:
        if is_valid_cpf(data["cpf"]):
            data["cpf"] = unformat_cpf(data["cpf"])
        else:
            issues.error(f"CPF inválido: {format_cpf(data['cpf']) or data['cpf']}")
    _check_email(data, "email", issues)
    if "phone" in data:
        digits = _digits(data["phone"])
        if len(digits) in (12, 13) and digits.startswith("55"):
            digits = digits[2:]
        if len(digits) not in (10, 11):
            issues.warn(f"Telefone com formato inesperado: {data['phone']}")


def bank_account_rules(data: dict[str, Any], issues: RowIssues) -> None:
    _check_email(data, "user_email", issues)

    if "bank_code" in data:
        code = str(data["bank_code"]).strip()
        if code.isascii() and code.isdigit() and len(code) < 3:
            data["bank_code"] = code.zfill(3)
            issues.warn(f"Código do banco completado com zeros: {code} -> {data['bank_code']}")
        elif not (code.isascii() and code.isdigit() and len(code) == 3):
            issues.warn(f"Código do banco deve ter 3 dígitos: {code}")

    if "agency" in data and not _AGENCY_REGEX.match(str(data["agency"]).strip()):
        issues.error(f"Agência inválida: {data['agency']}")
    if "account_number" in data and not _ACCOUNT_REGEX.match(str(data["account_number"]).strip()):
        issues.error(f"Número da conta inválido: {data['account_number']}")

    if "account_type" in data:
        account_type = _ACCOUNT_TYPES.get(str(data["account_type"]).strip().lower())
        if account_type is None:
            issues.warn(f"Tipo de conta não reconhecido: {data['account_type']}")
        else:
            data["account_type"] = account_type

    pix_type: Optional[str] = None
    if "pix_key_type" in data:
        pix_type = _PIX_KEY_TYPES.get(str(data["pix_key_type"]).strip().lower())
        if pix_type is None:
            issues.error(f"Tipo de chave PIX inválido: {data['pix_key_type']}")
        else:
            data["pix_key_type"] = pix_type

    if "pix_key" not in data:
        if pix_type is not None:
            issues.warn("Tipo de chave PIX informado sem a chave")
        return
    if "pix_key_type" not in data:
        issues.warn("Chave PIX informada sem o tipo da chave")
        return
    key = data["pix_key"]
    if pix_type == "cpf":
        if is_valid_cpf(key):
            data["pix_key"] = unformat_cpf(key)
        else:
            issues.error(f"Chave PIX do tipo CPF inválida: {key}")
    elif pix_type == "email" and not is_valid_email(key):
        issues.error(f"Chave PIX do tipo email inválida: {key}")
    elif pix_type == "phone" and not 10 <= len(_digits(key)) <= 13:
        issues.error(f"Chave PIX do tipo telefone inválida: {key}")


def project_rules(data: dict[str, Any], issues: RowIssues) -> None:
    _check_modality(data, "modalidade_bolsa", issues)
    _check_positive_amount(data, "valor_mensal", issues)
    _check_date_range(data, issues)


def enrollment_rules(data: dict[str, Any], issues: RowIssues) -> None:
    _check_email(data, "user_email", issues)
    _check_modality(data, "modality", issues)
    _check_positive_amount(data, "grant_value", issues)
    if "total_installments" in data:
        installments = parse_positive_int(data["total_installments"])
        if installments is None:
            issues.error(f"Número de parcelas inválido: {data['total_installments']}")
        else:
            data["total_installments"] = installments
    _check_date_range(data, issues)


FORMAT_RULES: Mapping[ImportType, Rule] = {
    ImportType.SCHOLARS: scholar_rules,
    ImportType.BANK_ACCOUNTS: bank_account_rules,
    ImportType.PROJECTS: project_rules,
    ImportType.ENROLLMENTS: enrollment_rules,
}

_missing = set(ImportType) - set(FORMAT_RULES)
if _missing:
    raise RuntimeError(f"import types without format rules: {sorted(t.value for t in _missing)}")

from enum import Enum
from typing import Optional


class GrantModality(str, Enum):
    ICT = "ict"
    EXT = "ext"
    ENS = "ens"
    INO = "ino"
    DCT_A = "dct_a"
    DCT_B = "dct_b"
    DCT_C = "dct_c"
    POSTDOC = "postdoc"
    SENIOR = "senior"
    PROD = "prod"
    VISITOR = "visitor"

    @property
    def label(self) -> str:
        """Portuguese display label."""
        return MODALITY_LABELS[self.value]

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["GrantModality"]:
        if value is None:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


MODALITY_LABELS: dict[str, str] = {
    "ict": "Bolsa de Iniciação Científica e Tecnológica",
    "ext": "Bolsa de Extensão",
    "ens": "Bolsa de Apoio ao Ensino",
    "ino": "Bolsa de Inovação",
    "dct_a": "Bolsa de Desenvolvimento Científico e Tecnológico (Nível A)",
    "dct_b": "Bolsa de Desenvolvimento Científico e Tecnológico (Nível B)",
    "dct_c": "Bolsa de Desenvolvimento Científico e Tecnológico (Nível C)",
    "postdoc": "Bolsa de Pós-doutorado",
    "senior": "Bolsa de Cientista Sênior",
    "prod": "Bolsa de Produtividade em Pesquisa",
    "visitor": "Bolsa de Pesquisador Visitante (Estrangeiro)",
}


def get_modality_label(code: str) -> str:
    return MODALITY_LABELS.get(code, code)


class BankValidationStatus(str, Enum):
    """Review state of a stored bank account."""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    VALIDATED = "validated"
    RETURNED = "returned"

    @property
    def locked(self) -> bool:
        # Data already with (or approved by) a manager must not be overwritten by a bulk import.
        return self in (BankValidationStatus.UNDER_REVIEW, BankValidationStatus.VALIDATED)

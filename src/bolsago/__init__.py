"""BolsaGO import core: CPF handling and bulk-import classification."""

__version__ = "1.0.0"

class BolsaGOError(Exception):
    """Base exception for BolsaGO errors."""
    pass

class ConfigError(BolsaGOError):
    """Configuration loading specific errors."""
    pass

class DataSourceError(BolsaGOError):
    """Uploaded file could not be read or parsed."""
    pass

class UnknownImportTypeError(BolsaGOError, ValueError):
    """Import type name outside the fixed set."""
    pass

class LookupUnavailableError(BolsaGOError):
    """Existing-records lookup failed; the whole classification pass is void."""
    pass

class PersistenceError(BolsaGOError):
    """Record sink rejected or failed to store imported records."""
    pass

class ContractViolationError(BolsaGOError):
    """Caller broke the import contract (e.g. action attached to a new row)."""
    pass

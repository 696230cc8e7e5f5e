from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml

from bolsago.exceptions import ConfigError

class AppSettings(BaseSettings):
    name: str = "BolsaGO"
    version: str = "1.0.0"

class PathSettings(BaseSettings):
    output_dir: Path = Path("./reports")


class ImportSettings(BaseSettings):
    accepted_extensions: list[str] = [".csv", ".xlsx"]
    max_upload_mb: int = 10  # Same cap the upload widget enforces
    # Raise on a duplicate action attached to a row with status "new";
    # when False the action is dropped with a warning.
    strict_contract: bool = True
    classify_workers: int = 1
    # JSON snapshot of already persisted records, used to detect duplicates.
    existing_records_file: Optional[Path] = None

class LoggingSettings(BaseSettings):
    log_requests: bool = True
    level: str = "INFO"

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_nested_delimiter="__", env_file=".env", extra="ignore")
    app: AppSettings = AppSettings()
    paths: PathSettings = PathSettings()
    imports: ImportSettings = ImportSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        # Load from default path if exists
        default_path = Path("config/settings.yaml")
        path = config_path or (default_path if default_path.exists() else None)

        if not path:
            return cls()

        try:
            with open(path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Failed to load settings from {path}: {exc}") from exc

        return cls(**config_data)

settings = Settings.load()

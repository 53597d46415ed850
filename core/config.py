"""
Application configuration using Pydantic Settings
"""

from pathlib import Path
from typing import Optional, List, Dict, Any

import yaml
from pydantic_settings import BaseSettings

from core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Source endpoint
    SOURCE_URI: Optional[str] = None
    SOURCE_CERT_FILE: Optional[str] = None
    SOURCE_KEY_FILE: Optional[str] = None
    SOURCE_CERT_PASSWORD: Optional[str] = None

    # Target endpoint
    TARGET_URI: Optional[str] = None
    TARGET_USERNAME: Optional[str] = None
    TARGET_PASSWORD: Optional[str] = None
    TARGET_CERT_FILE: Optional[str] = None
    TARGET_KEY_FILE: Optional[str] = None
    TARGET_CERT_PASSWORD: Optional[str] = None

    # Status store endpoint
    SYNC_URI: Optional[str] = None
    SYNC_CERT_FILE: Optional[str] = None
    SYNC_KEY_FILE: Optional[str] = None
    SYNC_CERT_PASSWORD: Optional[str] = None

    # Document field mapping
    ID_FIELD: Optional[str] = None
    KEY_FIELD: str = "id"
    MODIFIED_FIELD: str = "lastModified"

    # Scheduling
    POLLING_INTERVAL_MINUTES: float = 5
    REQUEST_TIMEOUT: float = 30.0

    # Alert mail
    MAIL_SMTP_HOST: Optional[str] = None
    MAIL_SMTP_PORT: int = 25
    MAIL_SENDER: Optional[str] = None
    MAIL_RECIPIENTS: str = ""
    MAIL_SUBJ_SUCCESS: str = "Document sync recovered"
    MAIL_SUBJ_FAILURE: str = "Document sync failure"
    MAIL_BODY_SUCCESS: str = "The document sync service is able to reach its endpoints again."

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def mail_recipients(self) -> List[str]:
        return [r.strip() for r in self.MAIL_RECIPIENTS.split(",") if r.strip()]

    def require_endpoints(self) -> None:
        """Fail fast when one of the three endpoints is not configured."""
        missing = [
            name for name in ("SOURCE_URI", "TARGET_URI", "SYNC_URI")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(
                "Missing required endpoint configuration",
                context={"missing": ", ".join(missing)}
            )


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Cannot read configuration file {path}",
            context={"path": str(path)},
            original_exception=e
        )
    if not isinstance(data, dict):
        raise ConfigurationError(
            "Configuration file must contain a mapping",
            context={"path": str(path)}
        )
    return {str(key).upper(): value for key, value in data.items()}


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Build settings from the environment, optionally overridden by a YAML file.

    YAML keys are matched case-insensitively against the setting names, so
    ``source_uri: https://...`` sets ``SOURCE_URI``.
    """
    if config_path is None:
        return Settings()
    return Settings(**_read_yaml(Path(config_path)))

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_MAX_DEPTH = 100
HELPDESK_EMAIL_FUNCTION = "functions/v1/helpdesk-send-email"

# env var -> (section, key) overrides applied on top of the YAML file
_SECTION_ENV = {
    "FIELDFLOW_MAX_DEPTH": ("engine", "max_depth"),
    "FIELDFLOW_FUNCTIONS_URL": ("email", "functions_url"),
    "FIELDFLOW_SERVICE_KEY": ("email", "service_key"),
}


class EngineConfig(BaseModel):
    """Limits applied by the graph walker."""

    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, gt=0)


class HelpdeskEmailConfig(BaseModel):
    """Endpoint used by the ``send_helpdesk_email`` action.

    ``url`` defaults to the helpdesk-send-email function under
    ``functions_url`` when only the functions host is configured.
    """

    url: Optional[str] = None
    functions_url: Optional[str] = None
    service_key: Optional[str] = None
    timeout: float = Field(default=10.0, gt=0)

    @model_validator(mode="after")
    def _derive_url(self) -> "HelpdeskEmailConfig":
        if self.url is None and self.functions_url:
            self.url = f"{self.functions_url.rstrip('/')}/{HELPDESK_EMAIL_FUNCTION}"
        return self


class ApiConfig(BaseModel):
    """HTTP entry point settings."""

    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])


class FieldflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    log_level: str = "INFO"
    engine: EngineConfig = EngineConfig()
    email: HelpdeskEmailConfig = HelpdeskEmailConfig()
    api: ApiConfig = ApiConfig()

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level


def load_config(path: Optional[str] = None) -> FieldflowConfig:
    """Load configuration from YAML file and environment overrides.

    Args:
        path: Optional path to config file. Falls back to FIELDFLOW_CONFIG env
            variable or 'fieldflow.yaml' in the current directory.

    Environment variables win over the file and are validated with it, so a
    non-positive ``FIELDFLOW_MAX_DEPTH`` is rejected like one in YAML.
    """

    config_path = path or os.getenv("FIELDFLOW_CONFIG", "fieldflow.yaml")
    data: Dict[str, Any] = {}
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

    env_db_url = os.getenv("FIELDFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        data["database_url"] = env_db_url
    env_level = os.getenv("FIELDFLOW_LOG_LEVEL")
    if env_level:
        data["log_level"] = env_level
    for env_name, (section, key) in _SECTION_ENV.items():
        value = os.getenv(env_name)
        if value:
            data[section] = {**(data.get(section) or {}), key: value}
    return FieldflowConfig(**data)


def configure_logging(level: str = "INFO") -> None:
    """Route fieldflow loggers to stderr at ``level``."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

"""
Runtime configuration.

Settings come from the environment (optionally seeded from a ``.env`` file):

    AZURE_DEVOPS_ORG_NAME
    AZURE_DEVOPS_PROJECT_NAME
    AZURE_DEVOPS_PERSONAL_ACCESS_TOKEN
    AZURE_DEVOPS_API_VERSION  (default: 7.1)
    DOCGEN_TIMEZONE           (default: Asia/Jerusalem)
    DOCGEN_LOG_LEVEL          (default: INFO)
"""

from __future__ import annotations

import logging
import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

from .devops_client import DevOpsClient
from .exceptions import ConfigurationError
from .history import DEFAULT_TIMEZONE


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseModel):
    organization: str = ""
    project: str = ""
    pat: str = ""
    api_version: str = "7.1"
    timezone: str = DEFAULT_TIMEZONE
    log_level: str = "INFO"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if value not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return value

    @property
    def has_credentials(self) -> bool:
        return bool(self.organization and self.pat)

    def make_client(self) -> DevOpsClient:
        return DevOpsClient(self.organization, self.project, self.pat, self.api_version)


def load_settings(dotenv: bool = True) -> Settings:
    """Read settings from the environment.

    Raises:
        ConfigurationError: a value is invalid (unknown timezone or level).
    """
    if dotenv:
        load_dotenv()
    try:
        return Settings(
            organization=os.getenv("AZURE_DEVOPS_ORG_NAME", ""),
            project=os.getenv("AZURE_DEVOPS_PROJECT_NAME", ""),
            pat=os.getenv("AZURE_DEVOPS_PERSONAL_ACCESS_TOKEN", ""),
            api_version=os.getenv("AZURE_DEVOPS_API_VERSION") or "7.1",
            timezone=os.getenv("DOCGEN_TIMEZONE") or DEFAULT_TIMEZONE,
            log_level=os.getenv("DOCGEN_LOG_LEVEL") or "INFO",
        )
    except ValueError as e:
        raise ConfigurationError(str(e)) from e


def configure_logging(level: str = "INFO"):
    """Install a basic stderr handler (used by the MCP entry point only)."""
    logging.basicConfig(level=level, format=LOG_FORMAT)

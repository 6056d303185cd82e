"""Configuration management for the AWS VM plugin."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")
    http_level: str = Field(
        default="WARNING",
        description="Level of the HTTP client loggers (httpx, httpcore)",
    )


class ExecutionSettings(BaseModel):
    http_timeout_seconds: float = Field(default=30.0, ge=0.1, le=300)


class StorageSettings(BaseModel):
    sqlite_path: str = Field(default="./data/aws_vm_tasks.sqlite")
    sqlite_wal: bool = Field(default=True)


class AWSSettings(BaseModel):
    default_region: str = Field(default="eu-west-1")
    api_version: str = Field(
        default="2016-11-15",
        description="EC2 Query API version appended to every EC2 request body.",
    )
    host_suffix: str = Field(default="amazonaws.com")

    @field_validator("host_suffix")
    @classmethod
    def _validate_host_suffix(cls, value: str) -> str:
        candidate = value.strip().strip(".")
        if not candidate:
            raise ValueError("host_suffix must not be empty")
        return candidate


class Settings(BaseModel):
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    aws: AWSSettings = Field(default_factory=AWSSettings)


ENV_KEYS = {
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "log_http_level": "LOG_HTTP_LEVEL",
    "http_timeout": "AWS_VM_HTTP_TIMEOUT_SECONDS",
    "sqlite_path": "SQLITE_PATH",
    "sqlite_wal": "SQLITE_WAL",
    "aws_region": "AWS_VM_DEFAULT_REGION",
    "api_version": "AWS_VM_API_VERSION",
    "host_suffix": "AWS_VM_HOST_SUFFIX",
}

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path)
    if candidate.is_absolute():
        return str(candidate.resolve())
    return str((_project_root() / candidate).resolve())


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    log_file_env = os.getenv(ENV_KEYS["log_file"])

    settings_data: dict[str, object] = {
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _resolve_path(log_file_env) if log_file_env else None,
            "http_level": os.getenv(
                ENV_KEYS["log_http_level"], LoggingSettings().http_level
            ),
        },
        "execution": {
            "http_timeout_seconds": _env_float(
                ENV_KEYS["http_timeout"],
                ExecutionSettings().http_timeout_seconds,
            ),
        },
        "storage": {
            "sqlite_path": _resolve_path(
                os.getenv(ENV_KEYS["sqlite_path"], StorageSettings().sqlite_path)
            ),
            "sqlite_wal": _env_bool(ENV_KEYS["sqlite_wal"], StorageSettings().sqlite_wal),
        },
        "aws": {
            "default_region": os.getenv(ENV_KEYS["aws_region"], AWSSettings().default_region),
            "api_version": os.getenv(ENV_KEYS["api_version"], AWSSettings().api_version),
            "host_suffix": os.getenv(ENV_KEYS["host_suffix"], AWSSettings().host_suffix),
        },
    }

    try:
        return Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

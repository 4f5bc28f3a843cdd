"""Generator settings loaded from environment variables and a .env file."""

from __future__ import annotations

import keyword
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

type LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class GeneratorSettings(BaseSettings):
    """Defaults for one generation run; CLI flags take precedence."""

    model_config = SettingsConfigDict(
        env_prefix="OPENAPI_TO_FASTAPI_",
        env_file=".env",
        extra="ignore",
    )

    package_name: str = "server"
    format_output: bool = True
    log_level: LogLevel = "WARNING"
    server_host: str = "127.0.0.1"
    server_port: int = 8000

    @field_validator("package_name")
    @classmethod
    def _check_package_name(cls, value: str) -> str:
        if not value.isidentifier() or keyword.iskeyword(value):
            raise ValueError(f"package name must be a Python identifier, got {value!r}")
        return value

"""
Settings for the diaryx command-line tool.

Values come from the process environment, optionally layered over a `.env` file.
Variables already set in the environment take precedence over the file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Literal, Mapping, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError, field_validator

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]

FLAG_VALUES: Dict[str, bool] = {
    **dict.fromkeys(("1", "true", "t", "yes", "y", "on"), True),
    **dict.fromkeys(("0", "false", "f", "no", "n", "off", ""), False),
}


class ConfigurationError(RuntimeError):
    """Raised when the environment does not describe a valid configuration."""


class Settings(BaseModel):
    log_level: LogLevel = Field(alias="LOG_LEVEL", default="INFO")
    notes_path: Optional[Path] = Field(alias="DIARYX_NOTES_PATH", default=None)
    import_concurrency: int = Field(alias="IMPORT_CONCURRENCY", default=8, ge=1)
    include_hidden: bool = Field(alias="INCLUDE_HIDDEN", default=False)
    report_dir: Path = Field(alias="REPORT_DIR", default=Path("reports"))

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("include_hidden", mode="before")
    @classmethod
    def parse_flag(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        try:
            return FLAG_VALUES[value.strip().lower()]
        except KeyError:
            raise ValueError(f"expected a yes/no flag, got {value!r}") from None

    @field_validator("notes_path", mode="after")
    @classmethod
    def resolve_notes_path(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser().resolve() if value is not None else None


def read_environment(env_file: Optional[Path] = None) -> Dict[str, str]:
    """
    Merge `.env` values under the process environment.

    An explicit `env_file` must exist; otherwise `.env` in the working directory is
    used when present.
    """
    if env_file is not None and not env_file.exists():
        raise FileNotFoundError(f"Explicit .env file not found: {env_file}")
    path = env_file or Path(".env")

    values: Dict[str, str] = {}
    if path.exists():
        values.update({key: value for key, value in dotenv_values(path).items() if value is not None})
    values.update(os.environ)
    return values


def _describe(exc: ValidationError) -> str:
    return "; ".join(f"{error['loc'][0]}: {error['msg']}" for error in exc.errors())


def load_settings(env_file: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build validated settings.

    Raises
    ------
    ConfigurationError
        If a variable holds a value that fails validation.
    FileNotFoundError
        If `env_file` is given but missing.
    """
    source = read_environment(env_file) if environ is None else environ
    try:
        return Settings.model_validate(source)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {_describe(exc)}") from exc

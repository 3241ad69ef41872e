from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from diaryx.config import ConfigurationError, Settings, load_settings
from diaryx.logging_setup import JsonLogFormatter


def test_settings_defaults(clean_env):
    settings = load_settings()

    assert settings.log_level == "INFO"
    assert settings.notes_path is None
    assert settings.import_concurrency == 8
    assert settings.include_hidden is False
    assert settings.report_dir == Path("reports")


def test_settings_from_env_file(clean_env):
    (clean_env / "notes").mkdir()
    env_file = clean_env / "custom.env"
    env_file.write_text(
        "LOG_LEVEL=debug\nDIARYX_NOTES_PATH=notes\nIMPORT_CONCURRENCY=3\nINCLUDE_HIDDEN=yes\n",
        encoding="utf-8",
    )

    settings = load_settings(env_file)

    assert settings.log_level == "DEBUG"
    assert settings.notes_path == (clean_env / "notes").resolve()
    assert settings.import_concurrency == 3
    assert settings.include_hidden is True


def test_invalid_values_raise_configuration_error(clean_env, monkeypatch):
    monkeypatch.setenv("IMPORT_CONCURRENCY", "0")
    with pytest.raises(ConfigurationError, match="IMPORT_CONCURRENCY"):
        load_settings()


def test_environment_overrides_env_file_without_leaking(clean_env, monkeypatch):
    (clean_env / ".env").write_text("LOG_LEVEL=error\nREPORT_DIR=from-file\n", encoding="utf-8")
    monkeypatch.setenv("LOG_LEVEL", "warning")

    settings = load_settings()

    assert settings.log_level == "WARNING"
    assert settings.report_dir == Path("from-file")
    assert "REPORT_DIR" not in os.environ


def test_explicit_mapping_and_error_details():
    settings = load_settings(environ={"INCLUDE_HIDDEN": "on", "IMPORT_CONCURRENCY": "2"})
    assert settings.include_hidden is True
    assert settings.import_concurrency == 2

    with pytest.raises(ConfigurationError) as excinfo:
        load_settings(environ={"LOG_LEVEL": "loud", "INCLUDE_HIDDEN": "maybe"})
    message = str(excinfo.value)
    assert "LOG_LEVEL" in message
    assert "INCLUDE_HIDDEN" in message


def test_missing_explicit_env_file(clean_env):
    with pytest.raises(FileNotFoundError):
        load_settings(clean_env / "absent.env")


def test_log_level_and_bool_validation():
    with pytest.raises(ValidationError):
        Settings.model_validate({"LOG_LEVEL": "chatty"})
    with pytest.raises(ValidationError):
        Settings.model_validate({"INCLUDE_HIDDEN": "sometimes"})
    assert Settings.model_validate({"INCLUDE_HIDDEN": "off"}).include_hidden is False


def test_json_formatter_merges_payload():
    record = logging.LogRecord(
        name="diaryx.batch_import",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Failed to parse %s",
        args=("a.md",),
        exc_info=None,
    )
    record.extra_payload = {"path": Path("a.md"), "message": "clash"}

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["logger"] == "diaryx.batch_import"
    assert payload["message"] == "Failed to parse a.md"
    assert payload["path"] == "a.md"
    assert payload["extra_message"] == "clash"

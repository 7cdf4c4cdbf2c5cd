"""Tests for Settings parsing."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from phantm.config import Settings


def _settings(**values):
    return Settings(_env_file=None, **values)


def test_defaults():
    settings = _settings()

    assert settings.BULK_MAX_COUNT == 100
    assert settings.EXPECTED_TABLES == []
    assert settings.DB_CONNECT_TIMEOUT == 5
    assert settings.LOG_FORMAT == "console"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("users, projects", ["users", "projects"]),
        ('["users", "projects"]', ["users", "projects"]),
        ("", []),
        ("users,,", ["users"]),
    ],
)
def test_expected_tables_from_environment(monkeypatch, raw, expected):
    monkeypatch.setenv("EXPECTED_TABLES", raw)

    assert _settings().EXPECTED_TABLES == expected


def test_log_format_is_checked():
    assert _settings(LOG_FORMAT="JSON").LOG_FORMAT == "json"

    with pytest.raises(ValidationError):
        _settings(LOG_FORMAT="xml")


def test_config_file_under_home(tmp_path):
    settings = _settings(PHANTM_HOME=str(tmp_path))

    assert settings.config_file == Path(tmp_path) / "config.json"

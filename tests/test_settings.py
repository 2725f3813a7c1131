"""
Tests for environment-driven settings.
"""

from pathlib import Path

import pytest

from aws_mfa_assume.settings import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_SESSION_DURATION,
    DEFAULT_SESSION_NAME,
    Settings,
    load_env_file,
)

ENV_VARS = [
    "AWS_MFA_ASSUME_CONFIG",
    "AWS_MFA_ASSUME_LOG_DIR",
    "AWS_MFA_ASSUME_DEFAULT_DURATION",
    "AWS_MFA_ASSUME_SESSION_NAME",
    "AWS_MFA_ASSUME_COMMAND_TIMEOUT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestSettings:

    def test_defaults(self):
        settings = Settings.from_env()

        assert settings.config_path == DEFAULT_CONFIG_PATH
        assert settings.default_duration == DEFAULT_SESSION_DURATION == 43200
        assert settings.session_name == DEFAULT_SESSION_NAME
        assert settings.command_timeout is None

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("AWS_MFA_ASSUME_CONFIG", str(tmp_path / "p.json"))
        monkeypatch.setenv("AWS_MFA_ASSUME_LOG_DIR", str(tmp_path / "logs"))
        monkeypatch.setenv("AWS_MFA_ASSUME_DEFAULT_DURATION", "3600")
        monkeypatch.setenv("AWS_MFA_ASSUME_SESSION_NAME", "ci-session")
        monkeypatch.setenv("AWS_MFA_ASSUME_COMMAND_TIMEOUT", "30")

        settings = Settings.from_env()

        assert settings.config_path == tmp_path / "p.json"
        assert settings.log_dir == tmp_path / "logs"
        assert settings.default_duration == 3600
        assert settings.session_name == "ci-session"
        assert settings.command_timeout == 30

    def test_expands_home(self, monkeypatch):
        monkeypatch.setenv("AWS_MFA_ASSUME_CONFIG", "~/creds.json")
        assert Settings.from_env().config_path == Path.home() / "creds.json"

    @pytest.mark.parametrize("value", ["twelve hours", "0", "-60", " "])
    def test_invalid_duration_falls_back(self, monkeypatch, value):
        monkeypatch.setenv("AWS_MFA_ASSUME_DEFAULT_DURATION", value)
        assert Settings.from_env().default_duration == DEFAULT_SESSION_DURATION

    def test_invalid_timeout_means_none(self, monkeypatch):
        monkeypatch.setenv("AWS_MFA_ASSUME_COMMAND_TIMEOUT", "soon")
        assert Settings.from_env().command_timeout is None


class TestLoadEnvFile:

    def test_loads_values(self, monkeypatch, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("AWS_MFA_ASSUME_SESSION_NAME=from-dotenv\n")
        # Registers the variable with monkeypatch so the dotenv value is removed afterwards
        monkeypatch.setenv("AWS_MFA_ASSUME_SESSION_NAME", "placeholder")
        monkeypatch.delenv("AWS_MFA_ASSUME_SESSION_NAME")

        assert load_env_file(env_file) is True
        assert Settings.from_env().session_name == "from-dotenv"

    def test_missing_file(self, tmp_path):
        assert load_env_file(tmp_path / ".env") is False

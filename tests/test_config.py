"""Unit tests for configuration loading and validation."""

import pytest

from job_watch.config import (
    AppConfig,
    ConfigurationError,
    load_config,
    load_environment_config,
    parse_recipients,
)
from job_watch.config.duration import DurationParseError, parse_duration, validate_duration_range
from job_watch.config.environment import DEFAULT_DATABASE_URL

ENV_VARS = (
    "ALERT_WEBHOOK_URL",
    "EMAIL_API_KEY",
    "ALERT_EMAIL_TO",
    "ALERT_EMAIL_FROM",
    "LOG_LEVEL",
    "DATABASE_URL",
    "ENVIRONMENT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_config(path, text):
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_defaults_when_no_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        app_config, env_config = load_config()

        assert app_config.check.notify is True
        assert app_config.check.max_runtime_ms == 30_000
        assert app_config.check.scan_interval_seconds == 1800
        assert app_config.logging.format == "key-value"
        assert env_config.database_url == DEFAULT_DATABASE_URL
        assert env_config.environment == "local"

    def test_finds_config_yaml_in_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        write_config(tmp_path / "config.yaml", "check:\n  max_runtime: 2m\n")

        app_config, _ = load_config()

        assert app_config.check.max_runtime_seconds == 120

    def test_finds_nested_config_dir(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "config").mkdir()
        write_config(tmp_path / "config" / "config.yaml", "logging:\n  format: json\n")

        app_config, _ = load_config()

        assert app_config.logging.format == "json"

    def test_explicit_file(self, tmp_path):
        path = write_config(
            tmp_path / "custom.yaml",
            "check:\n  scan_interval: PT1H\n  preview_sample_size: 10\n"
            "advanced:\n  user_agent: '  Tester/2.0  '\n",
        )

        app_config, _ = load_config(path)

        assert app_config.check.scan_interval_seconds == 3600
        assert app_config.check.preview_sample_size == 10
        assert app_config.advanced.user_agent == "Tester/2.0"

    def test_explicit_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_empty_file_uses_defaults(self, tmp_path):
        app_config, _ = load_config(write_config(tmp_path / "empty.yaml", ""))
        assert app_config == AppConfig()

    def test_invalid_yaml(self, tmp_path):
        path = write_config(tmp_path / "bad.yaml", "check: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Failed to parse YAML"):
            load_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = write_config(tmp_path / "list.yaml", "- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(path)

    def test_validation_errors_are_collected(self, tmp_path):
        path = write_config(
            tmp_path / "invalid.yaml",
            "check:\n  scan_interval: 1m\n  max_runtime: forever\n"
            "notifications:\n  email_api_url: ftp://mail\n",
        )

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)

        errors = exc_info.value.errors
        assert len(errors) == 3
        assert any("scan_interval" in e and "too short" in e for e in errors)
        assert any("max_runtime" in e for e in errors)
        assert any("email_api_url" in e for e in errors)
        assert "Suggestions:" in str(exc_info.value)

    def test_warnings_emitted(self, tmp_path):
        path = write_config(
            tmp_path / "warn.yaml",
            "check:\n  notify: false\n  scan_interval: 5m\n"
            "advanced:\n  http_request_timeout: 2\n",
        )

        with pytest.warns(UserWarning) as record:
            load_config(path)

        messages = [str(w.message) for w in record]
        assert any("Notifications are disabled" in m for m in messages)
        assert any("rate limits" in m for m in messages)
        assert any("http_request_timeout" in m for m in messages)


class TestEnvironmentConfig:
    def test_reads_variables(self, monkeypatch):
        monkeypatch.setenv("ALERT_WEBHOOK_URL", "https://hooks.example.test/x")
        monkeypatch.setenv("EMAIL_API_KEY", "key")
        monkeypatch.setenv("ALERT_EMAIL_TO", "a@example.com, b@example.com")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
        monkeypatch.setenv("ENVIRONMENT", "production")

        env = load_environment_config()

        assert env.webhook_url == "https://hooks.example.test/x"
        assert env.recipients == ["a@example.com", "b@example.com"]
        assert env.log_level == "DEBUG"
        assert env.database_url == "sqlite:///:memory:"
        assert env.environment == "production"

    def test_all_optional(self):
        env = load_environment_config()

        assert env.webhook_url is None
        assert env.recipients == []
        assert env.log_level is None

    @pytest.mark.parametrize(
        "name, value, fragment",
        [
            ("ALERT_WEBHOOK_URL", "hooks.example.test", "ALERT_WEBHOOK_URL"),
            ("ALERT_EMAIL_TO", "not-an-email", "ALERT_EMAIL_TO"),
            ("ALERT_EMAIL_FROM", "nobody", "ALERT_EMAIL_FROM"),
            ("LOG_LEVEL", "LOUD", "LOG_LEVEL"),
            ("EMAIL_API_KEY", "key", "ALERT_EMAIL_TO is not"),
        ],
    )
    def test_invalid_values(self, monkeypatch, name, value, fragment):
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigurationError) as exc_info:
            load_environment_config()

        assert any(fragment in error for error in exc_info.value.errors)

    def test_load_config_propagates_environment_errors(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("LOG_LEVEL", "LOUD")

        with pytest.raises(ConfigurationError, match="Environment variable validation failed"):
            load_config()


class TestParseRecipients:
    def test_skips_blanks(self):
        assert parse_recipients(" a@example.com ,, b@example.com ") == ["a@example.com", "b@example.com"]

    def test_empty_raises(self):
        with pytest.raises(ValueError, match="No valid email"):
            parse_recipients(" , ")

    def test_invalid_raises(self):
        with pytest.raises(ValueError, match="bad-address"):
            parse_recipients("a@example.com, bad-address")


class TestParseDuration:
    @pytest.mark.parametrize(
        "value, seconds",
        [
            ("30s", 30),
            ("15m", 900),
            ("1h30m", 5400),
            ("2d", 172800),
            ("PT15M", 900),
            ("PT1H30M", 5400),
            ("P1D", 86400),
            ("pt45s", 45),
        ],
    )
    def test_valid(self, value, seconds):
        assert parse_duration(value) == seconds

    @pytest.mark.parametrize("value", ["", "soon", "15x", "0m", "PT0S", "P", "15m garbage"])
    def test_invalid(self, value):
        with pytest.raises(DurationParseError):
            parse_duration(value)

    def test_range(self):
        validate_duration_range(600)
        with pytest.raises(DurationParseError, match="too short"):
            validate_duration_range(60)
        with pytest.raises(DurationParseError, match="Max runtime too long"):
            validate_duration_range(7200, min_seconds=1, max_seconds=3600, label="Max runtime")

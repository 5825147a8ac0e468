"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from energy_tracker.config import (
    Config,
    DatabaseConfig,
    EmailConfig,
    SmtpConfig,
    ensure_directories,
    expand_env_vars,
    load_config,
)


class TestExpandEnvVars:
    """Tests for expand_env_vars function."""

    def test_single_variable(self, monkeypatch):
        """Expand single environment variable."""
        monkeypatch.setenv("TEST_VAR", "test_value")
        assert expand_env_vars("${TEST_VAR}") == "test_value"

    def test_missing_variable(self, monkeypatch):
        """Missing variable expands to empty string."""
        monkeypatch.delenv("NONEXISTENT_VAR", raising=False)
        assert expand_env_vars("${NONEXISTENT_VAR}") == ""

    def test_no_variables(self):
        assert expand_env_vars("plain text") == "plain text"


class TestDatabaseConfig:
    """Tests for the database path."""

    def test_plain_path_becomes_path(self):
        assert DatabaseConfig(path="data/energy.db").path == Path("data/energy.db")

    def test_url_kept_as_string(self, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "secret")
        config = DatabaseConfig(path="postgresql://tracker:${DB_PASSWORD}@db/energy")
        assert config.path == "postgresql://tracker:secret@db/energy"


class TestSmtpConfig:
    """Tests for SMTP credentials."""

    def test_credentials_expanded(self, monkeypatch):
        monkeypatch.setenv("SMTP_USER", "mailer")
        monkeypatch.setenv("SMTP_PASS", "hunter2")
        config = SmtpConfig(host="smtp.example.com", username="${SMTP_USER}", password="${SMTP_PASS}")
        assert config.username == "mailer"
        assert config.password == "hunter2"

    def test_host_required(self):
        with pytest.raises(ValidationError):
            SmtpConfig()


class TestConfig:
    """Tests for the root configuration."""

    def test_defaults(self):
        config = Config()
        assert config.currency == "R$"
        assert config.dev_mode is False
        assert config.bootstrap_admin.email == "admin@example.com"
        assert config.logging.format == "splunk"

    def test_can_send_email_requires_email_section(self):
        assert not Config(dev_mode=True).can_send_email

    def test_can_send_email_dev_mode(self):
        config = Config(dev_mode=True, email=EmailConfig(from_address="noreply@example.com"))
        assert config.can_send_email

    def test_can_send_email_needs_smtp_outside_dev_mode(self):
        email = EmailConfig(from_address="noreply@example.com")
        assert not Config(email=email).can_send_email
        assert Config(email=email, smtp=SmtpConfig(host="smtp.example.com")).can_send_email

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError):
            Config(logging={"format": "xml"})


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_returns_defaults(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")
        assert config == Config()

    def test_loads_yaml(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            """
dev_mode: true
currency: "US$"
database:
  path: ./data/test.db
email:
  from_address: reports@example.com
report:
  organization_name: ACME Energy
web:
  port: 9000
"""
        )

        config = load_config(config_file)

        assert config.dev_mode is True
        assert config.currency == "US$"
        assert config.database.path == Path("./data/test.db")
        assert config.email.from_address == "reports@example.com"
        assert config.report.organization_name == "ACME Energy"
        assert config.web.port == 9000

    def test_empty_file(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")
        assert load_config(config_file) == Config()


class TestEnsureDirectories:
    """Tests for ensure_directories."""

    def test_creates_directories(self, tmp_path):
        config = Config(
            dev_mode=True,
            database={"path": str(tmp_path / "db" / "energy.db")},
            output={"email_dir": str(tmp_path / "emails")},
            logging={"file": str(tmp_path / "logs" / "app.log")},
        )

        ensure_directories(config)

        assert (tmp_path / "db").is_dir()
        assert (tmp_path / "emails").is_dir()
        assert (tmp_path / "logs").is_dir()


class TestDefaultConfigPath:
    """Tests for the config path environment override."""

    def test_env_override(self, tmp_path, monkeypatch):
        config_file = tmp_path / "alt.yaml"
        config_file.write_text("currency: EUR\n")
        monkeypatch.setenv("ENERGY_TRACKER_CONFIG", str(config_file))

        assert load_config().currency == "EUR"

    def test_default(self, monkeypatch, tmp_path):
        monkeypatch.delenv("ENERGY_TRACKER_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)

        assert load_config() == Config()

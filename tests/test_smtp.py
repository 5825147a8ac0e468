"""Tests for email delivery."""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from energy_tracker.config import Config, EmailConfig, SmtpConfig
from energy_tracker.db.repository import Database
from energy_tracker.delivery.smtp import send_email_with_logging


@pytest.fixture
def dev_config(tmp_path):
    return Config(
        dev_mode=True,
        email=EmailConfig(from_address="reports@example.com"),
        output={"email_dir": str(tmp_path / "emails")},
    )


@pytest.fixture
def smtp_config():
    return Config(
        email=EmailConfig(from_address="reports@example.com"),
        smtp=SmtpConfig(host="smtp.example.com", username="user", password="pass"),
    )


class TestDevMode:
    """Tests for the dev-mode file sink."""

    def test_writes_file(self, dev_config, tmp_path):
        ok = send_email_with_logging(
            "ops@example.com", "Report 03/2024", "<p>hello</p>", config=dev_config
        )

        assert ok
        files = list((tmp_path / "emails").glob("*.html"))
        assert len(files) == 1
        content = files[0].read_text()
        assert "<!-- TO: ops@example.com -->" in content
        assert "<p>hello</p>" in content

    def test_logs_to_database(self, dev_config, temp_db):
        db = Database(temp_db)
        db.initialize()

        send_email_with_logging(
            "ops@example.com", "Report", "<p/>", config=dev_config, db=db, sent_by="admin"
        )

        logs = db.get_email_logs()
        assert logs[0].status == "dev_mode"
        assert logs[0].sent_by == "admin"


class TestSmtp:
    """Tests for SMTP delivery."""

    def test_sends_with_starttls(self, smtp_config):
        with patch("energy_tracker.delivery.smtp.smtplib.SMTP") as smtp_class:
            server = MagicMock()
            smtp_class.return_value.__enter__.return_value = server

            ok = send_email_with_logging("ops@example.com", "Report", "<p/>", config=smtp_config)

        assert ok
        smtp_class.assert_called_once_with("smtp.example.com", 587)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("user", "pass")
        assert server.sendmail.call_args[0][:2] == ("reports@example.com", ["ops@example.com"])

    def test_failure_returns_false_and_logs(self, smtp_config, temp_db):
        db = Database(temp_db)
        db.initialize()

        with patch("energy_tracker.delivery.smtp.smtplib.SMTP") as smtp_class:
            smtp_class.side_effect = smtplib.SMTPConnectError(421, "unavailable")

            ok = send_email_with_logging(
                "ops@example.com", "Report", "<p/>", config=smtp_config, db=db
            )

        assert not ok
        log = db.get_email_logs()[0]
        assert log.status == "error"
        assert "unavailable" in log.error_message

    def test_missing_smtp_config(self):
        config = Config(email=EmailConfig(from_address="reports@example.com"))

        assert not send_email_with_logging("ops@example.com", "Report", "<p/>", config=config)

    def test_config_required(self):
        with pytest.raises(ValueError):
            send_email_with_logging("ops@example.com", "Report", "<p/>")

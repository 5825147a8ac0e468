"""Report email delivery over SMTP, or to files in dev mode."""

import smtplib
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from ..config import Config
from ..db import Database
from ..logging import get_logger

log = get_logger(__name__)

STATUS_SENT = "success"
STATUS_DEV_MODE = "dev_mode"
STATUS_ERROR = "error"

SMTP_SSL_PORT = 465


def send_email_with_logging(
    to_email: str,
    subject: str,
    html_body: str,
    config: Config | None = None,
    db: Database | None = None,
    sent_by: str | None = None,
) -> bool:
    """Deliver one email and record the attempt.

    Delivery errors are logged and reported through the return value so
    that one bad recipient doesn't stop a batch.

    Args:
        to_email: Recipient address.
        subject: Subject line.
        html_body: Rendered HTML body.
        config: Application configuration.
        db: If given, the attempt is stored in email_logs.
        sent_by: Email of the user who triggered the send.

    Returns:
        True if the email was sent (or written, in dev mode).
    """
    if not config:
        raise ValueError("Configuration is required")

    error_message = None
    try:
        if config.dev_mode:
            path = _write_email_to_file(to_email, subject, html_body, config)
            status = STATUS_DEV_MODE
            log.info("email.written", recipient=to_email, path=str(path))
        else:
            _send_email_smtp(to_email, subject, html_body, config)
            status = STATUS_SENT
            log.info("email.sent", recipient=to_email)
    except (OSError, smtplib.SMTPException, ValueError) as e:
        status = STATUS_ERROR
        error_message = str(e)
        log.error("email.failed", recipient=to_email, error=error_message)

    if db is not None:
        _record_attempt(db, to_email, subject, status, sent_by, error_message)

    return status != STATUS_ERROR


def _record_attempt(
    db: Database,
    to_email: str,
    subject: str,
    status: str,
    sent_by: str | None,
    error_message: str | None,
) -> None:
    try:
        db.log_email(
            recipient=to_email,
            subject=subject,
            status=status,
            sent_by=sent_by,
            error_message=error_message,
        )
    except SQLAlchemyError as e:
        log.warning("email.log_failed", recipient=to_email, error=str(e))


def _dev_mode_path(to_email: str, config: Config) -> Path:
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    mailbox = to_email.replace("@", "_at_").replace(".", "_")
    return config.output.email_dir / f"{stamp}_{mailbox}.html"


def _write_email_to_file(
    to_email: str,
    subject: str,
    html_body: str,
    config: Config,
) -> Path:
    """Write the email as an HTML file headed by its envelope."""
    config.output.email_dir.mkdir(parents=True, exist_ok=True)
    path = _dev_mode_path(to_email, config)
    header = (
        f"<!-- TO: {to_email} -->\n"
        f"<!-- SUBJECT: {subject} -->\n"
        f"<!-- DATE: {datetime.now().isoformat()} -->\n\n"
    )
    path.write_text(header + html_body, encoding="utf-8")
    return path


def _build_message(to_email: str, subject: str, html_body: str, config: Config) -> EmailMessage:
    message = EmailMessage()
    message["From"] = formataddr((config.email.from_name, config.email.from_address))
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content("This report is best viewed in an HTML capable email client.")
    message.add_alternative(html_body, subtype="html")
    return message


def _send_email_smtp(
    to_email: str,
    subject: str,
    html_body: str,
    config: Config,
) -> None:
    """Send through the configured server: implicit TLS on 465, STARTTLS otherwise."""
    if not config.smtp or not config.email:
        raise ValueError("SMTP configuration is required to send emails")

    smtp = config.smtp
    message = _build_message(to_email, subject, html_body, config)
    use_ssl = smtp.port == SMTP_SSL_PORT
    smtp_class = smtplib.SMTP_SSL if use_ssl else smtplib.SMTP

    with smtp_class(smtp.host, smtp.port) as server:
        if smtp.use_tls and not use_ssl:
            server.starttls()
        if smtp.username and smtp.password:
            server.login(smtp.username, smtp.password)
        server.sendmail(config.email.from_address, [to_email], message.as_string())

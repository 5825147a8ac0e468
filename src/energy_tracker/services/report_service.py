"""Monthly report generation and delivery."""

from dataclasses import dataclass, field

from .. import audit
from ..config import Config
from ..db import Database
from ..db.repository import User
from ..delivery.smtp import send_email_with_logging
from ..exceptions import InvalidInputError, NotifierNotConfiguredError
from ..logging import get_logger
from ..output.email import render_report_html, report_subject
from ..processing.aggregator import filter_expenses_for_competence, group_expenses
from ..processing.permissions import require_active_user, scope_units
from ..processing.report import ReportModel, compose_report

log = get_logger(__name__)


@dataclass
class ReportResult:
    """Outcome of a report run."""

    report: ReportModel
    recipients: list[str]
    sent: int = 0
    failed: list[str] = field(default_factory=list)


class ReportService:
    """Service for composing and sending monthly reports."""

    def __init__(self, db: Database, config: Config):
        self.db = db
        self.config = config

    def build_report(
        self,
        user: User | None,
        competence_id: int | None,
        contract_id: int | None = None,
    ) -> ReportModel:
        """Compose the report of a competence over the user's units.

        Raises:
            InvalidInputError: If the competence is missing or unknown.
        """
        if competence_id is None:
            raise InvalidInputError("Competence is required for the report")

        competences = self.db.list_competences()
        units = scope_units(self.db.list_units(), user, contract_id=contract_id)
        expenses = self.db.list_expenses([u.id for u in units])
        expenses = filter_expenses_for_competence(expenses, competence_id, competences)
        groups = group_expenses(expenses, competences, self.db.list_estimates(competence_id))
        return compose_report(competence_id, competences, units, groups)

    def generate_and_send(
        self,
        user: User | None,
        competence_id: int | None,
        emails: list[str] | None,
        contract_id: int | None = None,
    ) -> ReportResult:
        """Compose the report and email it to every recipient.

        Raises:
            AccessDeniedError: If the user is not active.
            InvalidInputError: If the competence or recipients are missing.
            NotifierNotConfiguredError: If email delivery is not configured.
        """
        user = require_active_user(user)
        recipients = [e.strip() for e in emails or [] if e and e.strip()]
        if competence_id is None or not recipients:
            raise InvalidInputError("Competence and recipient emails are required")
        if not self.config.can_send_email:
            raise NotifierNotConfiguredError("Email delivery is not configured")

        report = self.build_report(user, competence_id, contract_id)
        html_body = render_report_html(report, self.config)
        subject = report_subject(report, self.config)

        result = ReportResult(report=report, recipients=recipients)
        for recipient in recipients:
            ok = send_email_with_logging(
                to_email=recipient,
                subject=subject,
                html_body=html_body,
                config=self.config,
                db=self.db,
                sent_by=user.email,
            )
            if ok:
                result.sent += 1
            else:
                result.failed.append(recipient)

        audit.log_report_sent(
            self.db,
            user,
            report.competence_label,
            recipients,
            sent=result.sent,
            failed=len(result.failed),
        )
        log.info(
            "report.sent",
            competence=report.competence_label,
            sent=result.sent,
            failed=len(result.failed),
        )
        return result

"""Audit logging for expense and report operations.

Emits structured log events that can be consumed by Splunk, Elasticsearch,
or any log aggregator that supports JSON or key=value format, and keeps a
copy in the audit_logs table for the in-app audit screen.

Configure via config.yaml:
    logging:
      enabled: true  # set to false to disable audit log events
      format: json  # or 'splunk' for key=value format
"""

from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError

from .db.repository import Competence, Database, Expense, Unit, User

# Module state
_logger: structlog.stdlib.BoundLogger | None = None
_enabled: bool = True


def configure(enabled: bool = True) -> None:
    """Configure the audit logger.

    Args:
        enabled: Whether audit log events are emitted.
    """
    global _enabled
    _enabled = enabled


def _get_logger() -> structlog.stdlib.BoundLogger:
    """Get or create the audit logger."""
    global _logger
    if _logger is None:
        _logger = structlog.get_logger("audit")
    return _logger


def _emit(
    event_type: str,
    action: str,
    **kwargs: Any,
) -> None:
    """Emit an audit log event.

    Args:
        event_type: Category of event (expense, estimate, competence, unit, report)
        action: Specific action (created, updated, deleted, sent, etc.)
        **kwargs: Additional event-specific fields
    """
    if not _enabled:
        return

    _get_logger().info(
        f"{event_type}.{action}",
        event_type=event_type,
        action=action,
        **kwargs,
    )


def _persist(
    db: Database | None,
    user: User | None,
    action: str,
    entity: str,
    description: str,
) -> None:
    """Store the entry for the audit screen; failures never abort the caller."""
    if db is None:
        return
    try:
        db.log_action(user, action, entity, description)
    except SQLAlchemyError as e:
        _get_logger().warning("audit.persist_failed", entity=entity, error=str(e))


def _user_name(user: User | None) -> str:
    return user.name if user else "system"


# Expense events
def log_expense_created(db: Database | None, user: User | None, expense: Expense, unit: Unit | None) -> None:
    unit_name = unit.name if unit else str(expense.unit_id)
    _emit(
        "expense",
        "created",
        expense_id=expense.id,
        unit=unit_name,
        amount=round(expense.amount, 2),
        user=_user_name(user),
    )
    _persist(
        db, user, "CREATE", "Expense",
        f"Created an expense of {expense.amount:.2f} for unit '{unit_name}'.",
    )


def log_expense_updated(db: Database | None, user: User | None, expense: Expense, unit: Unit | None) -> None:
    unit_name = unit.name if unit else str(expense.unit_id)
    _emit("expense", "updated", expense_id=expense.id, unit=unit_name, user=_user_name(user))
    _persist(
        db, user, "UPDATE", "Expense",
        f"Updated expense {expense.id} of unit '{unit_name}'.",
    )


def log_expense_deleted(db: Database | None, user: User | None, expense: Expense, unit: Unit | None) -> None:
    unit_name = unit.name if unit else str(expense.unit_id)
    _emit(
        "expense",
        "deleted",
        expense_id=expense.id,
        unit=unit_name,
        amount=round(expense.amount, 2),
        user=_user_name(user),
    )
    _persist(
        db, user, "DELETE", "Expense",
        f"Deleted expense {expense.id} ({expense.amount:.2f}) of unit '{unit_name}'.",
    )


# Estimate events
def log_estimates_saved(db: Database | None, user: User | None, competence_label: str, count: int) -> None:
    _emit("estimate", "saved", competence=competence_label, count=count, user=_user_name(user))
    _persist(
        db, user, "UPDATE", "Estimate",
        f"Saved {count} estimate(s) for competence {competence_label}.",
    )


# Competence events
def log_competence_created(
    db: Database | None,
    user: User | None,
    competence: Competence,
    automatic: bool = False,
) -> None:
    _emit(
        "competence",
        "created",
        competence=competence.label,
        automatic=automatic,
        user=_user_name(user),
    )
    suffix = " (automatically)" if automatic else ""
    _persist(
        db, user, "CREATE", "Competence",
        f"Created competence '{competence.label}'{suffix}.",
    )


def log_competence_deleted(db: Database | None, user: User | None, competence: Competence) -> None:
    _emit("competence", "deleted", competence=competence.label, user=_user_name(user))
    _persist(db, user, "DELETE", "Competence", f"Deleted competence '{competence.label}'.")


# Unit events
def log_unit_deleted(db: Database | None, user: User | None, unit: Unit) -> None:
    _emit("unit", "deleted", unit=unit.name, user=_user_name(user))
    _persist(
        db, user, "DELETE", "Unit",
        f"Deleted unit '{unit.name}' and its expenses.",
    )


# Report events
def log_report_sent(
    db: Database | None,
    user: User | None,
    competence_label: str,
    recipients: list[str],
    sent: int,
    failed: int,
) -> None:
    _emit(
        "report",
        "sent",
        competence=competence_label,
        recipients=",".join(recipients),
        sent=sent,
        failed=failed,
        user=_user_name(user),
    )
    _persist(
        db, user, "CREATE", "Report",
        f"Generated and sent the report of competence {competence_label} to {', '.join(recipients)}.",
    )

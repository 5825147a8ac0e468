"""Expense, estimate and competence mutations."""

from dataclasses import dataclass
from datetime import date

from .. import audit
from ..db import Database
from ..db.repository import (
    Competence,
    DistributorDetails,
    Expense,
    ExpenseType,
    RegulatoryChargeSubtype,
    User,
)
from ..exceptions import AccessDeniedError, InvalidInputError
from ..processing.competence import parse_competence_slug
from ..processing.permissions import can_access_unit, require_active_user


@dataclass
class ExpenseInput:
    """Expense as submitted by a user, with its competence as YYYY-MM."""

    unit_id: int
    competence: str
    expense_type: ExpenseType | str
    amount: float
    due_date: date
    regulatory_subtype: RegulatoryChargeSubtype | str | None = None
    distributor_details: DistributorDetails | None = None
    entry_code: str | None = None


class ExpenseService:
    """Service for mutations made by active users."""

    def __init__(self, db: Database):
        self.db = db

    def get_or_create_competence(self, user: User | None, slug: str) -> Competence:
        """Resolve a YYYY-MM string to a competence, creating it if unseen."""
        year, month = parse_competence_slug(slug)
        competence, created = self.db.get_or_create_competence(year, month)
        if created:
            audit.log_competence_created(self.db, user, competence, automatic=True)
        return competence

    def _build_expense(self, user: User, data: ExpenseInput, expense_id: int | None = None) -> Expense:
        if data.amount is None or data.amount < 0:
            raise InvalidInputError("Amount must be a non-negative number")

        try:
            expense_type = ExpenseType(data.expense_type)
        except ValueError as e:
            raise InvalidInputError(f"Invalid expense type: {data.expense_type!r}") from e

        if self.db.get_unit(data.unit_id) is None:
            raise InvalidInputError(f"Unit {data.unit_id} not found")
        if not can_access_unit(user, data.unit_id):
            raise AccessDeniedError("Access to this unit is denied")

        subtype = None
        if expense_type == ExpenseType.REGULATORY_CHARGE and data.regulatory_subtype:
            try:
                subtype = RegulatoryChargeSubtype(data.regulatory_subtype)
            except ValueError as e:
                raise InvalidInputError(
                    f"Invalid regulatory charge subtype: {data.regulatory_subtype!r}"
                ) from e

        details = data.distributor_details if expense_type == ExpenseType.DISTRIBUTOR else None

        competence = self.get_or_create_competence(user, data.competence)
        return Expense(
            id=expense_id,
            unit_id=data.unit_id,
            competence_id=competence.id,
            expense_type=expense_type,
            amount=data.amount,
            due_date=data.due_date,
            regulatory_subtype=subtype,
            distributor_details=details,
            entry_code=data.entry_code or None,
            created_by=user.id,
        )

    def create_expense(self, user: User | None, data: ExpenseInput) -> Expense:
        """Create an expense, registering its competence if needed."""
        user = require_active_user(user)
        expense = self.db.insert_expense(self._build_expense(user, data))
        audit.log_expense_created(self.db, user, expense, self.db.get_unit(expense.unit_id))
        return expense

    def update_expense(self, user: User | None, expense_id: int, data: ExpenseInput) -> Expense | None:
        """Replace an expense's fields. Returns None if it doesn't exist."""
        user = require_active_user(user)
        existing = self.db.get_expense(expense_id)
        if existing is None:
            return None
        if not can_access_unit(user, existing.unit_id):
            raise AccessDeniedError("Access to this unit is denied")

        expense = self.db.update_expense(self._build_expense(user, data, expense_id))
        if expense:
            audit.log_expense_updated(self.db, user, expense, self.db.get_unit(expense.unit_id))
        return expense

    def delete_expense(self, user: User | None, expense_id: int) -> bool:
        """Delete an expense. Returns False if it doesn't exist."""
        user = require_active_user(user)
        existing = self.db.get_expense(expense_id)
        if existing is None:
            return False
        if not can_access_unit(user, existing.unit_id):
            raise AccessDeniedError("Access to this unit is denied")

        deleted = self.db.delete_expense(expense_id)
        if deleted:
            audit.log_expense_deleted(self.db, user, existing, self.db.get_unit(existing.unit_id))
        return deleted

    def save_estimates(
        self,
        user: User | None,
        competence_id: int | None,
        amounts: dict[int, float],
    ) -> int:
        """Upsert the estimates of a competence, one per unit.

        Nothing is written unless every unit exists and is accessible.
        """
        user = require_active_user(user)
        if competence_id is None:
            raise InvalidInputError("Competence is required")
        competence = self.db.get_competence(competence_id)
        if competence is None:
            raise InvalidInputError(f"Competence {competence_id} not found")
        for unit_id, amount in amounts.items():
            if amount is None or amount < 0:
                raise InvalidInputError(f"Estimate for unit {unit_id} must be non-negative")
            if self.db.get_unit(unit_id) is None:
                raise InvalidInputError(f"Unit {unit_id} not found")
            if not can_access_unit(user, unit_id):
                raise AccessDeniedError("Access to this unit is denied")

        count = self.db.upsert_estimates(competence_id, amounts)
        audit.log_estimates_saved(self.db, user, competence.label, count)
        return count

    def create_competence(self, user: User | None, slug: str) -> Competence:
        """Register a competence explicitly.

        Raises:
            IntegrityConflictError: If it already exists.
        """
        user = require_active_user(user)
        year, month = parse_competence_slug(slug)
        competence = self.db.create_competence(year, month)
        audit.log_competence_created(self.db, user, competence)
        return competence

    def delete_competence(self, user: User | None, competence_id: int) -> bool:
        """Delete an unreferenced competence.

        Raises:
            IntegrityConflictError: If expenses are attributed to it.
        """
        user = require_active_user(user)
        competence = self.db.get_competence(competence_id)
        if competence is None:
            return False
        deleted = self.db.delete_competence(competence_id)
        if deleted:
            audit.log_competence_deleted(self.db, user, competence)
        return deleted

    def delete_unit(self, user: User | None, unit_id: int) -> bool:
        """Delete a unit and, irreversibly, all of its expenses."""
        user = require_active_user(user)
        unit = self.db.get_unit(unit_id)
        if unit is None:
            return False
        if not can_access_unit(user, unit_id):
            raise AccessDeniedError("Access to this unit is denied")
        deleted = self.db.delete_unit(unit_id)
        if deleted:
            audit.log_unit_deleted(self.db, user, unit)
        return deleted

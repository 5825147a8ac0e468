"""Pydantic schemas for API request validation."""

from datetime import date

from pydantic import BaseModel, Field

from energy_tracker.db import DistributorDetails, ExpenseType, RegulatoryChargeSubtype
from energy_tracker.services.expense_service import ExpenseInput


class DistributorDetailsIn(BaseModel):
    """Consumption and penalty fields of a distributor bill."""

    consumption_mwh: float = 0.0
    reactive_kwh: float = 0.0
    reactive_value: float = 0.0
    demand_excess_kw: float = 0.0
    demand_excess_value: float = 0.0


class ExpenseIn(BaseModel):
    """Expense create/update body."""

    unit_id: int
    competence: str = Field(description="Competence as YYYY-MM")
    expense_type: ExpenseType
    amount: float
    due_date: date
    regulatory_subtype: RegulatoryChargeSubtype | None = None
    distributor_details: DistributorDetailsIn | None = None
    entry_code: str | None = None

    def to_input(self) -> ExpenseInput:
        details = None
        if self.distributor_details is not None:
            details = DistributorDetails(**self.distributor_details.model_dump())
        return ExpenseInput(
            unit_id=self.unit_id,
            competence=self.competence,
            expense_type=self.expense_type,
            amount=self.amount,
            due_date=self.due_date,
            regulatory_subtype=self.regulatory_subtype,
            distributor_details=details,
            entry_code=self.entry_code,
        )


class EstimatesIn(BaseModel):
    """Estimates of one competence, keyed by unit id."""

    competence_id: int | None = None
    estimates: dict[int, float] = Field(default_factory=dict)


class ReportRequest(BaseModel):
    """Report generation request."""

    competence_id: int | None = None
    emails: list[str] = Field(default_factory=list)
    contract_id: int | None = None

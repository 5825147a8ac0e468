"""Data access layer using SQLAlchemy Core."""

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from ..exceptions import IntegrityConflictError
from .engine import create_db_engine, get_dialect, initialize_schema
from .tables import (
    audit_logs,
    competences,
    contracts,
    email_logs,
    estimates,
    expenses,
    units,
    user_units,
    users,
)


class MarketType(str, Enum):
    """Energy market a unit is enrolled in."""

    FREE = "free"  # "livre"
    REGULATED = "regulated"  # "cativo"


class ExpenseType(str, Enum):
    """Expense category."""

    RETAILER = "retailer"
    DISTRIBUTOR = "distributor"
    REGULATORY_CHARGE = "regulatory_charge"  # "encargo"


class RegulatoryChargeSubtype(str, Enum):
    """Subcategory of a regulatory charge expense."""

    RESERVE_ENERGY = "reserve_energy"
    ERCAP = "ercap"
    CCEE_CONTRIBUTION = "ccee_contribution"
    FINANCIAL_GUARANTEE = "financial_guarantee"


class UserRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


class UserStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass
class Contract:
    """Contract record."""

    id: int
    name: str


@dataclass
class Unit:
    """Organizational or physical site record."""

    id: int
    name: str
    market_type: MarketType
    contract_id: int | None = None

    @property
    def is_free_market(self) -> bool:
        return self.market_type == MarketType.FREE


@dataclass(frozen=True)
class Competence:
    """One calendar billing month."""

    id: int
    year: int
    month: int

    @property
    def label(self) -> str:
        """Display label, e.g. 03/2024."""
        return f"{self.month:02d}/{self.year}"

    @property
    def slug(self) -> str:
        """Input format, e.g. 2024-03."""
        return f"{self.year}-{self.month:02d}"


@dataclass
class DistributorDetails:
    """Consumption and penalty detail of a distributor bill."""

    consumption_mwh: float = 0.0
    reactive_kwh: float = 0.0
    reactive_value: float = 0.0
    demand_excess_kw: float = 0.0
    demand_excess_value: float = 0.0


@dataclass
class Expense:
    """Billed expense line item.

    ``competence_id`` is the stored competence. Regulatory charges are
    attributed by due date instead; see processing.competence.
    """

    id: int | None
    unit_id: int
    competence_id: int
    expense_type: ExpenseType
    amount: float
    due_date: date
    regulatory_subtype: RegulatoryChargeSubtype | None = None
    distributor_details: DistributorDetails | None = None
    entry_code: str | None = None
    created_by: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Estimate:
    """Estimated regulated-market cost for a (unit, competence) pair."""

    id: int | None
    unit_id: int
    competence_id: int
    amount: float


@dataclass
class User:
    """User record with the units it may see."""

    id: int
    name: str
    email: str
    role: UserRole = UserRole.USER
    status: UserStatus = UserStatus.PENDING
    accessible_unit_ids: list[int] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


@dataclass
class AuditEntry:
    """Audit log record."""

    id: int
    timestamp: str | None
    user_id: int | None
    user_name: str | None
    action: str
    entity: str
    description: str | None


@dataclass
class EmailLog:
    """Email send log record."""

    id: int | None
    recipient: str
    subject: str | None
    sent_at: str | None
    sent_by: str | None
    status: str  # success, error, dev_mode
    error_message: str | None = None


def _row_to_dict(row: Any) -> dict:
    """Convert SQLAlchemy row to dict."""
    return dict(row._mapping)


def _format_datetime(dt: datetime | str | None) -> str | None:
    """Format datetime to ISO string."""
    if dt is None:
        return None
    if isinstance(dt, str):
        return dt
    return dt.isoformat()


_DETAIL_COLUMNS = (
    "consumption_mwh",
    "reactive_kwh",
    "reactive_value",
    "demand_excess_kw",
    "demand_excess_value",
)


def _expense_values(expense: Expense) -> dict:
    """Flatten an expense into column values."""
    values = {
        "unit_id": expense.unit_id,
        "competence_id": expense.competence_id,
        "expense_type": ExpenseType(expense.expense_type).value,
        "regulatory_subtype": (
            RegulatoryChargeSubtype(expense.regulatory_subtype).value
            if expense.regulatory_subtype
            else None
        ),
        "amount": expense.amount,
        "due_date": expense.due_date,
        "entry_code": expense.entry_code,
    }
    details = expense.distributor_details
    for column in _DETAIL_COLUMNS:
        values[column] = getattr(details, column) if details else None
    return values


class Database:
    """Database connection and operations using SQLAlchemy Core."""

    def __init__(self, db_path: Path | str):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file, or full connection string.
        """
        self._engine: Engine | None = None
        self._db_path = db_path

    @property
    def engine(self) -> Engine:
        """Get or create database engine."""
        if self._engine is None:
            self._engine = create_db_engine(self._db_path)
        return self._engine

    @property
    def dialect(self) -> str:
        """Get database dialect (sqlite, postgresql)."""
        return get_dialect(self.engine)

    def close(self) -> None:
        """Close database connection."""
        if self._engine:
            self._engine.dispose()
            self._engine = None

    def initialize(self) -> None:
        """Initialize database schema."""
        initialize_schema(self.engine)

    def _upsert(self, table, values: dict, index_elements: list[str], update_columns: list[str]):
        """Create dialect-appropriate upsert statement."""
        if self.dialect == "postgresql":
            stmt = pg_insert(table).values(**values)
        else:  # sqlite
            stmt = sqlite_insert(table).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=index_elements,
            set_={col: getattr(stmt.excluded, col) for col in update_columns},
        )

    # Contract operations

    def create_contract(self, name: str) -> Contract:
        """Create a contract."""
        with self.engine.begin() as conn:
            result = conn.execute(contracts.insert().values(name=name))
            return Contract(id=result.inserted_primary_key[0], name=name)

    def list_contracts(self) -> list[Contract]:
        """List all contracts by name."""
        with self.engine.connect() as conn:
            rows = conn.execute(select(contracts).order_by(contracts.c.name)).fetchall()
            return [Contract(id=r.id, name=r.name) for r in rows]

    # Unit operations

    def _unit_from_row(self, row) -> Unit:
        return Unit(
            id=row.id,
            name=row.name,
            market_type=MarketType(row.market_type),
            contract_id=row.contract_id,
        )

    def create_unit(
        self,
        name: str,
        market_type: MarketType | str,
        contract_id: int | None = None,
    ) -> Unit:
        """Create a unit."""
        market_type = MarketType(market_type)
        with self.engine.begin() as conn:
            result = conn.execute(
                units.insert().values(
                    name=name,
                    market_type=market_type.value,
                    contract_id=contract_id,
                )
            )
            return Unit(
                id=result.inserted_primary_key[0],
                name=name,
                market_type=market_type,
                contract_id=contract_id,
            )

    def get_unit(self, unit_id: int) -> Unit | None:
        """Get unit by ID."""
        with self.engine.connect() as conn:
            row = conn.execute(select(units).where(units.c.id == unit_id)).fetchone()
            return self._unit_from_row(row) if row else None

    def get_unit_by_name(self, name: str) -> Unit | None:
        """Get unit by name."""
        with self.engine.connect() as conn:
            row = conn.execute(select(units).where(units.c.name == name)).fetchone()
            return self._unit_from_row(row) if row else None

    def list_units(self) -> list[Unit]:
        """List all units by name."""
        with self.engine.connect() as conn:
            rows = conn.execute(select(units).order_by(units.c.name)).fetchall()
            return [self._unit_from_row(r) for r in rows]

    def delete_unit(self, unit_id: int) -> bool:
        """Delete a unit together with its expenses and estimates.

        Returns:
            True if the unit existed.
        """
        with self.engine.begin() as conn:
            conn.execute(delete(expenses).where(expenses.c.unit_id == unit_id))
            conn.execute(delete(estimates).where(estimates.c.unit_id == unit_id))
            conn.execute(delete(user_units).where(user_units.c.unit_id == unit_id))
            result = conn.execute(delete(units).where(units.c.id == unit_id))
            return result.rowcount > 0

    # Competence operations

    def _competence_from_row(self, row) -> Competence:
        return Competence(id=row.id, year=row.year, month=row.month)

    def get_or_create_competence(self, year: int, month: int) -> tuple[Competence, bool]:
        """Get existing competence or create new one.

        Returns:
            Tuple of (competence, created).
        """
        existing = self.find_competence(year, month)
        if existing:
            return existing, False

        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    competences.insert().values(year=year, month=month, created_at=datetime.now())
                )
                return Competence(id=result.inserted_primary_key[0], year=year, month=month), True
        except IntegrityError:
            # Another writer created it first
            existing = self.find_competence(year, month)
            if existing is None:
                raise
            return existing, False

    def create_competence(self, year: int, month: int) -> Competence:
        """Create a competence explicitly.

        Raises:
            IntegrityConflictError: If the competence already exists.
        """
        competence, created = self.get_or_create_competence(year, month)
        if not created:
            raise IntegrityConflictError(f"Competence {competence.label} already exists")
        return competence

    def find_competence(self, year: int, month: int) -> Competence | None:
        """Get competence by year and month."""
        with self.engine.connect() as conn:
            stmt = select(competences).where(
                competences.c.year == year,
                competences.c.month == month,
            )
            row = conn.execute(stmt).fetchone()
            return self._competence_from_row(row) if row else None

    def get_competence(self, competence_id: int) -> Competence | None:
        """Get competence by ID."""
        with self.engine.connect() as conn:
            stmt = select(competences).where(competences.c.id == competence_id)
            row = conn.execute(stmt).fetchone()
            return self._competence_from_row(row) if row else None

    def list_competences(self) -> list[Competence]:
        """List all competences, newest first."""
        with self.engine.connect() as conn:
            stmt = select(competences).order_by(
                competences.c.year.desc(), competences.c.month.desc()
            )
            return [self._competence_from_row(r) for r in conn.execute(stmt).fetchall()]

    def count_competence_references(self, competence_id: int) -> int:
        """Count expenses attributed to a competence.

        Counts direct references plus regulatory charges whose due date
        falls in the competence's month.
        """
        competence = self.get_competence(competence_id)
        if competence is None:
            return 0

        first_day = date(competence.year, competence.month, 1)
        if competence.month == 12:
            next_month = date(competence.year + 1, 1, 1)
        else:
            next_month = date(competence.year, competence.month + 1, 1)

        with self.engine.connect() as conn:
            stmt = select(func.count()).select_from(expenses).where(
                or_(
                    expenses.c.competence_id == competence_id,
                    (expenses.c.expense_type == ExpenseType.REGULATORY_CHARGE.value)
                    & (expenses.c.due_date >= first_day)
                    & (expenses.c.due_date < next_month),
                )
            )
            return conn.execute(stmt).scalar() or 0

    def delete_competence(self, competence_id: int) -> bool:
        """Delete a competence that no expense references.

        Returns:
            True if the competence existed.

        Raises:
            IntegrityConflictError: If expenses are attributed to it.
        """
        references = self.count_competence_references(competence_id)
        if references > 0:
            raise IntegrityConflictError(
                f"Competence is referenced by {references} expense(s) and cannot be deleted"
            )
        with self.engine.begin() as conn:
            conn.execute(delete(estimates).where(estimates.c.competence_id == competence_id))
            result = conn.execute(delete(competences).where(competences.c.id == competence_id))
            return result.rowcount > 0

    # Expense operations

    def _expense_from_row(self, row) -> Expense:
        row_dict = _row_to_dict(row)
        details = None
        if any(row_dict[c] is not None for c in _DETAIL_COLUMNS):
            details = DistributorDetails(
                **{c: row_dict[c] or 0.0 for c in _DETAIL_COLUMNS}
            )
        subtype = row_dict["regulatory_subtype"]
        return Expense(
            id=row_dict["id"],
            unit_id=row_dict["unit_id"],
            competence_id=row_dict["competence_id"],
            expense_type=ExpenseType(row_dict["expense_type"]),
            amount=row_dict["amount"],
            due_date=row_dict["due_date"],
            regulatory_subtype=RegulatoryChargeSubtype(subtype) if subtype else None,
            distributor_details=details,
            entry_code=row_dict["entry_code"],
            created_by=row_dict["created_by"],
            created_at=_format_datetime(row_dict["created_at"]),
            updated_at=_format_datetime(row_dict["updated_at"]),
        )

    def insert_expense(self, expense: Expense) -> Expense:
        """Insert an expense and return it with its ID and timestamps."""
        now = datetime.now()
        values = _expense_values(expense)
        with self.engine.begin() as conn:
            result = conn.execute(
                expenses.insert().values(
                    **values,
                    created_by=expense.created_by,
                    created_at=now,
                    updated_at=now,
                )
            )
            return replace(
                expense,
                id=result.inserted_primary_key[0],
                created_at=now.isoformat(),
                updated_at=now.isoformat(),
            )

    def update_expense(self, expense: Expense) -> Expense | None:
        """Update an expense, refreshing its updated-at timestamp.

        Returns:
            The updated expense, or None if it doesn't exist.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                update(expenses)
                .where(expenses.c.id == expense.id)
                .values(**_expense_values(expense), updated_at=datetime.now())
            )
            if result.rowcount == 0:
                return None
        return self.get_expense(expense.id)

    def delete_expense(self, expense_id: int) -> bool:
        """Delete an expense. Returns True if it existed."""
        with self.engine.begin() as conn:
            result = conn.execute(delete(expenses).where(expenses.c.id == expense_id))
            return result.rowcount > 0

    def get_expense(self, expense_id: int) -> Expense | None:
        """Get expense by ID."""
        with self.engine.connect() as conn:
            row = conn.execute(select(expenses).where(expenses.c.id == expense_id)).fetchone()
            return self._expense_from_row(row) if row else None

    def list_expenses(self, unit_ids: list[int] | None = None) -> list[Expense]:
        """List expenses, optionally restricted to a set of units.

        An empty ``unit_ids`` list returns no expenses.
        """
        stmt = select(expenses).order_by(expenses.c.due_date.desc(), expenses.c.id)
        if unit_ids is not None:
            if not unit_ids:
                return []
            stmt = stmt.where(expenses.c.unit_id.in_(unit_ids))
        with self.engine.connect() as conn:
            return [self._expense_from_row(r) for r in conn.execute(stmt).fetchall()]

    # Estimate operations

    def upsert_estimates(self, competence_id: int, amounts: dict[int, float]) -> int:
        """Insert or update estimates for a competence in one transaction.

        Args:
            competence_id: Competence the estimates belong to.
            amounts: Mapping of unit ID to estimated amount.

        Returns:
            Number of estimates written.
        """
        now = datetime.now()
        with self.engine.begin() as conn:
            for unit_id, amount in amounts.items():
                stmt = self._upsert(
                    estimates,
                    {
                        "unit_id": unit_id,
                        "competence_id": competence_id,
                        "amount": amount,
                        "updated_at": now,
                    },
                    index_elements=["unit_id", "competence_id"],
                    update_columns=["amount", "updated_at"],
                )
                conn.execute(stmt)
        return len(amounts)

    def list_estimates(self, competence_id: int | None = None) -> list[Estimate]:
        """List estimates, optionally for a single competence."""
        stmt = select(estimates).order_by(estimates.c.id)
        if competence_id is not None:
            stmt = stmt.where(estimates.c.competence_id == competence_id)
        with self.engine.connect() as conn:
            return [
                Estimate(
                    id=r.id,
                    unit_id=r.unit_id,
                    competence_id=r.competence_id,
                    amount=r.amount,
                )
                for r in conn.execute(stmt).fetchall()
            ]

    # User operations

    def _user_from_row(self, conn, row) -> User:
        unit_rows = conn.execute(
            select(user_units.c.unit_id)
            .where(user_units.c.user_id == row.id)
            .order_by(user_units.c.unit_id)
        ).fetchall()
        return User(
            id=row.id,
            name=row.name,
            email=row.email,
            role=UserRole(row.role),
            status=UserStatus(row.status),
            accessible_unit_ids=[r.unit_id for r in unit_rows],
        )

    def create_user(
        self,
        name: str,
        email: str,
        role: UserRole | str = UserRole.USER,
        status: UserStatus | str = UserStatus.PENDING,
        accessible_unit_ids: list[int] | None = None,
    ) -> User:
        """Create a user."""
        role = UserRole(role)
        status = UserStatus(status)
        with self.engine.begin() as conn:
            result = conn.execute(
                users.insert().values(
                    name=name,
                    email=email,
                    role=role.value,
                    status=status.value,
                )
            )
            user_id = result.inserted_primary_key[0]
            for unit_id in accessible_unit_ids or []:
                conn.execute(user_units.insert().values(user_id=user_id, unit_id=unit_id))
        return User(
            id=user_id,
            name=name,
            email=email,
            role=role,
            status=status,
            accessible_unit_ids=list(accessible_unit_ids or []),
        )

    def get_user(self, user_id: int) -> User | None:
        """Get user by ID."""
        with self.engine.connect() as conn:
            row = conn.execute(select(users).where(users.c.id == user_id)).fetchone()
            return self._user_from_row(conn, row) if row else None

    def get_user_by_email(self, email: str) -> User | None:
        """Get user by email."""
        with self.engine.connect() as conn:
            row = conn.execute(select(users).where(users.c.email == email)).fetchone()
            return self._user_from_row(conn, row) if row else None

    def list_users(self) -> list[User]:
        """List all users by name."""
        with self.engine.connect() as conn:
            rows = conn.execute(select(users).order_by(users.c.name)).fetchall()
            return [self._user_from_row(conn, r) for r in rows]

    def set_user_units(self, user_id: int, unit_ids: list[int]) -> None:
        """Replace the set of units a user may see."""
        with self.engine.begin() as conn:
            conn.execute(delete(user_units).where(user_units.c.user_id == user_id))
            for unit_id in sorted(set(unit_ids)):
                conn.execute(user_units.insert().values(user_id=user_id, unit_id=unit_id))

    def ensure_admin(self, name: str, email: str) -> User:
        """Get or create the active bootstrap administrator."""
        existing = self.get_user_by_email(email)
        if existing:
            return existing
        return self.create_user(name, email, role=UserRole.ADMIN, status=UserStatus.ACTIVE)

    # Audit log operations

    def log_action(
        self,
        user: User | None,
        action: str,
        entity: str,
        description: str,
    ) -> int:
        """Persist an audit log entry."""
        with self.engine.begin() as conn:
            result = conn.execute(
                audit_logs.insert().values(
                    timestamp=datetime.now(),
                    user_id=user.id if user else None,
                    user_name=user.name if user else "system",
                    action=action,
                    entity=entity,
                    description=description,
                )
            )
            return result.inserted_primary_key[0]

    def get_audit_logs(self, page: int = 1, limit: int = 15) -> dict:
        """Get a page of audit log entries, newest first.

        Returns:
            Dict with logs, total_logs, total_pages and current_page.
        """
        page = max(page, 1)
        limit = max(limit, 1)
        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(audit_logs)).scalar() or 0
            stmt = (
                select(audit_logs)
                .order_by(audit_logs.c.timestamp.desc(), audit_logs.c.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            logs = [
                AuditEntry(
                    id=r.id,
                    timestamp=_format_datetime(r.timestamp),
                    user_id=r.user_id,
                    user_name=r.user_name,
                    action=r.action,
                    entity=r.entity,
                    description=r.description,
                )
                for r in conn.execute(stmt).fetchall()
            ]
        return {
            "logs": logs,
            "total_logs": total,
            "total_pages": math.ceil(total / limit),
            "current_page": page,
        }

    # Email log operations

    def log_email(
        self,
        recipient: str,
        subject: str | None,
        status: str,
        sent_by: str | None = None,
        error_message: str | None = None,
    ) -> int:
        """Record an email delivery attempt."""
        with self.engine.begin() as conn:
            result = conn.execute(
                email_logs.insert().values(
                    recipient=recipient,
                    subject=subject,
                    status=status,
                    sent_by=sent_by,
                    error_message=error_message,
                    sent_at=datetime.now(),
                )
            )
            return result.inserted_primary_key[0]

    def get_email_logs(self, limit: int = 50) -> list[EmailLog]:
        """Get recent email log entries, newest first."""
        with self.engine.connect() as conn:
            stmt = select(email_logs).order_by(email_logs.c.id.desc()).limit(limit)
            return [
                EmailLog(
                    id=r.id,
                    recipient=r.recipient,
                    subject=r.subject,
                    sent_at=_format_datetime(r.sent_at),
                    sent_by=r.sent_by,
                    status=r.status,
                    error_message=r.error_message,
                )
                for r in conn.execute(stmt).fetchall()
            ]

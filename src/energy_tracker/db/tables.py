"""SQLAlchemy table definitions for energy_tracker."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
)

# Use naming convention for constraints (helps with migrations)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

SCHEMA_VERSION = 1

# Schema version tracking
schema_version = Table(
    "schema_version",
    metadata,
    Column("version", Integer, primary_key=True),
    Column("applied_at", DateTime, server_default=func.now()),
)

contracts = Table(
    "contracts",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(200), nullable=False),
    Column("created_at", DateTime, server_default=func.now()),
)

units = Table(
    "units",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(200), nullable=False),
    Column(
        "contract_id",
        Integer,
        ForeignKey("contracts.id", ondelete="SET NULL"),
    ),
    Column("market_type", String(20), nullable=False),
    Column("created_at", DateTime, server_default=func.now()),
    CheckConstraint(
        "market_type IN ('free', 'regulated')",
        name="market_type_check",
    ),
)

# Billing months
competences = Table(
    "competences",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("year", Integer, nullable=False),
    Column("month", Integer, nullable=False),
    Column("created_at", DateTime, server_default=func.now()),
    UniqueConstraint("year", "month", name="uq_competences_year_month"),
    CheckConstraint("month BETWEEN 1 AND 12", name="month_check"),
)

expenses = Table(
    "expenses",
    metadata,
    Column("id", Integer, primary_key=True),
    Column(
        "unit_id",
        Integer,
        ForeignKey("units.id", ondelete="CASCADE"),
        nullable=False,
    ),
    # No FK: deletion is guarded in the repository, including references
    # that only exist through due-date resolution.
    Column("competence_id", Integer, nullable=False),
    Column("expense_type", String(30), nullable=False),
    Column("regulatory_subtype", String(40)),
    Column("amount", Float, nullable=False),
    Column("due_date", Date, nullable=False),
    Column("entry_code", String(100)),
    # Distributor details (only for distributor expenses)
    Column("consumption_mwh", Float),
    Column("reactive_kwh", Float),
    Column("reactive_value", Float),
    Column("demand_excess_kw", Float),
    Column("demand_excess_value", Float),
    Column("created_by", Integer),
    Column("created_at", DateTime, server_default=func.now()),
    Column("updated_at", DateTime, server_default=func.now()),
    CheckConstraint(
        "expense_type IN ('retailer', 'distributor', 'regulatory_charge')",
        name="expense_type_check",
    ),
    CheckConstraint("amount >= 0", name="amount_check"),
    Index("ix_expenses_unit", "unit_id"),
    Index("ix_expenses_competence", "competence_id"),
)

# Regulated-market cost estimates, one per (unit, competence)
estimates = Table(
    "estimates",
    metadata,
    Column("id", Integer, primary_key=True),
    Column(
        "unit_id",
        Integer,
        ForeignKey("units.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("competence_id", Integer, nullable=False),
    Column("amount", Float, nullable=False),
    Column("updated_at", DateTime, server_default=func.now()),
    UniqueConstraint("unit_id", "competence_id", name="uq_estimates_unit_competence"),
)

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(200), nullable=False),
    Column("email", String(254), nullable=False, unique=True),
    Column("role", String(20), nullable=False, server_default="user"),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("created_at", DateTime, server_default=func.now()),
    Column("updated_at", DateTime, server_default=func.now()),
    CheckConstraint("role IN ('admin', 'manager', 'user')", name="role_check"),
    CheckConstraint(
        "status IN ('pending', 'active', 'inactive')",
        name="status_check",
    ),
)

# Units a non-admin user may see
user_units = Table(
    "user_units",
    metadata,
    Column(
        "user_id",
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "unit_id",
        Integer,
        ForeignKey("units.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)

audit_logs = Table(
    "audit_logs",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("timestamp", DateTime, server_default=func.now()),
    Column("user_id", Integer),
    Column("user_name", String(200)),
    Column("action", String(20), nullable=False),  # CREATE, UPDATE, DELETE
    Column("entity", String(50), nullable=False),
    Column("description", Text),
    Index("ix_audit_logs_timestamp", "timestamp"),
)

email_logs = Table(
    "email_logs",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("recipient", String(254), nullable=False),
    Column("subject", String(500)),
    Column("sent_at", DateTime, server_default=func.now()),
    Column("sent_by", String(200)),
    Column("status", String(20), nullable=False),
    Column("error_message", Text),
    CheckConstraint(
        "status IN ('success', 'error', 'dev_mode')",
        name="email_status_check",
    ),
)

"""Database layer with SQLAlchemy Core abstraction.

Supports SQLite (default) and PostgreSQL for production.
"""

from .engine import create_db_engine, get_dialect, initialize_schema
from .repository import (
    AuditEntry,
    Competence,
    Contract,
    Database,
    DistributorDetails,
    EmailLog,
    Estimate,
    Expense,
    ExpenseType,
    MarketType,
    RegulatoryChargeSubtype,
    Unit,
    User,
    UserRole,
    UserStatus,
)
from .tables import SCHEMA_VERSION, metadata

__all__ = [
    "AuditEntry",
    "Competence",
    "Contract",
    "Database",
    "DistributorDetails",
    "EmailLog",
    "Estimate",
    "Expense",
    "ExpenseType",
    "MarketType",
    "RegulatoryChargeSubtype",
    "SCHEMA_VERSION",
    "Unit",
    "User",
    "UserRole",
    "UserStatus",
    "create_db_engine",
    "get_dialect",
    "initialize_schema",
    "metadata",
]

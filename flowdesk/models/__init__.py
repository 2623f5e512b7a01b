"""
Data Models Package

This package contains all Pydantic models used by the ledger.
Everything held in memory or written to storage conforms to these schemas.
"""

from flowdesk.models.ledger import (
    SNAPSHOT_VERSION,
    Client,
    ClientCreate,
    ClientUpdate,
    Expense,
    ExpenseCreate,
    LedgerSnapshot,
    PaymentMetadata,
    PaymentStatus,
    PlanTier,
    ProfileUpdate,
    ValidationIssue,
)
from flowdesk.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "SNAPSHOT_VERSION",
    "Client",
    "ClientCreate",
    "ClientUpdate",
    "Expense",
    "ExpenseCreate",
    "LedgerSnapshot",
    "PaymentMetadata",
    "PaymentStatus",
    "PlanTier",
    "ProfileUpdate",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]

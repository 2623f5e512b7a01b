"""
Audit Models for the Client Ledger

Every mutation of the ledger, every load and every failed persist produces
an audit event. This provides:
1. A trail of what changed in the ledger and when
2. Debugging information when a save silently fails
3. Raw material for an activity feed

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Clients
    CLIENT_ADDED = "client_added"
    CLIENT_UPDATED = "client_updated"
    CLIENT_DELETED = "client_deleted"
    PAYMENT_TOGGLED = "payment_toggled"

    # Expenses
    EXPENSE_ADDED = "expense_added"
    EXPENSE_DELETED = "expense_deleted"

    # Profile and identity
    PROFILE_UPDATED = "profile_updated"
    IDENTITY_SWITCHED = "identity_switched"

    # Persistence
    LEDGER_LOADED = "ledger_loaded"
    PERSIST_FAILED = "persist_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of the ledger's audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'client', 'expense', 'ledger')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    identity: str = Field(
        default="",
        description="Ledger identity (email) the event happened under"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "identity": self.identity,
            "description": self.description,
            "details": self.details,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.client_added(client_id, name, identity)
        event = AuditEventBuilder.payment_toggled(client_id, "2024-03", "paid", identity)
    """

    @staticmethod
    def client_added(client_id: str, name: str, identity: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLIENT_ADDED,
            entity_type="client",
            entity_id=client_id,
            identity=identity,
            description=f"Client added: {name}",
            details={"name": name},
        )

    @staticmethod
    def client_updated(
        client_id: str,
        fields: list[str],
        identity: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLIENT_UPDATED,
            entity_type="client",
            entity_id=client_id,
            identity=identity,
            description=f"Client updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
        )

    @staticmethod
    def client_deleted(client_id: str, months_dropped: int, identity: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLIENT_DELETED,
            entity_type="client",
            entity_id=client_id,
            identity=identity,
            description="Client deleted with its payment history",
            details={"months_dropped": months_dropped},
        )

    @staticmethod
    def payment_toggled(
        client_id: str,
        month_key: str,
        status: str,
        identity: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_TOGGLED,
            entity_type="client",
            entity_id=client_id,
            identity=identity,
            description=f"Payment for {month_key} marked {status}",
            details={"month_key": month_key, "status": status},
        )

    @staticmethod
    def expense_added(expense_id: str, title: str, identity: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=expense_id,
            identity=identity,
            description=f"Expense added: {title}",
            details={"title": title},
        )

    @staticmethod
    def expense_deleted(expense_id: str, identity: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            identity=identity,
            description="Expense deleted",
        )

    @staticmethod
    def profile_updated(fields: list[str], identity: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_UPDATED,
            entity_type="profile",
            identity=identity,
            description=f"Profile updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
        )

    @staticmethod
    def identity_switched(previous: str, current: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IDENTITY_SWITCHED,
            entity_type="ledger",
            identity=current,
            description="Ledger identity changed; in-memory ledger discarded",
            details={"previous_identity": previous},
        )

    @staticmethod
    def ledger_loaded(
        identity: str,
        found: bool,
        clients: int,
        expenses: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_LOADED,
            entity_type="ledger",
            identity=identity,
            description="Stored ledger loaded" if found else "No stored ledger; starting empty",
            details={"found": found, "clients": clients, "expenses": expenses},
        )

    @staticmethod
    def persist_failed(identity: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSIST_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            identity=identity,
            description="Ledger could not be saved; in-memory state kept",
        )

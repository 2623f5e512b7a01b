"""
Ledger exceptions.

These are raised synchronously from ledger mutations so the caller (the UI
layer) can reject input or re-prompt. Storage failures are NOT here: they
never reach mutation callers (see flowdesk.services.storage.interface).
"""

from typing import Optional

from flowdesk.models.ledger import ValidationIssue


class LedgerError(Exception):
    """Base exception for ledger mutations."""
    pass


class ValidationError(LedgerError):
    """Caller-supplied fields violate domain constraints."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.issues = issues or []

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]


class NotFoundError(LedgerError):
    """A mutation referenced an id with no matching entity."""

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(f"{entity_type} not found: {entity_id}")
        self.entity_type = entity_type
        self.entity_id = entity_id

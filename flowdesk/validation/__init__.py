"""Input validation package."""

from flowdesk.validation.validator import LedgerValidator, issues_from_schema_error

__all__ = ["LedgerValidator", "issues_from_schema_error"]

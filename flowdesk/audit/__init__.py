"""Audit logging package."""

from flowdesk.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]

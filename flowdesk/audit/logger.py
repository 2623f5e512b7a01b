"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged.
This provides:
1. Traceability of what changed and under which identity
2. Debugging capability when saves fail silently
3. A recent-history feed the UI can show

The audit logger:
- Is synchronous, because ledger mutations are synchronous
- Gracefully handles failures (a logging error never breaks a mutation)
- Keeps a bounded in-memory history; nothing is persisted
"""

import logging
from collections import deque
from typing import Optional

import structlog

from flowdesk.models.audit import AuditEvent, AuditEventType


def configure_logging(level: str = "INFO") -> None:
    """
    Configure structlog for JSON logs through the standard library.

    Called once by the application root; safe to call again.
    """
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service for the ledger.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An in-memory ring buffer (for an activity feed)
    """

    def __init__(self, history_size: int = 200):
        """
        Initialize audit logger.

        Args:
            history_size: How many events to keep in memory. 0 keeps none.
        """
        self._history: deque[AuditEvent] = deque(maxlen=history_size)
        self._logger = structlog.get_logger(__name__)

    def log(self, event: AuditEvent) -> AuditEvent:
        """
        Log an audit event.

        Never raises; a failing log sink is reported once and ignored.
        """
        self._history.append(event)
        try:
            log_dict = event.to_log_dict()
            if event.severity.value == "error":
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            elif event.severity.value == "debug":
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Last resort: stdlib logging, no structlog processors involved
            logging.getLogger(__name__).warning("audit log sink failed: %s", e)
        return event

    def recent(
        self,
        limit: int = 50,
        event_type: Optional[AuditEventType] = None,
    ) -> list[AuditEvent]:
        """Most recent events first, optionally filtered by type."""
        events = [
            e for e in reversed(self._history)
            if event_type is None or e.event_type == event_type
        ]
        return events[:limit]

    def clear(self) -> None:
        self._history.clear()

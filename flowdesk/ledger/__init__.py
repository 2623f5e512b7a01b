"""
Ledger Package

The in-memory ledger store, its persist-on-write scheduler and read-only
summaries.
"""

from flowdesk.ledger.persistence import (
    PersistScheduler,
    dropped_entities,
    snapshot_from_payload,
)
from flowdesk.ledger.store import LedgerStore
from flowdesk.ledger.summary import MonthSummary, client_rows_csv, month_summary

__all__ = [
    "LedgerStore",
    "PersistScheduler",
    "dropped_entities",
    "snapshot_from_payload",
    "MonthSummary",
    "client_rows_csv",
    "month_summary",
]

"""
Monthly summaries and CSV export of a ledger.

Read-only views: nothing here mutates or persists the ledger.
"""

import csv
import io
from typing import Union

from pydantic import BaseModel, Field

from flowdesk.models.ledger import LedgerSnapshot
from flowdesk.utils.dates import get_month_key, parse_month_key
from flowdesk.utils.money import format_brl


CSV_COLUMNS = ["name", "days", "time", "value", "status"]


class MonthSummary(BaseModel):
    """Money in and out of one month."""

    month_key: str
    received: float = Field(default=0.0, description="Sum of the amounts paid this month")
    to_receive: float = Field(default=0.0, description="Values of clients not yet paid")
    expenses: float = Field(default=0.0, description="Expenses dated in the month")
    paid_clients: int = 0
    pending_clients: int = 0

    @property
    def net(self) -> float:
        return self.received - self.expenses


def _as_snapshot(ledger) -> LedgerSnapshot:
    # Accepts a LedgerStore or an already taken snapshot
    return ledger if isinstance(ledger, LedgerSnapshot) else ledger.snapshot()


def month_summary(ledger, month_key: str) -> MonthSummary:
    """
    Totals of one month.

    A paid month counts the amount snapshotted when it was marked paid,
    falling back to the client's current value for records that predate
    value snapshots. Recurring expenses are counted only in the month they
    are dated in.

    Raises:
        ValueError: If ``month_key`` is not a valid month
    """
    year, month = parse_month_key(month_key)
    snapshot = _as_snapshot(ledger)
    summary = MonthSummary(month_key=month_key)

    for client in snapshot.clients:
        record = client.payment_for(month_key)
        if record is not None and record.is_paid:
            summary.received += record.value if record.value is not None else client.value
            summary.paid_clients += 1
        else:
            summary.to_receive += client.value
            summary.pending_clients += 1

    for expense in snapshot.expenses:
        if (expense.date.year, expense.date.month) == (year, month):
            summary.expenses += expense.value

    return summary


def client_rows_csv(ledger, month_key: Union[str, None] = None) -> str:
    """CSV of every client with its status for the month (current month by default)."""
    month_key = month_key or get_month_key()
    parse_month_key(month_key)
    snapshot = _as_snapshot(ledger)

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS)
    writer.writeheader()
    for client in snapshot.clients:
        writer.writerow({
            "name": client.name,
            "days": ", ".join(client.days),
            "time": client.time or "",
            "value": format_brl(client.value),
            "status": "paid" if client.is_paid(month_key) else "pending",
        })
    return buffer.getvalue()

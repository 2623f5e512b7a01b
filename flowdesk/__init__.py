"""
Flowdesk Ledger - Source Package

Client payment ledger for a personal bookkeeping app: recurring client
obligations, ad-hoc expenses and the user's profile, persisted locally
per user identity.

DESIGN PRINCIPLES:
1. The in-memory ledger is the source of truth for the session
2. Every mutation persists the whole ledger, never a delta
3. Persistence failures degrade silently, bad input fails loudly
4. Every mutation is auditable
5. Storage backend is swappable
"""

__version__ = "1.0.0"
__author__ = "Flowdesk Team"

"""
AgriFund Kernel - project lifecycle, funding and milestone orchestration.

A transactional core for the agricultural-investment marketplace with:
- Guarded project state machine (pending -> funding -> in production -> completed)
- Append-only funding ledger with derived aggregates (no stored balances)
- Per-culture milestone calendars materialized at production launch
- Milestone payment-request workflow
- Typed errors and structured logging
"""

__version__ = "0.1.0"

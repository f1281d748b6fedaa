"""
Bursary Kernel - financial ledger and invoice settlement engine

Tracks what each invoice owes, what was paid and refunded, derives invoice
status, and mirrors settled cash into an operational cash/bank ledger with:
- Idempotent invoice postings
- Maker / checker / approver workflow for manual entries
- Period locks
- Budget-vs-actual and cash book reporting
"""

__version__ = "0.1.0"

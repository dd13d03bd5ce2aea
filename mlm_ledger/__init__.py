"""
MLM ledger core.

Commission/points ledger for the distributor network: order confirmation,
sponsor-chain payouts, monthly activation audits, commission purges and
the shared monthly coin cap.
"""

__version__ = "1.0.0"

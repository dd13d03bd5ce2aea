"""
Services.

Business logic layer: commission distribution, activation audits, purges,
the monthly coin cap, recalculation and withdrawals.
"""

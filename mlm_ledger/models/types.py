"""
Standard type definitions for database models.

Provides consistent types for monetary and points fields across all models.
"""

from sqlalchemy import DECIMAL

# Currency amounts, balances, commission amounts
# Precision: 18 digits total, 2 after decimal point
# Commission amounts are credited in whole units; two decimals keep
# legacy fractional balances readable
MoneyType = DECIMAL(18, 2)

# Points (personal, group, per-level commission points)
# Precision: 18 digits total, 2 after decimal point
# Restaurant commissions produce fractional points (5% of order points)
PointsType = DECIMAL(18, 2)

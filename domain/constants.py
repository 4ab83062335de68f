"""
Business constants for the tire installment programme (amounts in LKR).

The registration fee is paid once per customer and is never part of a sale's
balance, so it does not appear here.
"""

from __future__ import annotations

from decimal import Decimal

# Lowest up-front payment accepted when a sale is recorded.
MIN_INITIAL_PAYMENT = Decimal("610.00")

# Fixed per sale, regardless of quantity.
SERVICE_CHARGE = Decimal("700.00")

DAILY_INSTALLMENT = Decimal("57.00")

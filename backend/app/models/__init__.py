"""
Database models package.
"""

from app.models.account import Account, AccountType
from app.models.category import Category
from app.models.transaction import Transaction
from app.models.recurring import RecurringExpense, ExpenseType, Priority, ConfidenceLevel, Trend
from app.models.expense_correction import ExpenseCorrection
from app.models.anomaly import RecurringAnomaly, AnomalyType, Severity

__all__ = [
    "Account",
    "AccountType",
    "Category",
    "Transaction",
    "RecurringExpense",
    "ExpenseType",
    "Priority",
    "ConfidenceLevel",
    "Trend",
    "ExpenseCorrection",
    "RecurringAnomaly",
    "AnomalyType",
    "Severity",
]

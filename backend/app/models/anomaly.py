"""
Recurring anomaly database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Date, Enum, Float, Numeric, ForeignKey
from sqlalchemy.orm import relationship
import enum
from app.database import Base


class AnomalyType(str, enum.Enum):
    """Anomaly type enumeration."""
    amount_high = "amount_high"
    amount_low = "amount_low"
    early = "early"
    late = "late"
    missed = "missed"
    duplicate_suspected = "duplicate_suspected"


class Severity(str, enum.Enum):
    """Anomaly severity enumeration."""
    low = "low"
    medium = "medium"
    high = "high"


class RecurringAnomaly(Base):
    """An instance that deviates from its recurring pattern. Append-only."""

    __tablename__ = "recurring_anomalies"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    recurring_expense_id = Column(String(36), ForeignKey("recurring_expenses.id"), nullable=False, index=True)
    transaction_id = Column(String(36), ForeignKey("transactions.id"), nullable=True)
    anomaly_type = Column(Enum(AnomalyType), nullable=False)
    severity = Column(Enum(Severity), nullable=False)
    expected_amount = Column(Numeric(12, 2), nullable=True)
    actual_amount = Column(Numeric(12, 2), nullable=True)
    deviation_ratio = Column(Float, nullable=True)
    expected_date = Column(Date, nullable=True)
    actual_date = Column(Date, nullable=True)
    is_dismissed = Column(Boolean, default=False, nullable=False, index=True)
    flagged_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    recurring_expense = relationship("RecurringExpense", back_populates="anomalies")
    transaction = relationship("Transaction")

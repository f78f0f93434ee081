"""
Recurring expense database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Date, Numeric, Float, Integer, Enum, Text, JSON, Index
from sqlalchemy.orm import relationship
import enum
from app.database import Base


class ExpenseType(str, enum.Enum):
    """Recurring expense type enumeration."""
    subscription = "subscription"
    variable_recurring = "variable_recurring"
    seasonal = "seasonal"


class Priority(str, enum.Enum):
    """How much a bill matters when cash is short."""
    essential = "essential"
    important = "important"
    discretionary = "discretionary"


class ConfidenceLevel(str, enum.Enum):
    """Categorical certainty level."""
    high = "high"
    medium = "medium"
    low = "low"


class Trend(str, enum.Enum):
    """Directional drift of a pattern's amounts."""
    increasing = "increasing"
    decreasing = "decreasing"
    stable = "stable"


class RecurringExpense(Base):
    """A detected recurring payment pattern, keyed by normalized merchant."""

    __tablename__ = "recurring_expenses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    merchant_key = Column(String(100), unique=True, nullable=False, index=True)
    merchant_display_name = Column(String(100), nullable=False)
    category = Column(String(100), nullable=True)

    # Classification
    expense_type = Column(Enum(ExpenseType), nullable=False)
    priority = Column(Enum(Priority), nullable=False)
    confidence = Column(Enum(ConfidenceLevel), nullable=False)

    # Timing
    frequency_days = Column(Float, nullable=False)
    frequency_variance_days = Column(Float, nullable=True)
    typical_day_of_month = Column(Integer, nullable=True)

    # Amounts
    typical_amount = Column(Numeric(12, 2), nullable=False)
    amount_variance_pct = Column(Float, nullable=False, default=0.0)
    min_amount = Column(Numeric(12, 2), nullable=False)
    max_amount = Column(Numeric(12, 2), nullable=False)
    last_amount = Column(Numeric(12, 2), nullable=False)

    # History
    occurrence_count = Column(Integer, nullable=False)
    first_occurrence_date = Column(Date, nullable=False)
    last_occurrence_date = Column(Date, nullable=False)
    sample_transaction_ids = Column(JSON, nullable=False, default=list)  # Chronological

    # Predictions
    next_predicted_date = Column(Date, nullable=True, index=True)
    next_predicted_amount = Column(Numeric(12, 2), nullable=True)
    prediction_confidence = Column(Enum(ConfidenceLevel), nullable=True)
    trend = Column(Enum(Trend), nullable=True)

    # User overrides
    tracked = Column(Boolean, default=True, nullable=False)
    user_confirmed = Column(Boolean, default=False, nullable=False)
    user_excluded = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)

    detected_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    anomalies = relationship("RecurringAnomaly", back_populates="recurring_expense", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_recurring_confidence", "confidence"),
        Index("idx_recurring_type", "expense_type"),
    )

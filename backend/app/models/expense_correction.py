"""
Expense correction database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Text
from app.database import Base


class ExpenseCorrection(Base):
    """User verdict on whether a merchant is a recurring expense."""

    __tablename__ = "expense_corrections"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    merchant_key = Column(String(100), unique=True, nullable=False, index=True)
    is_recurring = Column(Boolean, nullable=False)
    note = Column(Text, nullable=True)
    applied = Column(Boolean, default=False, nullable=False, index=True)  # Consumed by a detection pass
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

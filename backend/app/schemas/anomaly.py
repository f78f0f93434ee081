"""Pydantic schemas for recurring anomalies."""

from pydantic import BaseModel
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

from app.models.anomaly import AnomalyType, Severity


class AnomalyResponse(BaseModel):
    id: str
    recurring_expense_id: str
    transaction_id: Optional[str] = None
    anomaly_type: AnomalyType
    severity: Severity
    expected_amount: Optional[Decimal] = None
    actual_amount: Optional[Decimal] = None
    deviation_ratio: Optional[float] = None
    expected_date: Optional[date] = None
    actual_date: Optional[date] = None
    is_dismissed: bool
    flagged_at: datetime

    model_config = {"from_attributes": True}


class AnomalyUpdate(BaseModel):
    is_dismissed: bool = True


class AnomaliesListResponse(BaseModel):
    items: List[AnomalyResponse]
    total: int

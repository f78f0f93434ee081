"""Pydantic schemas for recurring expenses."""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict
from datetime import date, datetime
from decimal import Decimal

from app.models.recurring import ExpenseType, Priority, ConfidenceLevel, Trend
from app.schemas.anomaly import AnomalyResponse


class AmountRange(BaseModel):
    min: Decimal
    max: Decimal


class RecurringExpenseResponse(BaseModel):
    id: str
    merchant_key: str
    merchant_display_name: str
    category: Optional[str] = None
    expense_type: ExpenseType
    priority: Priority
    confidence: ConfidenceLevel

    frequency_days: float
    frequency_variance_days: Optional[float] = None
    typical_day_of_month: Optional[int] = None

    typical_amount: Decimal
    amount_variance_pct: float
    min_amount: Decimal
    max_amount: Decimal
    last_amount: Decimal

    occurrence_count: int
    first_occurrence_date: date
    last_occurrence_date: date
    sample_transaction_ids: List[str] = []

    # Prediction fields, left empty when predictions are not requested
    next_predicted_date: Optional[date] = None
    next_predicted_amount: Optional[Decimal] = None
    prediction_confidence: Optional[ConfidenceLevel] = None
    trend: Optional[Trend] = None

    tracked: bool
    user_confirmed: bool
    user_excluded: bool
    notes: Optional[str] = None
    detected_at: datetime
    updated_at: datetime

    # Added by API
    amount_range: Optional[AmountRange] = None
    anomalies: Optional[List[AnomalyResponse]] = None

    @field_validator('sample_transaction_ids', mode='before')
    @classmethod
    def default_sample_ids(cls, v):
        return v or []

    model_config = {"from_attributes": True}


class DetectionSummary(BaseModel):
    total_recurring: int
    transactions_analyzed: int
    by_type: Dict[str, int]
    by_confidence: Dict[str, int]
    by_priority: Dict[str, int]
    total_monthly_cost: float
    detection_run_at: datetime


class DetectionResponse(BaseModel):
    """Response from a detection pass."""
    summary: DetectionSummary
    recurring_expenses: List[RecurringExpenseResponse]


class RecurringExpenseUpdate(BaseModel):
    tracked: Optional[bool] = None
    override_amount: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None


class CorrectionCreate(BaseModel):
    """User verdict on a merchant."""
    merchant: str = Field(..., min_length=1, max_length=100)
    is_recurring: bool
    note: Optional[str] = None


class CorrectionResponse(BaseModel):
    id: str
    merchant_key: str
    is_recurring: bool
    note: Optional[str] = None
    applied: bool
    created_at: datetime

    model_config = {"from_attributes": True}

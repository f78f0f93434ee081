"""Pydantic schemas for cash reservation."""

from pydantic import BaseModel
from typing import List, Dict
from datetime import date

from app.models.recurring import Priority, ConfidenceLevel


class UpcomingBillResponse(BaseModel):
    merchant: str
    due_date: date
    predicted_amount: float
    priority: Priority
    confidence: ConfidenceLevel
    days_until_due: int

    model_config = {"from_attributes": True}


class CashReservationResponse(BaseModel):
    checking_balance: float
    days_ahead: int
    upcoming_bills: List[UpcomingBillResponse]
    total_bills_count: int
    total_reserved: float
    reserved_by_priority: Dict[str, float]
    true_available_cash: float
    conservative_available_cash: float
    health_status: str

    model_config = {"from_attributes": True}

"""
Pydantic schemas package.
"""

from app.schemas.anomaly import (
    AnomalyResponse,
    AnomalyUpdate,
    AnomaliesListResponse,
)
from app.schemas.cash_reservation import (
    UpcomingBillResponse,
    CashReservationResponse,
)
from app.schemas.recurring import (
    AmountRange,
    RecurringExpenseResponse,
    DetectionSummary,
    DetectionResponse,
    RecurringExpenseUpdate,
    CorrectionCreate,
    CorrectionResponse,
)

__all__ = [
    "AnomalyResponse",
    "AnomalyUpdate",
    "AnomaliesListResponse",
    "UpcomingBillResponse",
    "CashReservationResponse",
    "AmountRange",
    "RecurringExpenseResponse",
    "DetectionSummary",
    "DetectionResponse",
    "RecurringExpenseUpdate",
    "CorrectionCreate",
    "CorrectionResponse",
]

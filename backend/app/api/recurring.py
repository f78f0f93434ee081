"""API endpoints for recurring expense detection and management."""

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.dependencies import get_db
from app.exceptions import InvalidInput
from app.models.recurring import ExpenseType, Priority, ConfidenceLevel, RecurringExpense
from app.schemas.anomaly import AnomalyResponse
from app.schemas.recurring import (
    AmountRange,
    RecurringExpenseResponse,
    RecurringExpenseUpdate,
    DetectionResponse,
    DetectionSummary,
    CorrectionCreate,
    CorrectionResponse,
)
from app.services import correction_service, recurring_service
from app.services.predictor import predict_amount_range

router = APIRouter(prefix="/recurring-expenses", tags=["recurring-expenses"])

PREDICTION_FIELDS = (
    "next_predicted_date", "next_predicted_amount", "prediction_confidence", "trend", "amount_range",
)


def _to_response(
    expense: RecurringExpense,
    include_predictions: bool = True,
    anomalies: Optional[list] = None,
) -> RecurringExpenseResponse:
    response = RecurringExpenseResponse.model_validate(expense)
    if expense.next_predicted_amount is not None:
        low, high = predict_amount_range(expense, expense.next_predicted_amount)
        response.amount_range = AmountRange(min=Decimal(str(low)), max=Decimal(str(high)))
    if not include_predictions:
        for field in PREDICTION_FIELDS:
            setattr(response, field, None)
    if anomalies is not None:
        response.anomalies = [AnomalyResponse.model_validate(a) for a in anomalies]
    return response


@router.get("", response_model=DetectionResponse)
def detect_recurring_expenses(
    type: Optional[ExpenseType] = Query(None, description="Filter by expense type"),
    priority: Optional[Priority] = Query(None),
    confidence: Optional[ConfidenceLevel] = Query(None),
    predictions: bool = Query(True, description="Include next-occurrence predictions"),
    anomalies: bool = Query(False, description="Run anomaly detection and include findings"),
    db: Session = Depends(get_db)
):
    """
    Run a detection pass over the transaction history.
    Patterns are upserted by merchant; filters only narrow the response.
    """
    try:
        result = recurring_service.detect_recurring(
            db,
            expense_type=type,
            priority=priority,
            confidence=confidence,
            include_predictions=predictions,
            include_anomalies=anomalies,
        )
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))

    items = [
        _to_response(
            expense,
            include_predictions=result["include_predictions"],
            anomalies=result["anomalies"].get(expense.id) if anomalies else None,
        )
        for expense in result["recurring_expenses"]
    ]

    return DetectionResponse(
        summary=DetectionSummary(**result["summary"]),
        recurring_expenses=items,
    )


@router.get("/corrections", response_model=List[CorrectionResponse])
def list_corrections(
    pending_only: bool = Query(False),
    db: Session = Depends(get_db)
):
    """Get user corrections, newest first."""
    return correction_service.list_corrections(db, pending_only=pending_only)


@router.post("/corrections", response_model=CorrectionResponse)
def create_correction(
    data: CorrectionCreate,
    db: Session = Depends(get_db)
):
    """Record whether a merchant is recurring. Replaces any earlier verdict."""
    try:
        return correction_service.apply_correction(
            db,
            merchant_key=data.merchant,
            is_recurring=data.is_recurring,
            note=data.note,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{expense_id}", response_model=RecurringExpenseResponse)
def get_recurring_expense(
    expense_id: str,
    db: Session = Depends(get_db)
):
    """Get a single recurring expense."""
    expense = recurring_service.get_recurring_expense(db, expense_id)
    if not expense:
        raise HTTPException(status_code=404, detail="Recurring expense not found")

    return _to_response(expense)


@router.patch("/{expense_id}", response_model=RecurringExpenseResponse)
def update_recurring_expense(
    expense_id: str,
    update: RecurringExpenseUpdate,
    db: Session = Depends(get_db)
):
    """Update tracking, override the predicted amount, or attach notes."""
    if not recurring_service.get_recurring_expense(db, expense_id):
        raise HTTPException(status_code=404, detail="Recurring expense not found")

    try:
        expense = recurring_service.update_recurring_expense(
            db,
            expense_id,
            **update.model_dump(exclude_unset=True)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return _to_response(expense)


@router.delete("/{expense_id}")
def exclude_recurring_expense(
    expense_id: str,
    db: Session = Depends(get_db)
):
    """Exclude a recurring expense. The pattern is kept so later passes respect the exclusion."""
    if not recurring_service.get_recurring_expense(db, expense_id):
        raise HTTPException(status_code=404, detail="Recurring expense not found")

    expense = recurring_service.exclude_recurring_expense(db, expense_id)
    return {"excluded": True, "merchant_key": expense.merchant_key}

"""API endpoint for cash reservation."""

from dataclasses import asdict
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional

from app.config import settings
from app.dependencies import get_db
from app.exceptions import InvalidInput
from app.schemas.cash_reservation import CashReservationResponse
from app.services import cash_reservation_service

router = APIRouter(prefix="/cash-reservation", tags=["cash-reservation"])


@router.get("", response_model=CashReservationResponse)
def get_cash_reservation(
    days: int = Query(settings.default_days_ahead, description="Projection horizon in days"),
    balance: Optional[float] = Query(None, description="Checking balance; defaults to the bank account on record"),
    db: Session = Depends(get_db)
):
    """
    Reserve cash for recurring bills due in the next `days` days and
    report what is left of the checking balance.
    """
    try:
        reservation = cash_reservation_service.get_cash_reservation(
            db,
            checking_balance=balance,
            days_ahead=days
        )
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))

    return CashReservationResponse(**asdict(reservation))

"""API endpoints for recurring expense anomalies."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional

from app.dependencies import get_db
from app.schemas.anomaly import AnomalyResponse, AnomalyUpdate, AnomaliesListResponse
from app.services import anomaly_service

router = APIRouter(prefix="/anomalies", tags=["anomalies"])


@router.get("", response_model=AnomaliesListResponse)
def get_anomalies(
    include_dismissed: bool = Query(False),
    recurring_expense_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    """Get flagged anomalies, newest first."""
    anomalies = anomaly_service.get_anomalies(
        db,
        recurring_expense_id=recurring_expense_id,
        include_dismissed=include_dismissed,
        limit=limit
    )

    return AnomaliesListResponse(
        items=[AnomalyResponse.model_validate(a) for a in anomalies],
        total=len(anomalies)
    )


@router.patch("/{anomaly_id}", response_model=AnomalyResponse)
def update_anomaly(
    anomaly_id: str,
    update: AnomalyUpdate,
    db: Session = Depends(get_db)
):
    """Dismiss or restore an anomaly."""
    anomaly = anomaly_service.dismiss_anomaly(db, anomaly_id, update.is_dismissed)
    if not anomaly:
        raise HTTPException(status_code=404, detail="Anomaly not found")

    return AnomalyResponse.model_validate(anomaly)

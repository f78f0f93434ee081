"""Service for recurring anomaly storage and management."""

from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from app.models.anomaly import RecurringAnomaly
from app.models.recurring import RecurringExpense
from app.services.anomaly_detector import AnomalyFinding


def _already_stored(db: Session, recurring_expense_id: str, finding: AnomalyFinding) -> bool:
    query = db.query(RecurringAnomaly).filter(
        RecurringAnomaly.recurring_expense_id == recurring_expense_id,
        RecurringAnomaly.anomaly_type == finding.anomaly_type
    )
    if finding.transaction_id is not None:
        query = query.filter(RecurringAnomaly.transaction_id == finding.transaction_id)
    else:
        query = query.filter(
            RecurringAnomaly.transaction_id.is_(None),
            RecurringAnomaly.expected_date == finding.expected_date
        )
    return query.first() is not None


def store_anomalies(
    db: Session,
    recurring_expense: RecurringExpense,
    findings: Sequence[AnomalyFinding],
) -> List[RecurringAnomaly]:
    """
    Append new findings for a pattern. Findings already on record are skipped.
    Does not commit; the detection pass owns the transaction.
    """
    created = []
    for finding in findings:
        if _already_stored(db, recurring_expense.id, finding):
            continue
        anomaly = RecurringAnomaly(
            recurring_expense_id=recurring_expense.id,
            transaction_id=finding.transaction_id,
            anomaly_type=finding.anomaly_type,
            severity=finding.severity,
            expected_amount=finding.expected_amount,
            actual_amount=finding.actual_amount,
            deviation_ratio=finding.deviation_ratio,
            expected_date=finding.expected_date,
            actual_date=finding.actual_date,
        )
        db.add(anomaly)
        created.append(anomaly)

    if created:
        db.flush()
    return created


def get_anomalies(
    db: Session,
    recurring_expense_id: Optional[str] = None,
    include_dismissed: bool = False,
    limit: int = 50
) -> List[RecurringAnomaly]:
    """Get anomalies with optional filters."""
    query = db.query(RecurringAnomaly)

    if recurring_expense_id:
        query = query.filter(RecurringAnomaly.recurring_expense_id == recurring_expense_id)

    if not include_dismissed:
        query = query.filter(RecurringAnomaly.is_dismissed == False)

    return query.order_by(
        RecurringAnomaly.flagged_at.desc(),
        RecurringAnomaly.actual_date.desc()
    ).limit(limit).all()


def dismiss_anomaly(db: Session, anomaly_id: str, is_dismissed: bool = True) -> Optional[RecurringAnomaly]:
    """Dismiss (or restore) an anomaly. Returns None when it does not exist."""
    anomaly = db.query(RecurringAnomaly).filter(RecurringAnomaly.id == anomaly_id).first()
    if not anomaly:
        return None

    anomaly.is_dismissed = is_dismissed
    db.commit()
    db.refresh(anomaly)
    return anomaly

"""Service for recurring expense detection passes and pattern management."""

import enum
import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Type

from sqlalchemy.orm import Session

from app.config import Settings, settings as default_settings
from app.exceptions import InvalidInput
from app.models.anomaly import RecurringAnomaly
from app.models.category import Category
from app.models.recurring import ConfidenceLevel, ExpenseType, Priority, RecurringExpense
from app.models.transaction import Transaction
from app.services import correction_service
from app.services.anomaly_detector import detect_anomalies
from app.services.anomaly_service import store_anomalies
from app.services.pattern_detector import (
    DetectedPattern,
    TransactionRecord,
    base_merchant_key,
    detect_patterns,
    filter_patterns,
    summarize,
)
from app.services.predictor import apply_prediction, predict
from app.services.priority_classifier import PriorityClassifier, build_priority_classifier

logger = logging.getLogger(__name__)


def coerce_filter(enum_cls: Type[enum.Enum], value: Any, name: str) -> Optional[Any]:
    """Turn a filter value into its enum member, rejecting unknown values."""
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidInput(f"Invalid {name} '{value}'; expected one of: {allowed}")


def load_expense_transactions(
    db: Session,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[TransactionRecord]:
    """Expense transactions as read models, oldest first."""
    query = db.query(Transaction, Category.name).outerjoin(
        Category, Transaction.category_id == Category.id
    ).filter(Transaction.amount < 0)

    if start_date:
        query = query.filter(Transaction.date >= start_date)
    if end_date:
        query = query.filter(Transaction.date <= end_date)

    rows = query.order_by(Transaction.date, Transaction.id).all()
    return [
        TransactionRecord(
            id=str(t.id),
            date=t.date,
            amount=float(t.amount),
            description=t.clean_merchant or t.raw_description,
            account_id=str(t.account_id) if t.account_id else None,
            category=category_name,
        )
        for t, category_name in rows
    ]


def _money(value: Optional[float]) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(round(value, 2)))


def _upsert_pattern(
    db: Session,
    existing: Optional[RecurringExpense],
    pattern: DetectedPattern,
) -> RecurringExpense:
    """Write detection results onto a row. User-owned fields are left alone."""
    row = existing
    if row is None:
        row = RecurringExpense(
            id=str(uuid.uuid4()),
            merchant_key=pattern.merchant_key,
            tracked=True,
            user_confirmed=False,
            user_excluded=False,
            detected_at=datetime.utcnow(),
        )
        db.add(row)

    row.merchant_display_name = pattern.merchant_display_name
    row.category = pattern.category
    row.expense_type = pattern.expense_type
    row.priority = pattern.priority
    row.confidence = pattern.confidence
    row.frequency_days = pattern.frequency_days
    row.frequency_variance_days = pattern.frequency_variance_days
    row.typical_day_of_month = pattern.typical_day_of_month
    row.typical_amount = _money(pattern.typical_amount)
    row.amount_variance_pct = pattern.amount_variance_pct
    row.min_amount = _money(pattern.min_amount)
    row.max_amount = _money(pattern.max_amount)
    row.last_amount = _money(pattern.last_amount)
    row.occurrence_count = pattern.occurrence_count
    row.first_occurrence_date = pattern.first_occurrence_date
    row.last_occurrence_date = pattern.last_occurrence_date
    row.sample_transaction_ids = list(pattern.sample_transaction_ids)
    row.next_predicted_date = pattern.next_predicted_date
    row.next_predicted_amount = _money(pattern.next_predicted_amount)
    row.prediction_confidence = pattern.prediction_confidence
    row.trend = pattern.trend
    if pattern.user_confirmed:
        row.user_confirmed = True
    row.updated_at = datetime.utcnow()
    return row


def _apply_pending_corrections(
    db: Session,
    corrections: Dict[str, bool],
    rows: Sequence[RecurringExpense],
) -> None:
    """Pin corrections onto their patterns and mark the matched ones applied."""
    for merchant_key, is_recurring in corrections.items():
        matched = [
            row for row in rows
            if row.merchant_key == merchant_key or base_merchant_key(row.merchant_key) == merchant_key
        ]
        for row in matched:
            correction_service.pin_override(row, is_recurring)
        if matched:
            correction_service.mark_applied(db, merchant_key)


def detect_recurring(
    db: Session,
    expense_type: Any = None,
    priority: Any = None,
    confidence: Any = None,
    include_predictions: bool = True,
    include_anomalies: bool = False,
    today: Optional[date] = None,
    classifier: Optional[PriorityClassifier] = None,
    config: Optional[Settings] = None,
) -> Dict[str, Any]:
    """
    Run a full detection pass and persist its results.

    Patterns, predictions, anomalies and correction flags for the pass are
    committed together; any failure rolls the whole pass back. Patterns that
    are no longer detected are left untouched.

    Predictions are always computed and persisted because the cash
    reservation reads them; ``include_predictions`` only controls whether the
    caller is asked to show them.

    Returns ``{"summary", "recurring_expenses", "anomalies", "include_predictions"}``
    where ``recurring_expenses`` are the persisted rows after filtering and
    ``anomalies`` maps pattern id to its new and previously stored anomalies.
    """
    config = config or default_settings
    expense_type = coerce_filter(ExpenseType, expense_type, "expense_type")
    priority = coerce_filter(Priority, priority, "priority")
    confidence = coerce_filter(ConfidenceLevel, confidence, "confidence")

    run_at = datetime.utcnow()
    transactions = load_expense_transactions(db)
    corrections = correction_service.get_correction_table(db)
    existing = {row.merchant_key: row for row in db.query(RecurringExpense).all()}
    classifier = classifier or build_priority_classifier(db, config)

    patterns = detect_patterns(
        transactions,
        corrections=corrections,
        classifier=classifier,
        excluded_keys={k for k, row in existing.items() if row.user_excluded},
        confirmed_keys={k for k, row in existing.items() if row.user_confirmed},
        config=config,
    )

    by_id = {t.id: t for t in transactions}
    anomalies: Dict[str, List[RecurringAnomaly]] = {}

    try:
        detected_rows = []
        for pattern in patterns:
            apply_prediction(pattern, predict(pattern, pattern.amounts, config))
            row = _upsert_pattern(db, existing.get(pattern.merchant_key), pattern)
            existing[pattern.merchant_key] = row
            detected_rows.append(row)

        _apply_pending_corrections(db, corrections, list(existing.values()))
        db.flush()

        if include_anomalies:
            for pattern, row in zip(patterns, detected_rows):
                instances = [by_id[i] for i in pattern.sample_transaction_ids if i in by_id]
                findings = detect_anomalies(pattern, instances, today=today, config=config)
                store_anomalies(db, row, findings)

        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Detection pass failed; rolled back")
        raise

    if include_anomalies:
        for row in detected_rows:
            anomalies[row.id] = db.query(RecurringAnomaly).filter(
                RecurringAnomaly.recurring_expense_id == row.id,
                RecurringAnomaly.is_dismissed == False
            ).order_by(RecurringAnomaly.flagged_at.desc()).all()

    visible = [row for row in detected_rows if not row.user_excluded]
    result_rows = filter_patterns(visible, expense_type, priority, confidence)

    logger.info(
        "Detection pass: %d transactions, %d patterns (%d after filters)",
        len(transactions), len(visible), len(result_rows)
    )

    return {
        "summary": summarize(result_rows, len(transactions), run_at),
        "recurring_expenses": result_rows,
        "anomalies": anomalies,
        "include_predictions": include_predictions,
    }


def get_recurring_expenses(db: Session, include_excluded: bool = False) -> List[RecurringExpense]:
    """Get persisted recurring expenses, soonest predicted first."""
    query = db.query(RecurringExpense)

    if not include_excluded:
        query = query.filter(RecurringExpense.user_excluded == False)

    return query.order_by(
        RecurringExpense.next_predicted_date,
        RecurringExpense.merchant_key
    ).all()


def get_recurring_expense(db: Session, expense_id: str) -> Optional[RecurringExpense]:
    return db.query(RecurringExpense).filter(RecurringExpense.id == expense_id).first()


def get_pattern_transactions(db: Session, expense: RecurringExpense) -> List[Transaction]:
    """Transactions backing a pattern, oldest first."""
    ids = list(expense.sample_transaction_ids or [])
    if not ids:
        return []
    return db.query(Transaction).filter(
        Transaction.id.in_(ids)
    ).order_by(Transaction.date, Transaction.id).all()


def update_recurring_expense(
    db: Session,
    expense_id: str,
    tracked: Optional[bool] = None,
    override_amount: Optional[Decimal] = None,
    notes: Optional[str] = None,
) -> RecurringExpense:
    """Update user-controlled fields of a pattern."""
    expense = get_recurring_expense(db, expense_id)
    if not expense:
        raise ValueError(f"Recurring expense {expense_id} not found")

    if override_amount is not None and override_amount < 0:
        raise InvalidInput("override_amount must not be negative")

    if tracked is not None:
        expense.tracked = tracked
    if override_amount is not None:
        expense.next_predicted_amount = override_amount
    if notes is not None:
        expense.notes = notes

    db.commit()
    db.refresh(expense)
    return expense


def exclude_recurring_expense(db: Session, expense_id: str) -> RecurringExpense:
    """Exclude a pattern through a correction; the row is never deleted."""
    expense = get_recurring_expense(db, expense_id)
    if not expense:
        raise ValueError(f"Recurring expense {expense_id} not found")

    correction_service.apply_correction(db, expense.merchant_key, False, note="Excluded from recurring list")
    db.refresh(expense)
    return expense

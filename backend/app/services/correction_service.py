"""Service for user corrections to recurring expense detection."""

import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.exceptions import InconsistentCorrection, InvalidInput
from app.models.expense_correction import ExpenseCorrection
from app.models.recurring import ConfidenceLevel, RecurringExpense
from app.services.pattern_detector import BUCKET_SEPARATOR

logger = logging.getLogger(__name__)


def list_corrections(db: Session, pending_only: bool = False) -> List[ExpenseCorrection]:
    """Get corrections, newest first."""
    query = db.query(ExpenseCorrection)
    if pending_only:
        query = query.filter(ExpenseCorrection.applied == False)
    return query.order_by(ExpenseCorrection.created_at.desc()).all()


def get_correction_table(db: Session) -> Dict[str, bool]:
    """Bias table for detection: merchant key -> is_recurring."""
    return {c.merchant_key: c.is_recurring for c in db.query(ExpenseCorrection).all()}


def mark_applied(db: Session, merchant_key: str) -> None:
    """Flag a correction as consumed. Does not commit."""
    db.query(ExpenseCorrection).filter(
        ExpenseCorrection.merchant_key == merchant_key
    ).update({ExpenseCorrection.applied: True}, synchronize_session=False)


def matching_patterns(db: Session, merchant_key: str) -> List[RecurringExpense]:
    """Patterns for a merchant key, including amount buckets of an ambiguous merchant."""
    return db.query(RecurringExpense).filter(
        (RecurringExpense.merchant_key == merchant_key)
        | (RecurringExpense.merchant_key.like(f"{merchant_key}{BUCKET_SEPARATOR}%"))
    ).all()


def pin_override(pattern: RecurringExpense, is_recurring: bool) -> None:
    """Apply a user verdict to a persisted pattern."""
    if is_recurring:
        pattern.user_confirmed = True
        pattern.user_excluded = False
        pattern.confidence = ConfidenceLevel.high
    else:
        pattern.user_excluded = True
        pattern.user_confirmed = False


def apply_correction(
    db: Session,
    merchant_key: str,
    is_recurring: bool,
    note: Optional[str] = None,
) -> ExpenseCorrection:
    """
    Record a user's verdict on a merchant and pin it on the matching patterns.

    When no pattern exists yet the correction stays pending and is applied by
    the next detection pass that finds the merchant.
    """
    merchant_key = (merchant_key or "").strip()
    if not merchant_key:
        raise InvalidInput("merchant_key is required")
    if not isinstance(is_recurring, bool):
        raise InvalidInput("is_recurring must be a boolean")

    correction = db.query(ExpenseCorrection).filter(
        ExpenseCorrection.merchant_key == merchant_key
    ).first()
    if correction is None:
        correction = ExpenseCorrection(merchant_key=merchant_key)
        db.add(correction)

    correction.is_recurring = is_recurring
    correction.note = note
    correction.applied = False

    patterns = matching_patterns(db, merchant_key)
    for pattern in patterns:
        pin_override(pattern, is_recurring)

    if patterns:
        correction.applied = True
    else:
        logger.warning("%s", InconsistentCorrection(merchant_key))

    db.commit()
    db.refresh(correction)
    logger.info(
        "%s merchant %s (%d pattern(s) updated)",
        "Confirmed" if is_recurring else "Excluded", merchant_key, len(patterns)
    )
    return correction

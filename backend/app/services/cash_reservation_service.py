"""Service for projecting upcoming bills against a checking balance."""

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.config import Settings, settings as default_settings
from app.exceptions import InvalidInput
from app.models.account import Account, AccountType
from app.models.recurring import ConfidenceLevel, Priority, RecurringExpense


@dataclass(frozen=True)
class UpcomingBill:
    merchant: str
    due_date: date
    predicted_amount: float
    priority: Priority
    confidence: ConfidenceLevel
    days_until_due: int


@dataclass
class CashReservation:
    checking_balance: float
    days_ahead: int
    upcoming_bills: List[UpcomingBill]
    total_bills_count: int
    total_reserved: float
    reserved_by_priority: Dict[str, float] = field(default_factory=dict)
    true_available_cash: float = 0.0
    conservative_available_cash: float = 0.0
    health_status: str = "healthy"


def validate_reservation_input(
    checking_balance: float,
    days_ahead: int,
    config: Optional[Settings] = None,
) -> None:
    """Reject a bad balance or horizon before anything is computed."""
    config = config or default_settings

    if isinstance(days_ahead, bool) or not isinstance(days_ahead, int):
        raise InvalidInput(f"days_ahead must be an integer, got {days_ahead!r}")
    if days_ahead <= 0 or days_ahead > config.max_days_ahead:
        raise InvalidInput(f"days_ahead must be between 1 and {config.max_days_ahead}, got {days_ahead}")

    try:
        balance = float(checking_balance)
    except (TypeError, ValueError):
        raise InvalidInput(f"checking_balance must be a number, got {checking_balance!r}")
    if not math.isfinite(balance) or balance <= 0:
        raise InvalidInput(f"checking_balance must be a positive amount, got {checking_balance!r}")


def health_status(true_available: float, total_reserved: float, buffer_fraction: float) -> str:
    if true_available < 0:
        return "overdrawn"
    if true_available < total_reserved * buffer_fraction:
        return "tight"
    return "healthy"


def calculate_cash_reservation(
    patterns: Sequence[Any],
    checking_balance: float,
    days_ahead: int = 14,
    today: Optional[date] = None,
    config: Optional[Settings] = None,
) -> CashReservation:
    """
    Reserve cash for every predicted bill due within ``days_ahead`` days.

    ``patterns`` are recurring expenses (rows or ``DetectedPattern``);
    untracked and user-excluded ones are skipped, as are patterns without a
    predicted date. Performs no writes.
    """
    config = config or default_settings
    validate_reservation_input(checking_balance, days_ahead, config)

    today = today or date.today()
    cutoff = today + timedelta(days=days_ahead)
    balance = float(checking_balance)

    bills: List[UpcomingBill] = []
    for p in patterns:
        if not getattr(p, "tracked", True) or getattr(p, "user_excluded", False):
            continue
        due = p.next_predicted_date
        if due is None or not (today <= due <= cutoff):
            continue

        amount = p.next_predicted_amount if p.next_predicted_amount is not None else p.typical_amount
        bills.append(UpcomingBill(
            merchant=p.merchant_display_name,
            due_date=due,
            predicted_amount=round(float(amount), 2),
            priority=Priority(p.priority),
            confidence=ConfidenceLevel(p.prediction_confidence or p.confidence),
            days_until_due=(due - today).days,
        ))

    bills.sort(key=lambda b: (b.due_date, b.merchant))

    by_priority = {pr.value: 0.0 for pr in Priority}
    for bill in bills:
        by_priority[bill.priority.value] += bill.predicted_amount
    by_priority = {k: round(v, 2) for k, v in by_priority.items()}

    total_reserved = round(sum(b.predicted_amount for b in bills), 2)
    true_available = round(balance - total_reserved, 2)
    conservative_available = round(balance - (total_reserved - by_priority[Priority.discretionary.value]), 2)

    return CashReservation(
        checking_balance=balance,
        days_ahead=days_ahead,
        upcoming_bills=bills,
        total_bills_count=len(bills),
        total_reserved=total_reserved,
        reserved_by_priority=by_priority,
        true_available_cash=true_available,
        conservative_available_cash=conservative_available,
        health_status=health_status(true_available, total_reserved, config.tight_buffer_fraction),
    )


def get_checking_balance(db: Session) -> Optional[float]:
    """Balance of the first active bank account, if one has a balance on record."""
    account = db.query(Account).filter(
        Account.account_type == AccountType.bank,
        Account.is_active == True,
        Account.balance.isnot(None)
    ).order_by(Account.created_at).first()

    return float(account.balance) if account else None


def get_cash_reservation(
    db: Session,
    checking_balance: Optional[float] = None,
    days_ahead: Optional[int] = None,
    today: Optional[date] = None,
) -> CashReservation:
    """Cash reservation over the persisted pattern set."""
    if days_ahead is None:
        days_ahead = default_settings.default_days_ahead
    if checking_balance is None:
        checking_balance = get_checking_balance(db)
        if checking_balance is None:
            raise InvalidInput("No checking balance given and no bank account balance on record")

    validate_reservation_input(checking_balance, days_ahead)

    patterns = db.query(RecurringExpense).filter(
        RecurringExpense.user_excluded == False,
        RecurringExpense.tracked == True,
        RecurringExpense.next_predicted_date.isnot(None)
    ).all()

    return calculate_cash_reservation(patterns, checking_balance, days_ahead, today)

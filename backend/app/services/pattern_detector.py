"""
Statistical detection of recurring expense patterns.

Everything here is a pure function of its inputs: transactions arrive as
``TransactionRecord`` read models and patterns leave as ``DetectedPattern``
objects. Loading and persisting is the job of ``recurring_service``.

Both the interval (``frequency_days``) and the representative amount
(``typical_amount``) are medians over the whole group.
"""

import logging
import statistics
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Collection, Dict, List, Mapping, Optional, Sequence

from app.config import Settings, settings as default_settings
from app.exceptions import InsufficientData
from app.models.recurring import ConfidenceLevel, ExpenseType, Priority, Trend
from app.services.merchant_normalizer import display_name, normalize
from app.services.priority_classifier import PriorityClassifier

logger = logging.getLogger(__name__)

BUCKET_SEPARATOR = " ~"


@dataclass(frozen=True)
class TransactionRecord:
    """Read model of a ledger transaction."""

    id: str
    date: date
    amount: float  # Signed, negative = expense
    description: str
    account_id: Optional[str] = None
    category: Optional[str] = None


@dataclass
class DetectedPattern:
    """A recurring expense as computed by one detection pass."""

    merchant_key: str
    merchant_display_name: str
    category: Optional[str]
    expense_type: ExpenseType
    priority: Priority
    confidence: ConfidenceLevel
    frequency_days: float
    frequency_variance_days: float
    typical_day_of_month: Optional[int]
    typical_amount: float
    amount_variance_pct: float
    min_amount: float
    max_amount: float
    last_amount: float
    occurrence_count: int
    first_occurrence_date: date
    last_occurrence_date: date
    sample_transaction_ids: List[str] = field(default_factory=list)
    amounts: List[float] = field(default_factory=list)  # Absolute, chronological
    dates: List[date] = field(default_factory=list)
    user_confirmed: bool = False

    # Filled in by the predictor
    next_predicted_date: Optional[date] = None
    next_predicted_amount: Optional[float] = None
    prediction_confidence: Optional[ConfidenceLevel] = None
    trend: Optional[Trend] = None


def base_merchant_key(merchant_key: str) -> str:
    """Strip the amount bucket suffix from an ambiguous merchant key."""
    return merchant_key.split(BUCKET_SEPARATOR, 1)[0]


def merchant_key_for(txn: TransactionRecord, config: Optional[Settings] = None) -> str:
    """Grouping key for a transaction; ambiguous merchants get an amount bucket."""
    config = config or default_settings
    key = normalize(txn.description, config)
    if key and key in config.ambiguous_merchants:
        key = f"{key}{BUCKET_SEPARATOR}{int(round(abs(txn.amount)))}"
    return key


def group_transactions(
    transactions: Sequence[TransactionRecord],
    config: Optional[Settings] = None,
) -> Dict[str, List[TransactionRecord]]:
    """Group expense transactions by merchant key, each group sorted by date."""
    config = config or default_settings
    groups: Dict[str, List[TransactionRecord]] = defaultdict(list)

    for txn in transactions:
        if txn.amount >= 0:
            continue
        key = merchant_key_for(txn, config)
        if not key:
            continue
        groups[key].append(txn)

    for group in groups.values():
        group.sort(key=lambda t: (t.date, t.id))

    return dict(groups)


def compute_gaps(dates: Sequence[date]) -> List[int]:
    """Day gaps between consecutive dates."""
    return [(later - earlier).days for earlier, later in zip(dates, dates[1:])]


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Population std-dev over mean; 0 for empty or zero-mean input."""
    if len(values) < 2:
        return 0.0
    mean = statistics.fmean(values)
    if mean == 0:
        return 0.0
    return statistics.pstdev(values) / mean


def classify_expense_type(
    frequency_days: float,
    amount_cv: float,
    config: Optional[Settings] = None,
    confirmed: bool = False,
) -> Optional[ExpenseType]:
    """
    Classify a cadence/amount profile, or None when it is not recurring.

    Confirmed merchants are never rejected for their cadence: they fall into
    the nearest type instead.
    """
    config = config or default_settings
    monthly_lo, monthly_hi = config.monthly_window_days
    seasonal_lo, seasonal_hi = config.seasonal_window_days
    period = round(frequency_days)

    if monthly_lo <= period <= monthly_hi:
        if amount_cv < config.subscription_max_amount_cv:
            return ExpenseType.subscription
        return ExpenseType.variable_recurring
    if seasonal_lo <= period <= seasonal_hi:
        return ExpenseType.seasonal

    if confirmed:
        if period < monthly_lo:
            return ExpenseType.variable_recurring
        return ExpenseType.seasonal
    return None


def calculate_confidence(
    occurrence_count: int,
    gaps: Sequence[int],
    frequency_days: float,
    amount_cv: float,
    config: Optional[Settings] = None,
) -> ConfidenceLevel:
    """Confidence from sample count, interval regularity and amount stability."""
    config = config or default_settings

    def gaps_within(tolerance: float) -> bool:
        return all(abs(gap - frequency_days) <= tolerance * frequency_days for gap in gaps)

    gaps_tight = gaps_within(config.gap_tolerance)
    gaps_moderate = gaps_within(config.moderate_gap_tolerance)
    amount_tight = amount_cv < config.subscription_max_amount_cv
    amount_moderate = amount_cv < config.moderate_amount_cv

    if occurrence_count >= config.high_confidence_min_occurrences and gaps_tight and amount_tight:
        return ConfidenceLevel.high
    if gaps_moderate and occurrence_count < config.high_confidence_min_occurrences:
        return ConfidenceLevel.medium
    if gaps_moderate and amount_moderate:
        return ConfidenceLevel.medium
    return ConfidenceLevel.low


def typical_day_of_month(dates: Sequence[date]) -> Optional[int]:
    """Most common day of month; the earliest day wins a tie."""
    if not dates:
        return None
    counts = Counter(d.day for d in dates)
    return min(counts, key=lambda day: (-counts[day], day))


def build_pattern(
    merchant_key: str,
    group: Sequence[TransactionRecord],
    classifier: PriorityClassifier,
    config: Optional[Settings] = None,
    confirmed: bool = False,
) -> DetectedPattern:
    """
    Turn one merchant group into a pattern.

    Raises InsufficientData when the group does not support a recurring
    pattern; callers treat that as "not recurring", never as a failure.
    """
    config = config or default_settings

    if len(group) < config.min_occurrences:
        raise InsufficientData(f"{merchant_key}: {len(group)} occurrences")

    dates = [t.date for t in group]
    amounts = [abs(t.amount) for t in group]
    gaps = compute_gaps(dates)

    frequency_days = float(statistics.median(gaps))
    if frequency_days <= 0:
        raise InsufficientData(f"{merchant_key}: charges share a single day")

    gap_cv = coefficient_of_variation(gaps)
    if gap_cv > config.max_gap_cv and not confirmed:
        raise InsufficientData(f"{merchant_key}: irregular gaps (cv={gap_cv:.2f})")

    amount_cv = coefficient_of_variation(amounts)
    expense_type = classify_expense_type(frequency_days, amount_cv, config, confirmed)
    if expense_type is None:
        raise InsufficientData(f"{merchant_key}: {frequency_days:g} day cadence is not recurring")

    if confirmed:
        confidence = ConfidenceLevel.high
    else:
        confidence = calculate_confidence(len(group), gaps, frequency_days, amount_cv, config)

    categories = Counter(t.category for t in group if t.category)
    category = categories.most_common(1)[0][0] if categories else None
    priority = classifier.classify(base_merchant_key(merchant_key), category, expense_type)

    monthly_lo, monthly_hi = config.monthly_window_days
    day_of_month = typical_day_of_month(dates) if monthly_lo <= round(frequency_days) <= monthly_hi else None

    return DetectedPattern(
        merchant_key=merchant_key,
        merchant_display_name=display_name(base_merchant_key(merchant_key)),
        category=category,
        expense_type=expense_type,
        priority=priority,
        confidence=confidence,
        frequency_days=frequency_days,
        frequency_variance_days=statistics.pstdev(gaps) if len(gaps) > 1 else 0.0,
        typical_day_of_month=day_of_month,
        typical_amount=round(statistics.median(amounts), 2),
        amount_variance_pct=round(amount_cv * 100, 2),
        min_amount=min(amounts),
        max_amount=max(amounts),
        last_amount=amounts[-1],
        occurrence_count=len(group),
        first_occurrence_date=dates[0],
        last_occurrence_date=dates[-1],
        sample_transaction_ids=[t.id for t in group],
        amounts=amounts,
        dates=dates,
        user_confirmed=confirmed,
    )


def detect_patterns(
    transactions: Sequence[TransactionRecord],
    corrections: Optional[Mapping[str, bool]] = None,
    classifier: Optional[PriorityClassifier] = None,
    excluded_keys: Collection[str] = (),
    confirmed_keys: Collection[str] = (),
    config: Optional[Settings] = None,
) -> List[DetectedPattern]:
    """
    Detect recurring expense patterns in a set of transactions.

    ``corrections`` maps merchant keys to the user's verdict; a correction on
    an ambiguous merchant's base key ("amazon") covers all of its buckets.
    ``excluded_keys``/``confirmed_keys`` carry overrides already pinned on
    persisted patterns. Never raises for data-shape reasons.
    """
    config = config or default_settings
    classifier = classifier or PriorityClassifier.from_settings(config)
    corrections = corrections or {}

    patterns: List[DetectedPattern] = []

    for merchant_key, group in group_transactions(transactions, config).items():
        verdict = corrections.get(merchant_key, corrections.get(base_merchant_key(merchant_key)))
        if verdict is False or (verdict is None and merchant_key in excluded_keys):
            logger.debug("Skipping user-excluded merchant %s", merchant_key)
            continue
        confirmed = verdict is True or (verdict is None and merchant_key in confirmed_keys)

        try:
            patterns.append(build_pattern(merchant_key, group, classifier, config, confirmed))
        except InsufficientData as e:
            logger.debug("Not recurring: %s", e)

    patterns.sort(key=lambda p: (-p.occurrence_count, p.frequency_days, p.merchant_key))
    return patterns


def filter_patterns(
    patterns: Sequence[Any],
    expense_type: Optional[ExpenseType] = None,
    priority: Optional[Priority] = None,
    confidence: Optional[ConfidenceLevel] = None,
) -> List[Any]:
    """Post-detection narrowing; never feeds back into the statistics."""
    return [
        p for p in patterns
        if (expense_type is None or p.expense_type == expense_type)
        and (priority is None or p.priority == priority)
        and (confidence is None or p.confidence == confidence)
    ]


def monthly_cost(pattern: Any) -> float:
    """Pattern cost pro-rated to a 30 day month."""
    if not pattern.frequency_days:
        return 0.0
    return float(pattern.typical_amount) * 30 / float(pattern.frequency_days)


def summarize(
    patterns: Sequence[Any],
    transactions_analyzed: int,
    run_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Aggregate counts and monthly cost for a detection result set."""
    return {
        "total_recurring": len(patterns),
        "transactions_analyzed": transactions_analyzed,
        "by_type": {t.value: sum(1 for p in patterns if p.expense_type == t) for t in ExpenseType},
        "by_confidence": {c.value: sum(1 for p in patterns if p.confidence == c) for c in ConfidenceLevel},
        "by_priority": {pr.value: sum(1 for p in patterns if p.priority == pr) for pr in Priority},
        "total_monthly_cost": round(sum(monthly_cost(p) for p in patterns), 2),
        "detection_run_at": run_at or datetime.utcnow(),
    }

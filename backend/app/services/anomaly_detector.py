"""
Rule-based anomaly detection for known recurring patterns.

The detector only reports. It never touches a pattern's baseline; the next
full detection pass recomputes ``typical_amount`` as a median over every
sample.
"""

from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Any, List, Optional, Sequence

from app.config import Settings, settings as default_settings
from app.models.anomaly import AnomalyType, Severity
from app.models.recurring import ExpenseType
from app.services.predictor import predict_next_date


@dataclass(frozen=True)
class AnomalyFinding:
    anomaly_type: AnomalyType
    severity: Severity
    transaction_id: Optional[str] = None
    expected_amount: Optional[float] = None
    actual_amount: Optional[float] = None
    deviation_ratio: Optional[float] = None
    expected_date: Optional[date] = None
    actual_date: Optional[date] = None


def amount_tolerance(expense_type: Any, config: Optional[Settings] = None) -> float:
    """Relative width of the expected amount envelope for an expense type."""
    config = config or default_settings
    expense_type = ExpenseType(expense_type)
    if expense_type == ExpenseType.subscription:
        return config.subscription_amount_tolerance
    if expense_type == ExpenseType.variable_recurring:
        return config.variable_amount_tolerance
    return config.seasonal_amount_tolerance


def check_amount(
    typical_amount: float,
    actual_amount: float,
    tolerance: float,
) -> Optional[AnomalyFinding]:
    """Flag an amount outside ``typical × (1 ± tolerance)``."""
    if typical_amount <= 0:
        return None

    lower = typical_amount * (1 - tolerance)
    upper = typical_amount * (1 + tolerance)
    if lower <= actual_amount <= upper:
        return None

    ratio = actual_amount / typical_amount - 1
    is_high = actual_amount > upper
    if abs(ratio) > 2 * tolerance:
        severity = Severity.high
    else:
        severity = Severity.medium if is_high else Severity.low

    return AnomalyFinding(
        anomaly_type=AnomalyType.amount_high if is_high else AnomalyType.amount_low,
        severity=severity,
        expected_amount=round(typical_amount, 2),
        actual_amount=round(actual_amount, 2),
        deviation_ratio=round(ratio, 4),
    )


def detect_anomalies(
    pattern: Any,
    instances: Sequence[Any],
    today: Optional[date] = None,
    config: Optional[Settings] = None,
) -> List[AnomalyFinding]:
    """
    Check instances of a pattern against its amount envelope and cadence.

    ``instances`` may be the pattern's full sample set or new charges; each
    needs ``id``, ``date`` and ``amount``. Instances dated after the pattern's
    last occurrence are timed against ``next_predicted_date``, older ones
    against their predecessor plus ``frequency_days``.
    """
    config = config or default_settings
    today = today or date.today()

    typical = float(pattern.typical_amount)
    frequency = float(pattern.frequency_days)
    tolerance = amount_tolerance(pattern.expense_type, config)
    slack = config.timing_slack_days
    last_known = pattern.last_occurrence_date
    next_expected = pattern.next_predicted_date or predict_next_date(last_known, frequency)

    findings: List[AnomalyFinding] = []
    ordered = sorted(instances, key=lambda i: (i.date, str(i.id)))
    previous = None

    for instance in ordered:
        actual = abs(float(instance.amount))

        amount_finding = check_amount(typical, actual, tolerance)
        if amount_finding is not None:
            findings.append(replace(amount_finding, transaction_id=str(instance.id), actual_date=instance.date))

        duplicate = (
            previous is not None
            and (instance.date - previous.date).days < config.duplicate_window_days
            and abs(actual - abs(float(previous.amount))) < config.duplicate_amount_delta
        )
        if duplicate:
            findings.append(AnomalyFinding(
                anomaly_type=AnomalyType.duplicate_suspected,
                severity=Severity.medium,
                transaction_id=str(instance.id),
                actual_amount=round(actual, 2),
                expected_date=previous.date,
                actual_date=instance.date,
            ))
        else:
            expected_date = _expected_date(instance.date, previous, last_known, next_expected, frequency)
            if expected_date is not None:
                offset = (instance.date - expected_date).days
                if abs(offset) > slack:
                    findings.append(AnomalyFinding(
                        anomaly_type=AnomalyType.early if offset < 0 else AnomalyType.late,
                        severity=Severity.low,
                        transaction_id=str(instance.id),
                        expected_date=expected_date,
                        actual_date=instance.date,
                    ))

        previous = instance

    seen_since_last = any(i.date > last_known for i in ordered)
    if not seen_since_last and today > next_expected + timedelta(days=slack):
        overdue = (today - next_expected).days
        findings.append(AnomalyFinding(
            anomaly_type=AnomalyType.missed,
            severity=Severity.high if overdue > frequency else Severity.medium,
            expected_amount=round(typical, 2),
            expected_date=next_expected,
        ))

    return findings


def _expected_date(
    instance_date: date,
    previous: Any,
    last_known: date,
    next_expected: date,
    frequency: float,
) -> Optional[date]:
    if instance_date > last_known:
        if previous is None or previous.date <= last_known:
            return next_expected
        return predict_next_date(previous.date, frequency)
    if previous is None:
        return None
    return predict_next_date(previous.date, frequency)


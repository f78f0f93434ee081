"""Next-occurrence prediction for recurring expenses."""

import statistics
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional, Sequence, Tuple

from app.config import Settings, settings as default_settings
from app.models.recurring import ConfidenceLevel, Trend

_DOWNGRADE = {
    ConfidenceLevel.high: ConfidenceLevel.medium,
    ConfidenceLevel.medium: ConfidenceLevel.low,
    ConfidenceLevel.low: ConfidenceLevel.low,
}


@dataclass(frozen=True)
class Prediction:
    next_predicted_date: date
    next_predicted_amount: float
    prediction_confidence: ConfidenceLevel
    trend: Trend


def detect_trend(amounts: Sequence[float], config: Optional[Settings] = None) -> Trend:
    """
    Compare the mean of the most recent third of amounts with the earliest third.

    Fewer than three amounts is not enough evidence and always reads as stable.
    """
    config = config or default_settings
    if len(amounts) < 3:
        return Trend.stable

    third = max(1, len(amounts) // 3)
    earliest = statistics.fmean(amounts[:third])
    recent = statistics.fmean(amounts[-third:])
    if earliest == 0:
        return Trend.stable

    change = (recent - earliest) / earliest
    if change > config.trend_threshold:
        return Trend.increasing
    if change < -config.trend_threshold:
        return Trend.decreasing
    return Trend.stable


def amount_slope(amounts: Sequence[float], window: int = 6) -> float:
    """Least-squares slope of amount per occurrence over the last ``window`` amounts."""
    recent = list(amounts[-window:])
    n = len(recent)
    if n < 2:
        return 0.0

    mean_x = (n - 1) / 2
    mean_y = statistics.fmean(recent)
    numerator = sum((x - mean_x) * (y - mean_y) for x, y in enumerate(recent))
    denominator = sum((x - mean_x) ** 2 for x in range(n))
    return numerator / denominator


def predict_next_date(last_date: date, frequency_days: float) -> date:
    return last_date + timedelta(days=round(frequency_days))


def downgrade_confidence(confidence: ConfidenceLevel) -> ConfidenceLevel:
    return _DOWNGRADE[ConfidenceLevel(confidence)]


def predict(
    pattern: Any,
    amounts: Sequence[float],
    config: Optional[Settings] = None,
) -> Prediction:
    """
    Predict a pattern's next date, amount, confidence and trend.

    ``pattern`` is anything exposing ``typical_amount``, ``frequency_days``,
    ``confidence`` and ``last_occurrence_date`` (a ``DetectedPattern`` or a
    ``RecurringExpense`` row); ``amounts`` are its absolute historical amounts
    in chronological order.
    """
    config = config or default_settings
    amounts = [abs(float(a)) for a in amounts]
    typical = float(pattern.typical_amount)

    trend = detect_trend(amounts, config)

    predicted = typical
    if trend != Trend.stable:
        slope = amount_slope(amounts, config.trend_window)
        if (trend == Trend.increasing and slope > 0) or (trend == Trend.decreasing and slope < 0):
            predicted = typical + slope

    ceiling = max(amounts + [typical]) * config.max_prediction_multiplier
    predicted = min(max(predicted, 0.0), ceiling)

    confidence = ConfidenceLevel(pattern.confidence)
    if trend != Trend.stable:
        confidence = downgrade_confidence(confidence)

    return Prediction(
        next_predicted_date=predict_next_date(pattern.last_occurrence_date, float(pattern.frequency_days)),
        next_predicted_amount=round(predicted, 2),
        prediction_confidence=confidence,
        trend=trend,
    )


def predict_amount_range(pattern: Any, predicted_amount: float) -> Tuple[float, float]:
    """
    Likely band for the next charge: the predicted amount plus or minus twice the
    pattern's typical deviation, kept inside the historical min and max.

    When a trend carries the prediction outside the history, the band spans the
    nearest historical bound and the prediction.
    """
    predicted_amount = float(predicted_amount)
    spread = 2 * float(pattern.typical_amount) * float(pattern.amount_variance_pct or 0) / 100
    low = max(float(pattern.min_amount), predicted_amount - spread)
    high = min(float(pattern.max_amount), predicted_amount + spread)
    if low > high:
        low, high = high, low
    return round(low, 2), round(high, 2)


def apply_prediction(pattern: Any, prediction: Prediction) -> None:
    """Copy a prediction onto a pattern object."""
    pattern.next_predicted_date = prediction.next_predicted_date
    pattern.next_predicted_amount = prediction.next_predicted_amount
    pattern.prediction_confidence = prediction.prediction_confidence
    pattern.trend = prediction.trend

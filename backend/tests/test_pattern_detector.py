"""Tests for recurring pattern detection."""

import pytest
from datetime import date, timedelta

from app.models.recurring import ConfidenceLevel, ExpenseType, Priority
from app.services.pattern_detector import (
    TransactionRecord,
    calculate_confidence,
    classify_expense_type,
    coefficient_of_variation,
    compute_gaps,
    detect_patterns,
    filter_patterns,
    group_transactions,
    merchant_key_for,
    summarize,
    typical_day_of_month,
)


def by_key(patterns):
    return {p.merchant_key: p for p in patterns}


class TestHelpers:
    """Test statistics helpers."""

    def test_compute_gaps(self):
        dates = [date(2024, 1, 1), date(2024, 1, 31), date(2024, 3, 1)]
        assert compute_gaps(dates) == [30, 30]

    def test_cv_constant(self):
        assert coefficient_of_variation([15.99, 15.99, 15.99]) == 0.0

    def test_cv_single_value(self):
        assert coefficient_of_variation([42.0]) == 0.0

    def test_cv_spread(self):
        assert coefficient_of_variation([50.0, 150.0]) == pytest.approx(0.5)

    def test_typical_day_of_month_tie(self):
        """The earliest day wins a tie."""
        dates = [date(2024, 1, 15), date(2024, 2, 3), date(2024, 3, 15), date(2024, 4, 3)]
        assert typical_day_of_month(dates) == 3


class TestGrouping:
    """Test grouping of expense transactions by merchant."""

    def test_income_ignored(self):
        txns = [
            TransactionRecord(id="1", date=date(2024, 1, 1), amount=2500.0, description="PAYROLL ACME"),
            TransactionRecord(id="2", date=date(2024, 1, 2), amount=-15.99, description="NETFLIX.COM"),
        ]
        groups = group_transactions(txns)
        assert list(groups) == ["netflix"]

    def test_empty_key_ignored(self):
        txns = [TransactionRecord(id="1", date=date(2024, 1, 1), amount=-5.0, description="#### 1234")]
        assert group_transactions(txns) == {}

    def test_group_sorted_by_date(self):
        txns = [
            TransactionRecord(id="b", date=date(2024, 2, 1), amount=-15.99, description="NETFLIX"),
            TransactionRecord(id="a", date=date(2024, 1, 1), amount=-15.99, description="NETFLIX"),
        ]
        group = group_transactions(txns)["netflix"]
        assert [t.id for t in group] == ["a", "b"]

    def test_ambiguous_merchant_bucketed_by_amount(self):
        """Unrelated charges at a marketplace merchant are kept apart."""
        prime = TransactionRecord(id="1", date=date(2024, 1, 1), amount=-14.99, description="AMZN Prime")
        order = TransactionRecord(id="2", date=date(2024, 1, 3), amount=-87.12, description="AMZN Mktp")
        assert merchant_key_for(prime) == "amazon ~15"
        assert merchant_key_for(order) == "amazon ~87"


class TestClassifyExpenseType:
    """Test expense type classification."""

    def test_subscription(self):
        assert classify_expense_type(30, 0.0) == ExpenseType.subscription

    def test_variable_recurring(self):
        assert classify_expense_type(30, 0.2) == ExpenseType.variable_recurring

    def test_seasonal(self):
        assert classify_expense_type(91, 0.05) == ExpenseType.seasonal

    @pytest.mark.parametrize("days,expected", [
        (25, ExpenseType.subscription),
        (35, ExpenseType.subscription),
        (35.4, ExpenseType.subscription),
        (35.5, ExpenseType.seasonal),
        (36, ExpenseType.seasonal),
        (100, ExpenseType.seasonal),
    ])
    def test_window_boundaries(self, days, expected):
        """Windows are inclusive and compared on the rounded period."""
        assert classify_expense_type(days, 0.0) == expected

    @pytest.mark.parametrize("days", [7, 14, 24, 101, 365])
    def test_outside_windows(self, days):
        assert classify_expense_type(days, 0.0) is None

    def test_confirmed_falls_to_nearest_type(self):
        assert classify_expense_type(14, 0.0, confirmed=True) == ExpenseType.variable_recurring
        assert classify_expense_type(365, 0.0, confirmed=True) == ExpenseType.seasonal


class TestCalculateConfidence:
    """Test confidence from count, gap regularity and amount stability."""

    def test_high(self):
        assert calculate_confidence(4, [30, 30, 30], 30, 0.0) == ConfidenceLevel.high

    def test_three_samples_is_medium(self):
        """Three perfect samples are not enough for high."""
        assert calculate_confidence(3, [30, 30], 30, 0.0) == ConfidenceLevel.medium

    def test_moderate_variance_is_medium(self):
        assert calculate_confidence(5, [30, 30, 30, 30], 30, 0.2) == ConfidenceLevel.medium

    def test_moderately_irregular_gaps_is_medium(self):
        assert calculate_confidence(5, [24, 36, 30, 31], 30.5, 0.0) == ConfidenceLevel.medium

    def test_wide_amount_variance_is_low(self):
        assert calculate_confidence(5, [30, 30, 30, 30], 30, 0.4) == ConfidenceLevel.low

    def test_irregular_gaps_is_low(self):
        assert calculate_confidence(3, [18, 42], 30, 0.0) == ConfidenceLevel.low


class TestDetectPatterns:
    """Test end-to-end detection over read models."""

    def test_monthly_subscription(self, make_records):
        txns = make_records("NETFLIX.COM 866-579-7172 CA", [15.99] * 4, category="Subscriptions", prefix="nf")
        patterns = detect_patterns(txns)

        assert len(patterns) == 1
        p = patterns[0]
        assert p.merchant_key == "netflix"
        assert p.merchant_display_name == "Netflix"
        assert p.expense_type == ExpenseType.subscription
        assert p.confidence == ConfidenceLevel.high
        assert p.priority == Priority.important
        assert p.frequency_days == 30
        assert p.typical_amount == pytest.approx(15.99)
        assert p.occurrence_count == 4
        assert p.typical_day_of_month == 4  # Jan 5, Feb 4, Mar 5, Apr 4
        assert p.sample_transaction_ids == ["nf-0", "nf-1", "nf-2", "nf-3"]

    def test_varying_reference_codes_group_together(self):
        """Bank reference letters that change per charge do not split the merchant."""
        refs = ["S584073000000000", "P461103000000000", "S302591000000000", "P118276000000000"]
        txns = [
            TransactionRecord(
                id=f"pf-{i}",
                date=date(2024, 1, 14) + timedelta(days=30 * i),
                amount=-24.99,
                description=f"PURCHASE AUTHORIZED ON 01/14 PLANET FITNESS 866-579-7172 CA {ref} CARD 4321",
            )
            for i, ref in enumerate(refs)
        ]

        patterns = detect_patterns(txns)

        assert [p.merchant_key for p in patterns] == ["planet fitness"]
        assert patterns[0].occurrence_count == 4
        assert patterns[0].expense_type == ExpenseType.subscription

    def test_two_occurrences_never_recurring(self, make_records):
        """Below the minimum occurrence count nothing is reported."""
        txns = make_records("NETFLIX.COM", [15.99, 15.99])
        assert detect_patterns(txns) == []

    def test_median_robust_to_one_outlier(self, make_records):
        """A single extreme amount does not move the typical amount."""
        txns = make_records("SOCAL EDISON", [100.0, 100.0, 10000.0, 100.0, 100.0])
        p = detect_patterns(txns)[0]
        assert p.typical_amount == pytest.approx(100.0)

    def test_variable_utility(self, make_records):
        txns = make_records("SOCAL EDISON CO", [80.0, 120.0, 95.0, 140.0])
        p = detect_patterns(txns)[0]
        assert p.expense_type == ExpenseType.variable_recurring
        assert p.priority == Priority.essential

    def test_quarterly_is_seasonal(self, make_records):
        txns = make_records("GEICO AUTO", [410.0, 410.0, 425.0], every=91)
        p = detect_patterns(txns)[0]
        assert p.expense_type == ExpenseType.seasonal
        assert p.typical_day_of_month is None

    def test_weekly_not_recurring(self, make_records):
        txns = make_records("STARBUCKS STORE 123", [5.5] * 8, every=7)
        assert detect_patterns(txns) == []

    def test_same_day_charges_not_recurring(self, make_records):
        txns = make_records("NETFLIX", [15.99] * 3, dates=[date(2024, 1, 5)] * 3)
        assert detect_patterns(txns) == []

    def test_contradictory_gaps_omitted(self, make_records):
        """Wildly irregular gaps are not a cadence even when the median looks monthly."""
        start = date(2024, 1, 1)
        offsets = [0, 5, 35, 66, 126, 131]
        txns = make_records("SHELL OIL", [40.0] * 6, dates=[start + timedelta(days=o) for o in offsets])
        assert detect_patterns(txns) == []

    def test_exclusion_correction_removes_pattern(self, make_records):
        txns = make_records("NETFLIX.COM", [15.99] * 4)
        assert detect_patterns(txns, corrections={"netflix": False}) == []

    def test_persisted_exclusion_removes_pattern(self, make_records):
        txns = make_records("NETFLIX.COM", [15.99] * 4)
        assert detect_patterns(txns, excluded_keys={"netflix"}) == []

    def test_confirmation_forces_high(self, make_records):
        txns = make_records("SOCAL EDISON", [80.0, 120.0, 95.0])
        p = detect_patterns(txns, corrections={"socal edison": True})[0]
        assert p.confidence == ConfidenceLevel.high
        assert p.user_confirmed is True

    def test_confirmation_beats_persisted_exclusion(self, make_records):
        """An explicit verdict takes precedence over flags pinned earlier."""
        txns = make_records("NETFLIX.COM", [15.99] * 4)
        patterns = detect_patterns(txns, corrections={"netflix": True}, excluded_keys={"netflix"})
        assert len(patterns) == 1

    def test_confirmed_biweekly_kept(self, make_records):
        txns = make_records("LAWN CARE PLUS", [45.0] * 4, every=14)
        assert detect_patterns(txns) == []

        p = detect_patterns(txns, corrections={"lawn care plus": True})[0]
        assert p.expense_type == ExpenseType.variable_recurring
        assert p.confidence == ConfidenceLevel.high

    def test_base_key_correction_covers_buckets(self, make_records):
        txns = make_records("AMZN Prime", [14.99] * 4)
        assert len(detect_patterns(txns)) == 1
        assert detect_patterns(txns, corrections={"amazon": False}) == []

    def test_independent_merchants(self, make_records):
        txns = (
            make_records("NETFLIX.COM", [15.99] * 4)
            + make_records("SPOTIFY USA", [10.99] * 3, start=date(2024, 1, 12))
        )
        patterns = by_key(detect_patterns(txns))
        assert set(patterns) == {"netflix", "spotify"}

    def test_deterministic(self, make_records):
        txns = make_records("NETFLIX.COM", [15.99] * 4) + make_records("SPOTIFY", [10.99] * 3)
        first = detect_patterns(txns)
        second = detect_patterns(list(reversed(txns)))
        assert [p.merchant_key for p in first] == [p.merchant_key for p in second]
        assert [p.typical_amount for p in first] == [p.typical_amount for p in second]


class TestFilterAndSummarize:
    """Test post-detection filters and the summary."""

    def _patterns(self, make_records):
        txns = (
            make_records("NETFLIX.COM", [15.99] * 4)
            + make_records("SOCAL EDISON", [80.0, 120.0, 95.0, 140.0])
        )
        return detect_patterns(txns)

    def test_filter_by_type(self, make_records):
        patterns = self._patterns(make_records)
        subs = filter_patterns(patterns, expense_type=ExpenseType.subscription)
        assert [p.merchant_key for p in subs] == ["netflix"]

    def test_filter_by_priority(self, make_records):
        patterns = self._patterns(make_records)
        essential = filter_patterns(patterns, priority=Priority.essential)
        assert [p.merchant_key for p in essential] == ["socal edison"]

    def test_summary_counts_and_cost(self, make_records):
        patterns = self._patterns(make_records)
        summary = summarize(patterns, transactions_analyzed=8)

        assert summary["total_recurring"] == 2
        assert summary["transactions_analyzed"] == 8
        assert summary["by_type"] == {"subscription": 1, "variable_recurring": 1, "seasonal": 0}
        assert summary["by_priority"]["essential"] == 1
        assert summary["by_priority"]["important"] == 1
        # 15.99 + median(80, 95, 120, 140) = 15.99 + 107.5, both on a 30 day cadence
        assert summary["total_monthly_cost"] == pytest.approx(123.49)
        assert summary["detection_run_at"] is not None

    def test_summary_empty(self):
        summary = summarize([], transactions_analyzed=0)
        assert summary["total_recurring"] == 0
        assert summary["total_monthly_cost"] == 0

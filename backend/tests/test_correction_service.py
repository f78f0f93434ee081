"""Tests for user corrections."""

import pytest

from app.exceptions import InvalidInput
from app.models.expense_correction import ExpenseCorrection
from app.models.recurring import ConfidenceLevel
from app.services.correction_service import (
    apply_correction,
    get_correction_table,
    list_corrections,
    mark_applied,
)


class TestApplyCorrection:
    """Test recording verdicts and pinning them on patterns."""

    def test_exclude_existing_pattern(self, db_session, sample_recurring_expense):
        correction = apply_correction(db_session, "netflix", False, note="Cancelled")

        db_session.refresh(sample_recurring_expense)
        assert sample_recurring_expense.user_excluded is True
        assert sample_recurring_expense.user_confirmed is False
        assert correction.applied is True
        assert correction.note == "Cancelled"

    def test_confirm_existing_pattern(self, db_session, sample_recurring_expense):
        sample_recurring_expense.confidence = ConfidenceLevel.low
        db_session.commit()

        apply_correction(db_session, "netflix", True)

        db_session.refresh(sample_recurring_expense)
        assert sample_recurring_expense.user_confirmed is True
        assert sample_recurring_expense.confidence == ConfidenceLevel.high

    def test_unknown_merchant_stays_pending(self, db_session):
        """A correction for a merchant not yet detected waits for the next pass."""
        correction = apply_correction(db_session, "lawn care plus", True)

        assert correction.applied is False
        assert get_correction_table(db_session) == {"lawn care plus": True}

    def test_replaces_earlier_verdict(self, db_session):
        apply_correction(db_session, "hulu", True)
        apply_correction(db_session, "hulu", False)

        assert db_session.query(ExpenseCorrection).count() == 1
        assert get_correction_table(db_session) == {"hulu": False}

    def test_key_is_trimmed(self, db_session):
        correction = apply_correction(db_session, "  hulu  ", False)
        assert correction.merchant_key == "hulu"

    @pytest.mark.parametrize("key", ["", "   ", None])
    def test_blank_key_rejected(self, db_session, key):
        with pytest.raises(InvalidInput):
            apply_correction(db_session, key, True)

    def test_non_bool_verdict_rejected(self, db_session):
        with pytest.raises(InvalidInput):
            apply_correction(db_session, "hulu", "yes")


class TestCorrectionQueries:
    """Test listing and consuming corrections."""

    def test_pending_only(self, db_session, sample_recurring_expense):
        apply_correction(db_session, "netflix", False)
        apply_correction(db_session, "hulu", True)

        pending = list_corrections(db_session, pending_only=True)
        assert [c.merchant_key for c in pending] == ["hulu"]
        assert len(list_corrections(db_session)) == 2

    def test_mark_applied(self, db_session):
        apply_correction(db_session, "hulu", True)
        mark_applied(db_session, "hulu")
        db_session.commit()

        assert list_corrections(db_session, pending_only=True) == []

"""
Tests for budget and due date thresholds.
"""

import pytest
from datetime import date
from decimal import Decimal

from trip_finance.models.finance import (
    AlertSeverity,
    BudgetStatus,
    DueItemStatus,
    DueUrgency,
    ExpenseCategory,
)
from trip_finance.summary.thresholds import (
    classify_budget,
    classify_due_date,
    upcoming_due_dates,
)

TODAY = date(2026, 1, 10)


class TestClassifyBudget:
    """Tests for classify_budget."""

    @pytest.mark.parametrize("total,expected", [
        ("0", BudgetStatus.ON_TRACK),
        ("79.99", BudgetStatus.ON_TRACK),
        ("79.999", BudgetStatus.ON_TRACK),
        ("80", BudgetStatus.NEAR_LIMIT),
        ("99.999", BudgetStatus.NEAR_LIMIT),
        ("100", BudgetStatus.OVER_BUDGET),
        ("150", BudgetStatus.OVER_BUDGET),
    ])
    def test_boundaries(self, total, expected):
        """Test exact boundaries against a ceiling of 100."""
        result = classify_budget(Decimal(total), Decimal("100"))
        assert result.status == expected

    def test_percentage(self):
        """Test the reported usage percentage."""
        result = classify_budget(Decimal("450"), Decimal("500"))
        assert result.percentage == Decimal("90")

    @pytest.mark.parametrize("ceiling", [None, Decimal("0")])
    def test_no_ceiling(self, ceiling):
        """Test that a missing or zero ceiling is not classified."""
        assert classify_budget(Decimal("100"), ceiling) is None

    def test_custom_warning_percentage(self):
        """Test a configured warning threshold."""
        result = classify_budget(
            Decimal("75"), Decimal("100"), warning_percentage=Decimal("70")
        )
        assert result.status == BudgetStatus.NEAR_LIMIT


class TestClassifyDueDate:
    """Tests for classify_due_date."""

    def test_overdue(self):
        """Test a due date in the past."""
        result = classify_due_date(date(2026, 1, 8), Decimal("100"), TODAY)
        assert result.urgency == DueUrgency.OVERDUE
        assert result.days_until_due == -2
        assert result.severity == AlertSeverity.CRITICAL

    def test_due_today_is_critical(self):
        """Test a due date of today."""
        result = classify_due_date(TODAY, Decimal("100"), TODAY)
        assert result.urgency == DueUrgency.UPCOMING
        assert result.days_until_due == 0
        assert result.severity == AlertSeverity.CRITICAL

    def test_two_days_is_critical(self):
        """Test the critical window edge."""
        result = classify_due_date(date(2026, 1, 12), Decimal("100"), TODAY)
        assert result.severity == AlertSeverity.CRITICAL

    def test_three_days_is_warning(self):
        """Test just outside the critical window."""
        result = classify_due_date(date(2026, 1, 13), Decimal("100"), TODAY)
        assert result.severity == AlertSeverity.WARNING

    def test_seven_days_is_upcoming(self):
        """Test the upcoming window edge."""
        result = classify_due_date(date(2026, 1, 17), Decimal("100"), TODAY)
        assert result.urgency == DueUrgency.UPCOMING
        assert result.days_until_due == 7
        assert result.severity == AlertSeverity.WARNING

    def test_eight_days_needs_no_alert(self):
        """Test just outside the upcoming window."""
        assert classify_due_date(date(2026, 1, 18), Decimal("100"), TODAY) is None

    def test_paid_category_is_skipped(self):
        """Test that nothing left to pay means no alert, even overdue."""
        assert classify_due_date(date(2026, 1, 1), Decimal("0"), TODAY) is None

    def test_no_due_date(self):
        """Test a category without due date."""
        assert classify_due_date(None, Decimal("100"), TODAY) is None


class TestUpcomingDueDates:
    """Tests for upcoming_due_dates."""

    def test_statuses_and_order(self):
        """Test every status, sorted by days until due."""
        categories = [
            ExpenseCategory(categoria="Normal", total="100", vencimento=date(2026, 2, 1)),
            ExpenseCategory(categoria="Soon", total="100", vencimento=date(2026, 1, 15)),
            ExpenseCategory(categoria="Overdue", total="100", vencimento=date(2026, 1, 5)),
            ExpenseCategory(categoria="Urgent", total="100", vencimento=date(2026, 1, 13)),
        ]
        items = upcoming_due_dates(categories, TODAY)
        assert [i.categoria for i in items] == ["Overdue", "Urgent", "Soon", "Normal"]
        assert [i.status for i in items] == [
            DueItemStatus.OVERDUE,
            DueItemStatus.URGENT,
            DueItemStatus.SOON,
            DueItemStatus.NORMAL,
        ]

    def test_skips_paid_and_undated(self):
        """Test that paid or undated categories are not listed."""
        categories = [
            ExpenseCategory(categoria="Paid", total="100", pago="100", vencimento=TODAY),
            ExpenseCategory(categoria="Undated", total="100"),
        ]
        assert upcoming_due_dates(categories, TODAY) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

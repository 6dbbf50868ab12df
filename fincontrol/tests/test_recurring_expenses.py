import unittest
from datetime import date
from decimal import Decimal

from fincontrol.recurring_expenses import (
    RecurringExpense,
    due_date_for_month,
    expense_status,
    plan_launch,
    summarize_expenses,
    validate_due_day,
)


def expense(expense_id: int, amount: str, due_day: int, **kwargs) -> RecurringExpense:
    return RecurringExpense(
        id=expense_id,
        description=f"Conta {expense_id}",
        amount=Decimal(amount),
        category="Streaming",
        due_day=due_day,
        **kwargs,
    )


class RecurringExpensesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.today = date(2024, 2, 15)

    def test_due_date_is_clamped_to_month_length(self) -> None:
        self.assertEqual(due_date_for_month(expense(1, "10", 31), 2024, 2), date(2024, 2, 29))

    def test_due_day_must_be_in_range(self) -> None:
        with self.assertRaises(ValueError):
            validate_due_day(0)
        with self.assertRaises(ValueError):
            validate_due_day(32)

    def test_status_tracks_launch_and_past_due(self) -> None:
        pending = expense_status(expense(1, "55.90", 10), self.today)
        launched = expense_status(
            expense(2, "100", 10, last_launched_at=date(2024, 2, 1)),
            self.today,
        )
        upcoming = expense_status(
            expense(3, "30", 20, last_launched_at=date(2024, 1, 20)),
            self.today,
        )

        self.assertTrue(pending.is_past_due)
        self.assertFalse(pending.is_launched_this_month)
        self.assertTrue(launched.is_launched_this_month)
        self.assertFalse(launched.is_past_due)
        self.assertFalse(upcoming.is_launched_this_month)
        self.assertFalse(upcoming.is_past_due)
        self.assertEqual(upcoming.due_date, date(2024, 2, 20))

    def test_summary_ignores_inactive_expenses(self) -> None:
        statuses = [
            expense_status(expense(1, "50", 5, last_launched_at=date(2024, 2, 5)), self.today),
            expense_status(expense(2, "30", 25), self.today),
            expense_status(expense(3, "999", 25, is_active=False), self.today),
        ]

        summary = summarize_expenses(statuses)

        self.assertEqual(summary.total_monthly, Decimal("80"))
        self.assertEqual(summary.total_launched, Decimal("50"))
        self.assertEqual(summary.total_pending, Decimal("30"))
        self.assertEqual((summary.active_count, summary.launched_count, summary.pending_count), (2, 1, 1))

    def test_plan_launch_skips_launched_and_inactive(self) -> None:
        expenses = [
            expense(1, "50", 5),
            expense(2, "30", 31),
            expense(3, "20", 10, last_launched_at=date(2024, 2, 10)),
            expense(4, "10", 10, is_active=False),
        ]

        entries = plan_launch(expenses, self.today)

        self.assertEqual([entry.expense_id for entry in entries], [1, 2])
        self.assertEqual(entries[1].date, date(2024, 2, 29))
        self.assertEqual(entries[0].amount, Decimal("50"))
        self.assertEqual(entries[0].description, "Conta 1")

    def test_plan_launch_restricts_to_selected_ids(self) -> None:
        expenses = [expense(1, "50", 5), expense(2, "30", 20)]

        entries = plan_launch(expenses, self.today, expense_ids=[2])

        self.assertEqual([entry.expense_id for entry in entries], [2])


if __name__ == "__main__":
    unittest.main()

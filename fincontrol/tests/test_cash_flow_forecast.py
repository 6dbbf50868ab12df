import unittest
from datetime import date
from decimal import Decimal

from fincontrol.cash_flow_forecast import (
    DueInvoice,
    IncomeRecord,
    ScheduledExpense,
    average_monthly_income,
    build_forecast,
    normalize_period,
)


class CashFlowForecastTests(unittest.TestCase):
    def setUp(self) -> None:
        self.today = date(2024, 2, 1)
        self.income = [
            IncomeRecord(amount=Decimal("4000"), date=date(2024, 1, 5)),
            IncomeRecord(amount=Decimal("4000"), date=date(2023, 12, 5)),
        ]
        self.recurring = [
            ScheduledExpense(amount=Decimal("1000"), due_day=10),
            ScheduledExpense(amount=Decimal("300"), due_day=31),
            ScheduledExpense(amount=Decimal("200")),
        ]
        self.invoices = [
            DueInvoice(due_date=date(2024, 2, 15), total=Decimal("3000"), paid_amount=Decimal("500")),
        ]

    def forecast(self):
        return build_forecast(Decimal("1000"), self.income, self.recurring, self.invoices, self.today)

    def test_average_income_counts_months_with_income(self) -> None:
        self.assertEqual(average_monthly_income(self.income, self.today), Decimal("4000"))
        self.assertEqual(average_monthly_income([], self.today), Decimal("0"))

    def test_daily_balances(self) -> None:
        result = self.forecast()
        points = {point.date: point for point in result.forecast}

        self.assertEqual(len(result.forecast), 30)
        self.assertEqual(points["2024-02-05"].balance, Decimal("3000"))
        self.assertEqual(points["2024-02-10"].expenses, Decimal("1200"))
        self.assertEqual(points["2024-02-15"].balance, Decimal("-700"))
        self.assertTrue(points["2024-02-15"].is_negative)
        self.assertEqual(points["2024-02-29"].expenses, Decimal("300"))
        self.assertEqual([point.label for point in result.forecast[:3]], ["Hoje", "Amanhã", "Sáb 03/02"])

    def test_summary(self) -> None:
        summary = self.forecast().summary

        self.assertEqual(summary.projected_end_balance, Decimal("1000"))
        self.assertEqual(summary.lowest_balance, Decimal("-700"))
        self.assertEqual(summary.lowest_balance_date, "2024-02-15")
        self.assertEqual(summary.total_expected_income, Decimal("4000"))
        self.assertEqual(summary.total_expected_expenses, Decimal("4000"))
        self.assertEqual(summary.days_until_negative, 14)

    def test_alerts_put_danger_first_and_are_capped(self) -> None:
        alerts = self.forecast().alerts

        self.assertEqual(len(alerts), 5)
        self.assertTrue(all(alert.type == "negative_balance" for alert in alerts))
        self.assertEqual(alerts[0].date, "2024-02-15")
        self.assertEqual(alerts[0].message, "Saldo projetado negativo")

    def test_high_expense_day_alert(self) -> None:
        result = build_forecast(Decimal("10000"), self.income, self.recurring, self.invoices, self.today)

        self.assertEqual([alert.type for alert in result.alerts], ["high_expense_day"])
        self.assertEqual(result.alerts[0].date, "2024-02-15")

    def test_period_normalization(self) -> None:
        self.assertEqual(normalize_period(45), 30)
        self.assertEqual(normalize_period(None), 30)
        self.assertEqual(normalize_period(90), 90)


if __name__ == "__main__":
    unittest.main()

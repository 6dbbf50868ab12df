import unittest
from decimal import Decimal

from fincontrol.financial_health import (
    TIP_DIVERSIFY,
    TIP_EMERGENCY,
    TIP_SAVINGS,
    BudgetUsage,
    GoalBalance,
    HealthInputs,
    Totals,
    assess_health,
    budget_adherence,
    credit_utilization,
    score_level,
)


class FinancialHealthTests(unittest.TestCase):
    def test_perfect_finances_score_maximum(self) -> None:
        inputs = HealthInputs(
            monthly=Totals(income=Decimal("10000"), expense=Decimal("5000")),
            yearly=Totals(income=Decimal("30000"), expense=Decimal("15000")),
            credit_limit=Decimal("10000"),
            credit_used=Decimal("0"),
            goals=[
                GoalBalance(
                    category="emergency",
                    target_value=Decimal("30000"),
                    current_value=Decimal("30000"),
                    is_completed=True,
                )
            ],
            investments_by_type={
                "stocks": Decimal("1000"),
                "fii": Decimal("1000"),
                "etf": Decimal("1000"),
                "cdb": Decimal("1000"),
                "crypto": Decimal("1000"),
            },
        )

        report = assess_health(inputs)

        self.assertEqual(report.score, 1000)
        self.assertEqual(report.level, "excellent")
        self.assertEqual(report.tips, [])
        self.assertEqual(report.details["emergency_fund"]["months_covered"], Decimal("6"))
        self.assertEqual(report.details["goals"]["completed"], 1)
        self.assertEqual(report.details["investments"]["total"], Decimal("5000"))

    def test_empty_finances_are_poor(self) -> None:
        inputs = HealthInputs(
            monthly=Totals(income=Decimal("0"), expense=Decimal("0")),
            yearly=Totals(income=Decimal("0"), expense=Decimal("0")),
        )

        report = assess_health(inputs)

        self.assertEqual(report.score, 350)
        self.assertEqual(report.level, "poor")
        self.assertEqual(report.tips, [TIP_SAVINGS, TIP_EMERGENCY, TIP_DIVERSIFY])
        self.assertEqual(report.details["savings_rate"]["monthly"]["rate"], Decimal("0"))

    def test_budget_adherence_penalizes_overspending(self) -> None:
        budgets = [
            BudgetUsage(limit=Decimal("100"), spent=Decimal("150")),
            BudgetUsage(limit=Decimal("100"), spent=Decimal("250")),
        ]

        self.assertEqual(budget_adherence(budgets), Decimal("25"))
        self.assertEqual(budget_adherence([]), Decimal("100"))

    def test_credit_utilization_without_limit(self) -> None:
        self.assertEqual(credit_utilization(Decimal("0"), Decimal("50")), Decimal("0"))
        self.assertEqual(credit_utilization(Decimal("1000"), Decimal("250")), Decimal("25"))

    def test_score_levels(self) -> None:
        self.assertEqual(score_level(800)[0], "excellent")
        self.assertEqual(score_level(600)[0], "good")
        self.assertEqual(score_level(599)[0], "fair")
        self.assertEqual(score_level(399)[0], "poor")


if __name__ == "__main__":
    unittest.main()

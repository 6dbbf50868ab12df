import unittest
from datetime import date
from decimal import Decimal

from fincontrol.budget_engine import (
    CARD_PAYMENT_CATEGORY,
    Budget,
    BudgetStatus,
    CardPurchase,
    Transaction,
    build_budget_alerts,
    classify_budget,
    danger_threshold,
    evaluate_budgets,
    resolve_active_budgets,
    spent_by_category,
    summarize_alerts,
)


def status(category: str, limit: str, spent: str) -> BudgetStatus:
    limit_value = Decimal(limit)
    spent_value = Decimal(spent)
    return BudgetStatus(
        budget=Budget(category=category, limit=limit_value, id=len(category)),
        spent=spent_value,
        percentage=spent_value / limit_value * 100,
        remaining=limit_value - spent_value,
    )


class BudgetEngineTests(unittest.TestCase):
    def test_month_budget_overrides_fixed_budget(self) -> None:
        budgets = [
            Budget(category="Supermercado", limit=Decimal("800"), id=1),
            Budget(category="Supermercado", limit=Decimal("600"), month=3, year=2024, id=2),
            Budget(category="Lazer", limit=Decimal("200"), id=3),
            Budget(category="Lazer", limit=Decimal("50"), month=4, year=2024, id=4),
        ]

        active = resolve_active_budgets(budgets, 3, 2024)

        self.assertEqual([budget.id for budget in active], [3, 2])

    def test_spent_excludes_card_payments_and_counts_purchases(self) -> None:
        transactions = [
            Transaction(amount=Decimal("120"), type="expense", date=date(2024, 3, 2), category="Supermercado"),
            Transaction(amount=Decimal("30"), type="expense", date=date(2024, 3, 31), category="Supermercado"),
            Transaction(amount=Decimal("500"), type="expense", date=date(2024, 3, 10), category=CARD_PAYMENT_CATEGORY),
            Transaction(amount=Decimal("999"), type="income", date=date(2024, 3, 5), category="Salário"),
            Transaction(amount=Decimal("75"), type="expense", date=date(2024, 4, 1), category="Supermercado"),
        ]
        purchases = [
            CardPurchase(amount=Decimal("45.50"), date=date(2024, 3, 15), category="Supermercado"),
            CardPurchase(amount=Decimal("10"), date=date(2024, 2, 28), category="Supermercado"),
        ]

        spent = spent_by_category(transactions, purchases, 3, 2024)

        self.assertEqual(spent, {"Supermercado": Decimal("195.50")})

    def test_evaluate_budgets_reports_negative_remaining(self) -> None:
        budgets = [Budget(category="Lazer", limit=Decimal("100"), id=7)]
        transactions = [
            Transaction(amount=Decimal("130"), type="expense", date=date(2024, 5, 4), category="Lazer"),
        ]

        [result] = evaluate_budgets(budgets, transactions, [], 5, 2024)

        self.assertEqual(result.spent, Decimal("130"))
        self.assertEqual(result.percentage, Decimal("130"))
        self.assertEqual(result.remaining, Decimal("-30"))

    def test_danger_threshold_is_halfway_to_limit(self) -> None:
        self.assertEqual(danger_threshold(Decimal("80")), Decimal("90"))
        self.assertEqual(danger_threshold(Decimal("50")), Decimal("75"))

    def test_classify_levels_and_messages(self) -> None:
        threshold = Decimal("80")

        self.assertEqual(classify_budget(Decimal("112.4"), threshold), ("exceeded", "Orçamento excedido em 12%"))
        self.assertEqual(classify_budget(Decimal("93"), threshold), ("danger", "Atenção! 7% restante"))
        self.assertEqual(classify_budget(Decimal("85"), threshold), ("warning", "15% restante do orçamento"))
        self.assertIsNone(classify_budget(Decimal("79.9"), threshold))

    def test_invalid_threshold_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            classify_budget(Decimal("50"), Decimal("120"))

    def test_alerts_sorted_by_level_then_percentage(self) -> None:
        statuses = [
            status("Lazer", "100", "82"),
            status("Restaurante", "100", "150"),
            status("Transporte", "100", "95"),
            status("Delivery", "100", "110"),
            status("Internet", "100", "10"),
        ]

        alerts = build_budget_alerts(statuses, Decimal("80"))

        self.assertEqual(
            [(alert.category, alert.level) for alert in alerts],
            [
                ("Restaurante", "exceeded"),
                ("Delivery", "exceeded"),
                ("Transporte", "danger"),
                ("Lazer", "warning"),
            ],
        )
        self.assertEqual(
            summarize_alerts(alerts),
            {"total_alerts": 4, "warning_count": 1, "danger_count": 1, "exceeded_count": 2},
        )


if __name__ == "__main__":
    unittest.main()

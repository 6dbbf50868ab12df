import unittest
from datetime import date
from decimal import Decimal

from fincontrol.card_billing import (
    CardPurchase,
    CreditCard,
    Invoice,
    LimitExceededError,
    apply_invoice_payment,
    available_limit,
    build_card_alerts,
    days_until_closing,
    ensure_within_limit,
    invoice_cycle,
    monthly_card_spending,
    payment_description,
    plan_installments,
    spending_by_category,
    split_installments,
)


def invoice(invoice_id: int, month: int, total: str, paid: str = "0", status: str = "open", **kwargs) -> Invoice:
    return Invoice(
        id=invoice_id,
        card_id=kwargs.get("card_id", 1),
        month=month,
        year=kwargs.get("year", 2024),
        status=status,
        total=Decimal(total),
        paid_amount=Decimal(paid),
        due_date=kwargs.get("due_date", date(2024, month, 12)),
    )


class InvoiceCycleTests(unittest.TestCase):
    def test_purchase_before_closing_lands_in_same_month(self) -> None:
        cycle = invoice_cycle(date(2024, 3, 3), closing_day=5, due_day=12)

        self.assertEqual((cycle.month, cycle.year), (3, 2024))
        self.assertEqual(cycle.closing_date, date(2024, 3, 5))
        self.assertEqual(cycle.due_date, date(2024, 3, 12))

    def test_purchase_after_closing_moves_to_next_cycle(self) -> None:
        cycle = invoice_cycle(date(2024, 3, 10), closing_day=5, due_day=12)

        self.assertEqual((cycle.month, cycle.year), (4, 2024))
        self.assertEqual(cycle.closing_date, date(2024, 4, 5))

    def test_due_day_before_closing_day_is_paid_next_month(self) -> None:
        cycle = invoice_cycle(date(2024, 3, 20), closing_day=25, due_day=5)
        later = invoice_cycle(date(2024, 3, 26), closing_day=25, due_day=5)

        self.assertEqual(cycle.due_date, date(2024, 4, 5))
        self.assertEqual(cycle.closing_date, date(2024, 3, 25))
        self.assertEqual(later.due_date, date(2024, 5, 5))
        self.assertEqual(later.closing_date, date(2024, 4, 25))

    def test_closing_date_is_clamped_to_short_months(self) -> None:
        cycle = invoice_cycle(date(2024, 2, 10), closing_day=31, due_day=10)

        self.assertEqual(cycle.closing_date, date(2024, 2, 29))
        self.assertEqual(cycle.due_date, date(2024, 3, 10))

    def test_cycle_days_are_validated(self) -> None:
        with self.assertRaises(ValueError):
            invoice_cycle(date(2024, 2, 10), closing_day=0, due_day=10)


class InstallmentTests(unittest.TestCase):
    def test_last_installment_absorbs_rounding(self) -> None:
        self.assertEqual(
            split_installments(Decimal("100"), 3),
            [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")],
        )

    def test_installment_count_bounds(self) -> None:
        with self.assertRaises(ValueError):
            split_installments(Decimal("100"), 0)
        with self.assertRaises(ValueError):
            split_installments(Decimal("100"), 49)

    def test_plan_assigns_each_installment_to_its_cycle(self) -> None:
        entries = plan_installments("TV", Decimal("300"), date(2024, 1, 31), 3, closing_day=5, due_day=12)

        self.assertEqual([entry.description for entry in entries], ["TV (1/3)", "TV (2/3)", "TV (3/3)"])
        self.assertEqual([(entry.cycle.month, entry.cycle.year) for entry in entries], [(2, 2024), (3, 2024), (4, 2024)])
        self.assertEqual(sum(entry.amount for entry in entries), Decimal("300"))

    def test_single_installment_keeps_description(self) -> None:
        [entry] = plan_installments("Mercado", Decimal("80"), date(2024, 1, 2), 1, closing_day=5, due_day=12)

        self.assertEqual(entry.description, "Mercado")
        self.assertEqual(entry.number, 1)


class LimitAndPaymentTests(unittest.TestCase):
    def setUp(self) -> None:
        self.card = CreditCard(id=1, name="Nubank", limit=Decimal("1000"), closing_day=10, due_day=12)
        self.invoices = [
            invoice(1, 3, "300", "100"),
            invoice(2, 4, "150", status="closed"),
            invoice(3, 2, "500", "500", status="paid"),
        ]

    def test_available_limit_counts_unpaid_balances(self) -> None:
        self.assertEqual(available_limit(self.card, self.invoices), Decimal("650"))

    def test_purchase_over_available_limit_is_rejected(self) -> None:
        ensure_within_limit(self.card, self.invoices, Decimal("650"))
        with self.assertRaises(LimitExceededError):
            ensure_within_limit(self.card, self.invoices, Decimal("650.01"))

    def test_marking_paid_settles_the_remaining_balance(self) -> None:
        payment = apply_invoice_payment(invoice(1, 3, "500", "100"), status="paid")

        self.assertEqual(payment.status, "paid")
        self.assertEqual(payment.paid_amount, Decimal("500"))
        self.assertEqual(payment.payment_amount, Decimal("400"))

    def test_partial_payment_records_only_the_increase(self) -> None:
        payment = apply_invoice_payment(invoice(1, 3, "500", "100"), paid_amount=Decimal("300"))

        self.assertEqual(payment.status, "open")
        self.assertEqual(payment.payment_amount, Decimal("200"))

    def test_lower_paid_amount_records_nothing(self) -> None:
        payment = apply_invoice_payment(invoice(1, 3, "500", "100"), paid_amount=Decimal("50"))

        self.assertEqual(payment.paid_amount, Decimal("100"))
        self.assertEqual(payment.payment_amount, Decimal("0"))

    def test_unknown_status_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            apply_invoice_payment(invoice(1, 3, "500"), status="lost")

    def test_payment_description_uses_month_name(self) -> None:
        self.assertEqual(payment_description("Nubank", 3, 2024), "Fatura Nubank - Março/2024")


class CardAnalyticsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.today = date(2024, 3, 8)
        self.card = CreditCard(id=1, name="Nubank", limit=Decimal("1000"), closing_day=10, due_day=12)

    def test_days_until_closing_wraps_around(self) -> None:
        self.assertEqual(days_until_closing(10, 5), 5)
        self.assertEqual(days_until_closing(5, 10), 25)

    def test_alerts_are_ordered_by_priority(self) -> None:
        alerts = build_card_alerts([self.card], [invoice(1, 3, "900", due_date=date(2024, 3, 12))], self.today)

        self.assertEqual([alert.type for alert in alerts], ["payment_due", "closing_soon", "high_usage"])
        self.assertEqual(alerts[0].message, "Fatura vence em 4 dias")
        self.assertEqual(alerts[0].value, Decimal("900"))
        self.assertEqual(alerts[1].message, "Fatura fecha em 2 dias")
        self.assertEqual(alerts[2].message, "Uso do limite em 90%")

    def test_paid_invoice_raises_no_payment_alert(self) -> None:
        alerts = build_card_alerts(
            [self.card],
            [invoice(1, 3, "200", "200", status="paid", due_date=date(2024, 3, 12))],
            date(2024, 3, 1),
        )

        self.assertEqual(alerts, [])

    def test_spending_by_category_sorted_by_total(self) -> None:
        purchases = [
            CardPurchase(card_id=1, amount=Decimal("30"), date=date(2024, 2, 1), category="Lazer"),
            CardPurchase(card_id=1, amount=Decimal("70"), date=date(2024, 2, 3), category="Supermercado"),
            CardPurchase(card_id=1, amount=Decimal("500"), date=date(2023, 1, 3), category="Roupas"),
        ]

        rows = spending_by_category(purchases, since=date(2023, 9, 1))

        self.assertEqual([row.category for row in rows], ["Supermercado", "Lazer"])
        self.assertEqual(rows[0].percentage, Decimal("70"))
        self.assertEqual(rows[1].transaction_count, 1)

    def test_monthly_spending_uses_invoices_for_future_months(self) -> None:
        purchases = [
            CardPurchase(card_id=1, amount=Decimal("100"), date=date(2024, 1, 10), category="Lazer"),
            CardPurchase(card_id=1, amount=Decimal("50"), date=date(2024, 3, 2), category="Lazer"),
            CardPurchase(card_id=1, amount=Decimal("80"), date=date(2024, 5, 2), category="Lazer"),
        ]
        invoices = [invoice(9, 5, "80")]

        months = monthly_card_spending([self.card], purchases, invoices, date(2024, 3, 15))

        self.assertEqual([item.month for item in months][0], "2024-01")
        self.assertEqual(len(months), 6)
        totals = {item.month: item.total for item in months}
        self.assertEqual(totals["2024-01"], Decimal("100"))
        self.assertEqual(totals["2024-02"], Decimal("0"))
        self.assertEqual(totals["2024-03"], Decimal("50"))
        self.assertEqual(totals["2024-05"], Decimal("80"))
        self.assertEqual(months[0].card_breakdown[0].card_name, "Nubank")


if __name__ == "__main__":
    unittest.main()

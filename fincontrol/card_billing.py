from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional

from fincontrol.periods import (
    MONTH_NAMES,
    MONTH_SHORT_NAMES,
    clamp_day,
    month_key,
    shift_month,
    shift_month_keep_day,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")
INVOICE_STATUSES = {"open", "closed", "paid", "overdue"}
UNPAID_STATUSES = {"open", "closed"}
MAX_INSTALLMENTS = 48
PAYMENT_DUE_WINDOW_DAYS = 5
CLOSING_SOON_DAYS = 3
HIGH_USAGE_PERCENT = Decimal("80")
ALERT_PRIORITY = {"payment_due": 0, "closing_soon": 1, "high_usage": 2}


class LimitExceededError(ValueError):
    """Raised when a purchase does not fit in the card's available limit."""


@dataclass(frozen=True)
class CreditCard:
    id: int
    name: str
    limit: Decimal
    closing_day: int
    due_day: int
    color: str = "#6366F1"
    is_active: bool = True


@dataclass(frozen=True)
class InvoiceCycle:
    month: int
    year: int
    closing_date: date
    due_date: date


@dataclass(frozen=True)
class Invoice:
    id: int
    card_id: int
    month: int
    year: int
    status: str
    total: Decimal
    paid_amount: Decimal
    due_date: date

    @property
    def outstanding(self) -> Decimal:
        return max(self.total - self.paid_amount, ZERO)

    @property
    def is_paid(self) -> bool:
        return self.status == "paid" or self.paid_amount >= self.total


@dataclass(frozen=True)
class InstallmentEntry:
    number: int
    count: int
    amount: Decimal
    description: str
    cycle: InvoiceCycle


@dataclass(frozen=True)
class InvoicePayment:
    status: str
    paid_amount: Decimal
    payment_amount: Decimal


@dataclass(frozen=True)
class CardPurchase:
    card_id: int
    amount: Decimal
    date: date
    category: str


@dataclass(frozen=True)
class CardAlert:
    type: str
    card_id: int
    card_name: str
    card_color: str
    message: str
    value: Optional[Decimal] = None
    days_until: Optional[int] = None


@dataclass(frozen=True)
class CategorySpending:
    category: str
    total: Decimal
    percentage: Decimal
    transaction_count: int


@dataclass(frozen=True)
class CardMonthTotal:
    card_id: int
    card_name: str
    card_color: str
    total: Decimal


@dataclass(frozen=True)
class MonthlyCardSpending:
    month: str
    month_label: str
    total: Decimal
    card_breakdown: List[CardMonthTotal] = field(default_factory=list)


def validate_cycle_days(closing_day: int, due_day: int) -> None:
    for label, value in (("Closing day", closing_day), ("Due day", due_day)):
        if value < 1 or value > 31:
            raise ValueError(f"{label} must be between 1 and 31.")


def cycle_for_due_month(month: int, year: int, closing_day: int, due_day: int) -> InvoiceCycle:
    """Closing and due dates of the invoice that is due in month/year."""
    validate_cycle_days(closing_day, due_day)
    due_date = clamp_day(year, month, due_day)
    closing_month = date(year, month, 1)
    if due_day <= closing_day:
        closing_month = shift_month(closing_month, -1)
    closing_date = clamp_day(closing_month.year, closing_month.month, closing_day)
    return InvoiceCycle(month=month, year=year, closing_date=closing_date, due_date=due_date)


def invoice_cycle(purchase_date: date, closing_day: int, due_day: int) -> InvoiceCycle:
    validate_cycle_days(closing_day, due_day)
    closing = date(purchase_date.year, purchase_date.month, 1)
    if purchase_date.day > closing_day:
        closing = shift_month(closing, 1)
    due = closing
    # Due day on or before the closing day means payment falls in the following month.
    if due_day <= closing_day:
        due = shift_month(due, 1)
    return cycle_for_due_month(due.month, due.year, closing_day, due_day)


def used_limit(invoices: Iterable[Invoice]) -> Decimal:
    return sum(
        (invoice.total - invoice.paid_amount for invoice in invoices if invoice.status in UNPAID_STATUSES),
        ZERO,
    )


def available_limit(card: CreditCard, invoices: Iterable[Invoice]) -> Decimal:
    return card.limit - used_limit(invoices)


def ensure_within_limit(card: CreditCard, invoices: Iterable[Invoice], amount: Decimal) -> None:
    if amount > available_limit(card, invoices):
        raise LimitExceededError("Compra excede o limite disponível")


def split_installments(amount: Decimal, count: int) -> List[Decimal]:
    if count < 1 or count > MAX_INSTALLMENTS:
        raise ValueError(f"Installments must be between 1 and {MAX_INSTALLMENTS}.")
    if amount <= ZERO:
        raise ValueError("Purchase value must be greater than zero.")
    base = (amount / count).quantize(CENT, rounding=ROUND_DOWN)
    parts = [base] * count
    parts[-1] = amount - base * (count - 1)
    return parts


def plan_installments(
    description: str,
    amount: Decimal,
    purchase_date: date,
    count: int,
    closing_day: int,
    due_day: int,
) -> List[InstallmentEntry]:
    entries: List[InstallmentEntry] = []
    for index, part in enumerate(split_installments(amount, count)):
        installment_date = shift_month_keep_day(purchase_date, index)
        label = f"{description} ({index + 1}/{count})" if count > 1 else description
        entries.append(
            InstallmentEntry(
                number=index + 1,
                count=count,
                amount=part,
                description=label,
                cycle=invoice_cycle(installment_date, closing_day, due_day),
            )
        )
    return entries


def apply_invoice_payment(
    invoice: Invoice,
    status: Optional[str] = None,
    paid_amount: Optional[Decimal] = None,
) -> InvoicePayment:
    if status is not None and status not in INVOICE_STATUSES:
        raise ValueError("Invalid invoice status.")
    if paid_amount is not None and paid_amount < ZERO:
        raise ValueError("Paid amount cannot be negative.")

    new_status = status or invoice.status
    new_paid = invoice.paid_amount
    payment_amount = ZERO
    if status == "paid":
        payment_amount = invoice.total - invoice.paid_amount
        new_paid = invoice.total
    if paid_amount is not None and paid_amount > invoice.paid_amount:
        payment_amount = paid_amount - invoice.paid_amount
        new_paid = paid_amount
    return InvoicePayment(
        status=new_status,
        paid_amount=new_paid,
        payment_amount=max(payment_amount, ZERO),
    )


def payment_description(card_name: str, month: int, year: int) -> str:
    return f"Fatura {card_name} - {MONTH_NAMES[month - 1]}/{year}"


def days_until_closing(closing_day: int, today_day: int) -> int:
    if closing_day >= today_day:
        return closing_day - today_day
    return 30 - today_day + closing_day


def build_card_alerts(
    cards: Iterable[CreditCard],
    invoices: Iterable[Invoice],
    today: date,
) -> List[CardAlert]:
    invoice_list = list(invoices)
    unpaid_by_card: dict[int, Decimal] = {}
    current_by_card: dict[int, Invoice] = {}
    for invoice in invoice_list:
        if invoice.status != "paid":
            unpaid_by_card[invoice.card_id] = unpaid_by_card.get(invoice.card_id, ZERO) + (
                invoice.total - invoice.paid_amount
            )
        if invoice.month == today.month and invoice.year == today.year:
            current_by_card[invoice.card_id] = invoice

    alerts: List[CardAlert] = []
    for card in cards:
        current = current_by_card.get(card.id)
        if current is not None:
            days_until_due = (current.due_date - today).days
            if (
                0 <= days_until_due <= PAYMENT_DUE_WINDOW_DAYS
                and current.status != "paid"
                and current.total > current.paid_amount
            ):
                alerts.append(
                    CardAlert(
                        type="payment_due",
                        card_id=card.id,
                        card_name=card.name,
                        card_color=card.color,
                        message=_countdown_message("Fatura vence", days_until_due),
                        value=current.total - current.paid_amount,
                        days_until=days_until_due,
                    )
                )

        closing_in = days_until_closing(card.closing_day, today.day)
        if closing_in <= CLOSING_SOON_DAYS:
            alerts.append(
                CardAlert(
                    type="closing_soon",
                    card_id=card.id,
                    card_name=card.name,
                    card_color=card.color,
                    message=_countdown_message("Fatura fecha", closing_in),
                    days_until=closing_in,
                )
            )

        used = unpaid_by_card.get(card.id, ZERO)
        usage = used / card.limit * HUNDRED if card.limit > ZERO else ZERO
        if usage >= HIGH_USAGE_PERCENT:
            alerts.append(
                CardAlert(
                    type="high_usage",
                    card_id=card.id,
                    card_name=card.name,
                    card_color=card.color,
                    message=f"Uso do limite em {usage.quantize(Decimal('1'), rounding=ROUND_HALF_UP)}%",
                    value=used,
                )
            )

    alerts.sort(key=lambda alert: ALERT_PRIORITY[alert.type])
    return alerts


def spending_by_category(purchases: Iterable[CardPurchase], since: date) -> List[CategorySpending]:
    totals: dict[str, Decimal] = {}
    counts: dict[str, int] = {}
    for purchase in purchases:
        if purchase.date < since:
            continue
        totals[purchase.category] = totals.get(purchase.category, ZERO) + purchase.amount
        counts[purchase.category] = counts.get(purchase.category, 0) + 1
    grand_total = sum(totals.values(), ZERO)
    rows = [
        CategorySpending(
            category=category,
            total=total,
            percentage=total / grand_total * HUNDRED if grand_total > ZERO else ZERO,
            transaction_count=counts[category],
        )
        for category, total in totals.items()
    ]
    rows.sort(key=lambda row: row.total, reverse=True)
    return rows


def monthly_card_spending(
    cards: Iterable[CreditCard],
    purchases: Iterable[CardPurchase],
    invoices: Iterable[Invoice],
    today: date,
) -> List[MonthlyCardSpending]:
    """Two past months, the current month and three future months.

    Past and current months are measured by purchase date; future months use
    the totals of invoices already generated by installments.
    """
    card_list = list(cards)
    purchase_index: dict[str, dict[int, Decimal]] = {}
    for purchase in purchases:
        bucket = purchase_index.setdefault(month_key(purchase.date), {})
        bucket[purchase.card_id] = bucket.get(purchase.card_id, ZERO) + purchase.amount
    invoice_index: dict[str, dict[int, Decimal]] = {}
    for invoice in invoices:
        bucket = invoice_index.setdefault(f"{invoice.year:04d}-{invoice.month:02d}", {})
        bucket[invoice.card_id] = bucket.get(invoice.card_id, ZERO) + invoice.total

    months: List[MonthlyCardSpending] = []
    for offset in range(-2, 4):
        month_value = shift_month(today, offset)
        key = month_key(month_value)
        source = purchase_index if offset <= 0 else invoice_index
        breakdown = [
            CardMonthTotal(
                card_id=card.id,
                card_name=card.name,
                card_color=card.color,
                total=source.get(key, {}).get(card.id, ZERO),
            )
            for card in card_list
            if source.get(key, {}).get(card.id, ZERO) > ZERO
        ]
        months.append(
            MonthlyCardSpending(
                month=key,
                month_label=MONTH_SHORT_NAMES[month_value.month - 1],
                total=sum((item.total for item in breakdown), ZERO),
                card_breakdown=breakdown,
            )
        )
    return months


def _countdown_message(prefix: str, days: int) -> str:
    if days == 0:
        return f"{prefix} HOJE!"
    return f"{prefix} em {days} dia{'s' if days != 1 else ''}"

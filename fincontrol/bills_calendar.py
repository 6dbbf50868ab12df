from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from fincontrol.budget_engine import CARD_PAYMENT_CATEGORY
from fincontrol.card_billing import CreditCard, Invoice
from fincontrol.periods import (
    MONTH_SHORT_NAMES,
    clamp_day,
    days_in_month,
    month_key,
    shift_month,
    shift_month_keep_day,
)
from fincontrol.recurring_expenses import RecurringExpense, is_launched_in_month

ZERO = Decimal("0")
PROJECTION_MONTHS = 3
AVERAGE_WINDOW_MONTHS = 3


@dataclass(frozen=True)
class LedgerItem:
    amount: Decimal
    type: str
    date: date
    category: Optional[str] = None


@dataclass(frozen=True)
class BillEvent:
    id: str
    type: str
    description: str
    value: Decimal
    category: str
    due_date: date
    day: int
    is_paid: bool
    is_past_due: bool
    card_name: Optional[str] = None
    card_color: Optional[str] = None


@dataclass(frozen=True)
class CalendarDay:
    day: int
    date: date
    bills: List[BillEvent]
    total: Decimal
    is_today: bool
    is_past: bool


@dataclass(frozen=True)
class CashFlowMonth:
    month: str
    month_label: str
    expected_income: Decimal
    expected_expenses: Decimal
    recurring_expenses: Decimal
    card_invoices: Decimal
    net_flow: Decimal


@dataclass(frozen=True)
class BillsSummary:
    total_bills: int
    total_value: Decimal
    total_pending: Decimal
    total_paid: Decimal
    overdue_count: int
    overdue_value: Decimal
    upcoming_count: int
    upcoming_value: Decimal
    total_invoices: Decimal
    invoice_count: int
    next_due: Optional[BillEvent]


@dataclass(frozen=True)
class BillsCalendar:
    month: int
    year: int
    calendar: List[CalendarDay] = field(default_factory=list)
    bills: List[BillEvent] = field(default_factory=list)
    cash_flow_projection: List[CashFlowMonth] = field(default_factory=list)
    summary: Optional[BillsSummary] = None


def collect_bills(
    recurring: Iterable[RecurringExpense],
    cards: Iterable[CreditCard],
    invoices: Iterable[Invoice],
    month: int,
    year: int,
    today: date,
) -> List[BillEvent]:
    is_current = today.month == month and today.year == year
    events: List[BillEvent] = []

    for expense in recurring:
        if not expense.is_active:
            continue
        launched = is_launched_in_month(expense, year, month)
        is_paid = is_current and launched
        events.append(
            BillEvent(
                id=str(expense.id),
                type="recurring",
                description=expense.description,
                value=expense.amount,
                category=expense.category,
                due_date=clamp_day(year, month, expense.due_day),
                day=expense.due_day,
                is_paid=is_paid,
                is_past_due=is_current and today.day > expense.due_day and not launched,
            )
        )

    invoice_index = {
        (invoice.card_id, invoice.month, invoice.year): invoice for invoice in invoices
    }
    for card in cards:
        if not card.is_active:
            continue
        invoice = invoice_index.get((card.id, month, year))
        if invoice is None:
            events.append(
                BillEvent(
                    id=f"{card.id}-{month}-{year}",
                    type="invoice",
                    description=f"Fatura {card.name}",
                    value=ZERO,
                    category=CARD_PAYMENT_CATEGORY,
                    due_date=clamp_day(year, month, card.due_day),
                    day=card.due_day,
                    is_paid=False,
                    is_past_due=False,
                    card_name=card.name,
                    card_color=card.color,
                )
            )
            continue
        if invoice.total <= ZERO:
            continue
        is_paid = invoice.is_paid
        events.append(
            BillEvent(
                id=str(invoice.id),
                type="invoice",
                description=f"Fatura {card.name}",
                value=invoice.total - invoice.paid_amount,
                category=CARD_PAYMENT_CATEGORY,
                due_date=invoice.due_date,
                day=card.due_day,
                is_paid=is_paid,
                is_past_due=is_current and today.day > card.due_day and not is_paid,
                card_name=card.name,
                card_color=card.color,
            )
        )
    return events


def build_calendar(bills: List[BillEvent], month: int, year: int, today: date) -> List[CalendarDay]:
    is_current = today.month == month and today.year == year
    month_begins_before_today = date(year, month, 1) < today
    days: List[CalendarDay] = []
    for day in range(1, days_in_month(year, month) + 1):
        day_bills = [bill for bill in bills if bill.day == day]
        days.append(
            CalendarDay(
                day=day,
                date=date(year, month, day),
                bills=day_bills,
                total=sum((bill.value for bill in day_bills), ZERO),
                is_today=is_current and day == today.day,
                is_past=day < today.day if is_current else month_begins_before_today,
            )
        )
    return days


def project_cash_flow(
    ledger: Iterable[LedgerItem],
    recurring: Iterable[RecurringExpense],
    invoices: Iterable[Invoice],
    today: date,
) -> List[CashFlowMonth]:
    window_start = shift_month_keep_day(today, -AVERAGE_WINDOW_MONTHS)
    income = ZERO
    expenses = ZERO
    for item in ledger:
        if not window_start <= item.date <= today:
            continue
        if item.type == "income":
            income += item.amount
        elif item.type == "expense" and item.category != CARD_PAYMENT_CATEGORY:
            expenses += item.amount
    average_income = income / AVERAGE_WINDOW_MONTHS
    average_expenses = expenses / AVERAGE_WINDOW_MONTHS
    recurring_total = sum((expense.amount for expense in recurring if expense.is_active), ZERO)
    invoice_list = list(invoices)

    projection: List[CashFlowMonth] = []
    for offset in range(PROJECTION_MONTHS):
        month_value = shift_month(today, offset)
        card_total = sum(
            (
                invoice.total - invoice.paid_amount
                for invoice in invoice_list
                if invoice.month == month_value.month and invoice.year == month_value.year
            ),
            ZERO,
        )
        expected_expenses = average_expenses + recurring_total + card_total
        projection.append(
            CashFlowMonth(
                month=month_key(month_value),
                month_label=f"{MONTH_SHORT_NAMES[month_value.month - 1]} {month_value.year}",
                expected_income=average_income,
                expected_expenses=expected_expenses,
                recurring_expenses=recurring_total,
                card_invoices=card_total,
                net_flow=average_income - expected_expenses,
            )
        )
    return projection


def summarize_bills(bills: List[BillEvent], month: int, year: int, today: date) -> BillsSummary:
    is_current = today.month == month and today.year == year
    pending = [bill for bill in bills if not bill.is_paid]
    paid = [bill for bill in bills if bill.is_paid]
    overdue = [bill for bill in bills if bill.is_past_due]
    if is_current:
        upcoming = [bill for bill in pending if not bill.is_past_due and bill.day >= today.day]
    else:
        upcoming = pending
    invoice_bills = [bill for bill in bills if bill.type == "invoice"]
    ordered_upcoming = sorted(upcoming, key=lambda bill: bill.day)
    return BillsSummary(
        total_bills=len(bills),
        total_value=_total(bills),
        total_pending=_total(pending),
        total_paid=_total(paid),
        overdue_count=len(overdue),
        overdue_value=_total(overdue),
        upcoming_count=len(upcoming),
        upcoming_value=_total(upcoming),
        total_invoices=_total(invoice_bills),
        invoice_count=len(invoice_bills),
        next_due=ordered_upcoming[0] if ordered_upcoming else None,
    )


def build_bills_calendar(
    recurring: Iterable[RecurringExpense],
    cards: Iterable[CreditCard],
    invoices: Iterable[Invoice],
    ledger: Iterable[LedgerItem],
    month: int,
    year: int,
    today: date,
) -> BillsCalendar:
    if month < 1 or month > 12:
        raise ValueError("Month must be between 1 and 12.")
    recurring_list = list(recurring)
    invoice_list = [
        invoice
        for invoice in invoices
        if invoice.status in {"open", "closed"} or (invoice.month == month and invoice.year == year)
    ]
    bills = collect_bills(recurring_list, cards, invoice_list, month, year, today)
    return BillsCalendar(
        month=month,
        year=year,
        calendar=build_calendar(bills, month, year, today),
        bills=bills,
        cash_flow_projection=project_cash_flow(ledger, recurring_list, invoice_list, today),
        summary=summarize_bills(bills, month, year, today),
    )


def _total(bills: Iterable[BillEvent]) -> Decimal:
    return sum((bill.value for bill in bills), ZERO)

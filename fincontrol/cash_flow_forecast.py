from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from fincontrol.periods import WEEKDAY_SHORT_NAMES, day_key, days_in_month, month_key, shift_month, weekday_index

ZERO = Decimal("0")
PERIODS = (30, 60, 90)
DEFAULT_PERIOD = 30
INCOME_DAYS = (5, 20)
DEFAULT_DUE_DAY = 10
INCOME_WINDOW_MONTHS = 6
MIN_LOW_BALANCE = Decimal("500")
LOW_BALANCE_SHARE = Decimal("0.2")
HIGH_EXPENSE_SHARE = Decimal("0.3")
MAX_ALERTS = 5

ALERT_MESSAGES = {
    "negative_balance": "Saldo projetado negativo",
    "low_balance": "Saldo projetado baixo",
    "high_expense_day": "Dia com despesas elevadas",
}


@dataclass(frozen=True)
class IncomeRecord:
    amount: Decimal
    date: date


@dataclass(frozen=True)
class ScheduledExpense:
    amount: Decimal
    due_day: Optional[int] = None


@dataclass(frozen=True)
class DueInvoice:
    due_date: date
    total: Decimal
    paid_amount: Decimal = ZERO


@dataclass(frozen=True)
class ForecastPoint:
    date: str
    label: str
    balance: Decimal
    income: Decimal
    expenses: Decimal
    is_negative: bool


@dataclass(frozen=True)
class ForecastAlert:
    type: str
    date: str
    projected_balance: Decimal
    message: str
    severity: str


@dataclass(frozen=True)
class ForecastSummary:
    current_balance: Decimal
    projected_end_balance: Decimal
    lowest_balance: Decimal
    lowest_balance_date: str
    total_expected_income: Decimal
    total_expected_expenses: Decimal
    days_until_negative: Optional[int]


@dataclass(frozen=True)
class CashFlowForecast:
    period: int
    forecast: List[ForecastPoint] = field(default_factory=list)
    alerts: List[ForecastAlert] = field(default_factory=list)
    summary: Optional[ForecastSummary] = None


def normalize_period(value: Optional[int]) -> int:
    return value if value in PERIODS else DEFAULT_PERIOD


def average_monthly_income(income: Iterable[IncomeRecord], today: date) -> Decimal:
    """Average over the months that actually had income in the trailing window."""
    since = shift_month(today, -INCOME_WINDOW_MONTHS)
    by_month: dict[str, Decimal] = {}
    for record in income:
        if record.date < since:
            continue
        key = month_key(record.date)
        by_month[key] = by_month.get(key, ZERO) + record.amount
    if not by_month:
        return ZERO
    return sum(by_month.values(), ZERO) / len(by_month)


def day_label(offset: int, value: date) -> str:
    if offset == 0:
        return "Hoje"
    if offset == 1:
        return "Amanhã"
    return f"{WEEKDAY_SHORT_NAMES[weekday_index(value)]} {value.strftime('%d/%m')}"


def build_forecast(
    current_balance: Decimal,
    income: Iterable[IncomeRecord],
    recurring: Iterable[ScheduledExpense],
    invoices: Iterable[DueInvoice],
    today: date,
    days: Optional[int] = DEFAULT_PERIOD,
) -> CashFlowForecast:
    period = normalize_period(days)
    average_income = average_monthly_income(income, today)
    income_per_day = average_income / len(INCOME_DAYS)

    recurring_by_day: dict[int, Decimal] = {}
    recurring_total = ZERO
    for expense in recurring:
        due_day = expense.due_day or DEFAULT_DUE_DAY
        recurring_by_day[due_day] = recurring_by_day.get(due_day, ZERO) + expense.amount
        recurring_total += expense.amount

    invoices_by_date: dict[date, Decimal] = {}
    for invoice in invoices:
        remaining = max(invoice.total - invoice.paid_amount, ZERO)
        if remaining > ZERO:
            invoices_by_date[invoice.due_date] = invoices_by_date.get(invoice.due_date, ZERO) + remaining

    low_threshold = max(MIN_LOW_BALANCE, recurring_total * LOW_BALANCE_SHARE)
    high_expense_limit = average_income * HIGH_EXPENSE_SHARE

    points: List[ForecastPoint] = []
    alerts: List[ForecastAlert] = []
    running = current_balance
    lowest = current_balance
    lowest_date = day_key(today)
    days_until_negative: Optional[int] = None
    total_income = ZERO
    total_expenses = ZERO

    for offset in range(period):
        current = today + timedelta(days=offset)
        key = day_key(current)
        day_income = income_per_day if current.day in INCOME_DAYS else ZERO
        day_expenses = _recurring_due(recurring_by_day, current) + invoices_by_date.get(current, ZERO)
        total_income += day_income
        total_expenses += day_expenses
        running = running + day_income - day_expenses

        if running < lowest:
            lowest = running
            lowest_date = key
        if running < ZERO and days_until_negative is None:
            days_until_negative = offset

        if running < ZERO:
            alerts.append(_alert("negative_balance", key, running, "danger"))
        elif running < low_threshold:
            alerts.append(_alert("low_balance", key, running, "warning"))
        if day_expenses > ZERO and day_expenses > high_expense_limit:
            alerts.append(_alert("high_expense_day", key, running, "warning"))

        points.append(
            ForecastPoint(
                date=key,
                label=day_label(offset, current),
                balance=running,
                income=day_income,
                expenses=day_expenses,
                is_negative=running < ZERO,
            )
        )

    alerts.sort(key=lambda alert: (alert.severity != "danger", alert.date))
    return CashFlowForecast(
        period=period,
        forecast=points,
        alerts=alerts[:MAX_ALERTS],
        summary=ForecastSummary(
            current_balance=current_balance,
            projected_end_balance=running,
            lowest_balance=lowest,
            lowest_balance_date=lowest_date,
            total_expected_income=total_income,
            total_expected_expenses=total_expenses,
            days_until_negative=days_until_negative,
        ),
    )


def _recurring_due(recurring_by_day: dict[int, Decimal], current: date) -> Decimal:
    # Due days past the end of a short month fall on its last day.
    last_day = days_in_month(current.year, current.month)
    if current.day < last_day:
        return recurring_by_day.get(current.day, ZERO)
    return sum((amount for day, amount in recurring_by_day.items() if day >= last_day), ZERO)


def _alert(alert_type: str, key: str, balance: Decimal, severity: str) -> ForecastAlert:
    return ForecastAlert(
        type=alert_type,
        date=key,
        projected_balance=balance,
        message=ALERT_MESSAGES[alert_type],
        severity=severity,
    )

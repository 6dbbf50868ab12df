from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from fincontrol.periods import (
    WEEKDAY_SHORT_NAMES,
    day_key,
    month_key,
    month_label,
    month_start,
    shift_month,
    weekday_index,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
PERIODS = ("1w", "1m", "3m", "6m", "1y")
DEFAULT_PERIOD = "1y"
DAILY_PERIODS = {"1w", "1m"}


@dataclass(frozen=True)
class LedgerMovement:
    amount: Decimal
    type: str
    date: date


@dataclass(frozen=True)
class OperationMovement:
    total: Decimal
    type: str
    date: date


@dataclass(frozen=True)
class OutstandingInvoice:
    month: int
    year: int
    total: Decimal
    paid_amount: Decimal


@dataclass(frozen=True)
class WealthPoint:
    key: str
    label: str
    transaction_balance: Decimal
    investment_value: Decimal
    card_debt: Decimal
    goals_saved: Decimal
    total_wealth: Decimal


@dataclass(frozen=True)
class WealthSummary:
    current_wealth: Decimal
    transaction_balance: Decimal
    investment_value: Decimal
    goals_saved: Decimal
    card_debt: Decimal
    wealth_change: Decimal
    wealth_change_percent: Decimal


@dataclass(frozen=True)
class WealthEvolution:
    period: str
    evolution: List[WealthPoint] = field(default_factory=list)
    summary: Optional[WealthSummary] = None


def normalize_period(value: Optional[str]) -> str:
    normalized = (value or "").strip().lower()
    return normalized if normalized in PERIODS else DEFAULT_PERIOD


def period_start(period: str, today: date) -> date:
    if period == "1w":
        return today - timedelta(days=7)
    if period == "1m":
        return today - timedelta(days=30)
    if period == "3m":
        return shift_month(today, -3)
    if period == "6m":
        return shift_month(today, -6)
    if period == "1y":
        return date(today.year - 1, today.month, 1)
    raise ValueError(f"Unsupported period: {period}")


def bucket_dates(period: str, start_date: date, today: date) -> List[date]:
    buckets: List[date] = []
    if period in DAILY_PERIODS:
        cursor = start_date
        while cursor <= today:
            buckets.append(cursor)
            cursor += timedelta(days=1)
    else:
        cursor = month_start(start_date)
        while cursor <= today:
            buckets.append(cursor)
            cursor = shift_month(cursor, 1)
    return buckets


def bucket_label(period: str, value: date) -> str:
    if period == "1w":
        return f"{WEEKDAY_SHORT_NAMES[weekday_index(value)]} {value.day}"
    if period == "1m":
        return value.strftime("%d/%m")
    return month_label(value)


def ledger_delta(movement: LedgerMovement) -> Decimal:
    return movement.amount if movement.type == "income" else -movement.amount


def operation_delta(movement: OperationMovement) -> Decimal:
    if movement.type in {"buy", "deposit"}:
        return movement.total
    if movement.type in {"sell", "withdraw"}:
        return -movement.total
    return ZERO


def build_wealth_evolution(
    period: str,
    today: date,
    ledger: Iterable[LedgerMovement],
    operations: Iterable[OperationMovement],
    invoices: Iterable[OutstandingInvoice],
    goals_saved: Decimal,
) -> WealthEvolution:
    period = normalize_period(period)
    start_date = period_start(period, today)
    daily = period in DAILY_PERIODS
    buckets = bucket_dates(period, start_date, today)

    def key_for(value: date) -> str:
        return day_key(value) if daily else month_key(value)

    opening_balance = ZERO
    ledger_deltas: dict[str, Decimal] = {}
    for movement in ledger:
        if movement.date < start_date:
            opening_balance += ledger_delta(movement)
        elif movement.date <= today:
            key = key_for(movement.date)
            ledger_deltas[key] = ledger_deltas.get(key, ZERO) + ledger_delta(movement)

    opening_investment = ZERO
    operation_deltas: dict[str, Decimal] = {}
    for movement in operations:
        if movement.date < start_date:
            opening_investment += operation_delta(movement)
        elif movement.date <= today:
            key = key_for(movement.date)
            operation_deltas[key] = operation_deltas.get(key, ZERO) + operation_delta(movement)

    debt_by_month: dict[tuple[int, int], Decimal] = {}
    for invoice in invoices:
        debt = max(invoice.total - invoice.paid_amount, ZERO)
        month_id = (invoice.year, invoice.month)
        debt_by_month[month_id] = debt_by_month.get(month_id, ZERO) + debt

    points: List[WealthPoint] = []
    running_balance = opening_balance
    running_investment = opening_investment
    for bucket in buckets:
        key = key_for(bucket)
        running_balance += ledger_deltas.get(key, ZERO)
        running_investment += operation_deltas.get(key, ZERO)
        card_debt = sum(
            (debt for month_id, debt in debt_by_month.items() if month_id <= (bucket.year, bucket.month)),
            ZERO,
        )
        points.append(
            WealthPoint(
                key=key,
                label=bucket_label(period, bucket),
                transaction_balance=running_balance,
                investment_value=running_investment,
                card_debt=card_debt,
                goals_saved=goals_saved,
                total_wealth=running_balance + running_investment + goals_saved - card_debt,
            )
        )

    return WealthEvolution(period=period, evolution=points, summary=summarize(points))


def summarize(points: List[WealthPoint]) -> WealthSummary:
    if not points:
        return WealthSummary(ZERO, ZERO, ZERO, ZERO, ZERO, ZERO, ZERO)
    current = points[-1]
    change = ZERO
    change_percent = ZERO
    if len(points) > 1:
        previous = points[-2]
        change = current.total_wealth - previous.total_wealth
        if previous.total_wealth != ZERO:
            change_percent = change / abs(previous.total_wealth) * HUNDRED
    return WealthSummary(
        current_wealth=current.total_wealth,
        transaction_balance=current.transaction_balance,
        investment_value=current.investment_value,
        goals_saved=current.goals_saved,
        card_debt=current.card_debt,
        wealth_change=change,
        wealth_change_percent=change_percent,
    )

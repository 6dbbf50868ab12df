from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from fincontrol.periods import clamp_day

ZERO = Decimal("0")


@dataclass(frozen=True)
class RecurringExpense:
    id: int
    description: str
    amount: Decimal
    category: str
    due_day: int
    is_active: bool = True
    last_launched_at: Optional[date] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class RecurringStatus:
    expense: RecurringExpense
    due_date: date
    is_launched_this_month: bool
    is_past_due: bool


@dataclass(frozen=True)
class RecurringSummary:
    total_monthly: Decimal
    total_launched: Decimal
    total_pending: Decimal
    active_count: int
    launched_count: int
    pending_count: int


@dataclass(frozen=True)
class LaunchEntry:
    expense_id: int
    date: date
    amount: Decimal
    category: str
    description: str


def validate_due_day(due_day: int) -> int:
    if due_day < 1 or due_day > 31:
        raise ValueError("Due day must be between 1 and 31.")
    return due_day


def due_date_for_month(expense: RecurringExpense, year: int, month: int) -> date:
    return clamp_day(year, month, validate_due_day(expense.due_day))


def is_launched_in_month(expense: RecurringExpense, year: int, month: int) -> bool:
    launched = expense.last_launched_at
    return launched is not None and launched.year == year and launched.month == month


def expense_status(expense: RecurringExpense, today: date) -> RecurringStatus:
    launched = is_launched_in_month(expense, today.year, today.month)
    return RecurringStatus(
        expense=expense,
        due_date=due_date_for_month(expense, today.year, today.month),
        is_launched_this_month=launched,
        is_past_due=today.day > expense.due_day and not launched,
    )


def summarize_expenses(statuses: Iterable[RecurringStatus]) -> RecurringSummary:
    total_monthly = ZERO
    total_launched = ZERO
    active_count = 0
    launched_count = 0
    for status in statuses:
        if not status.expense.is_active:
            continue
        active_count += 1
        total_monthly += _coerce_amount(status.expense.amount)
        if status.is_launched_this_month:
            launched_count += 1
            total_launched += _coerce_amount(status.expense.amount)
    return RecurringSummary(
        total_monthly=total_monthly,
        total_launched=total_launched,
        total_pending=total_monthly - total_launched,
        active_count=active_count,
        launched_count=launched_count,
        pending_count=active_count - launched_count,
    )


def plan_launch(
    expenses: Iterable[RecurringExpense],
    today: date,
    expense_ids: Iterable[int] | None = None,
) -> List[LaunchEntry]:
    """Ledger entries for active expenses not yet launched in today's month."""
    selected = set(expense_ids) if expense_ids is not None else None
    entries: List[LaunchEntry] = []
    for expense in expenses:
        if not expense.is_active:
            continue
        if selected is not None and expense.id not in selected:
            continue
        if is_launched_in_month(expense, today.year, today.month):
            continue
        entries.append(
            LaunchEntry(
                expense_id=expense.id,
                date=due_date_for_month(expense, today.year, today.month),
                amount=_coerce_amount(expense.amount),
                category=expense.category,
                description=expense.description,
            )
        )
    return entries


def _coerce_amount(amount: Decimal) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))

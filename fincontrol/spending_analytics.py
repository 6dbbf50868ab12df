from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from fincontrol.periods import (
    MONTH_SHORT_NAMES,
    WEEKDAY_NAMES,
    days_in_month,
    iter_months,
    month_key,
    shift_month,
    shift_month_keep_day,
    weekday_index,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
TREND_WINDOW_MONTHS = 6
TOP_CATEGORY_LIMIT = 10
INSIGHT_THRESHOLD = Decimal("20")


@dataclass(frozen=True)
class Transaction:
    amount: Decimal
    type: str
    date: date
    category: Optional[str] = None


@dataclass(frozen=True)
class PeriodTotals:
    income: Decimal
    expense: Decimal
    balance: Decimal


@dataclass(frozen=True)
class MonthTotals:
    month: str
    income: Decimal
    expense: Decimal
    balance: Decimal


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total: Decimal
    percentage: Decimal
    count: int


@dataclass(frozen=True)
class SpendingTrend:
    trend: Decimal
    recent_average: Decimal
    older_average: Decimal


@dataclass(frozen=True)
class DayOfWeekPattern:
    day_of_week: int
    day_name: str
    total_expenses: Decimal
    transaction_count: int
    average_transaction: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class CategoryTrend:
    category: str
    months: List[dict]
    trend: Decimal
    average: Decimal


@dataclass(frozen=True)
class SpendingVelocity:
    spent: Decimal
    daily_average: Decimal
    days_elapsed: int
    projected_total: Decimal
    vs_last_month: Decimal
    vs_same_month_last_year: Decimal


@dataclass(frozen=True)
class YearComparison:
    current_year: int
    previous_year: int
    months: List[dict]
    totals: dict


@dataclass(frozen=True)
class Insight:
    type: str
    title: str
    description: str
    value: Optional[Decimal] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class AnalyticsReport:
    day_of_week_patterns: List[DayOfWeekPattern] = field(default_factory=list)
    category_trends: List[CategoryTrend] = field(default_factory=list)
    spending_velocity: Optional[SpendingVelocity] = None
    year_comparison: Optional[YearComparison] = None
    insights: List[Insight] = field(default_factory=list)


def period_totals(transactions: Iterable[Transaction], start_date: date, end_date: date) -> PeriodTotals:
    if start_date > end_date:
        raise ValueError("start_date must be on or before end_date.")
    income = ZERO
    expense = ZERO
    for txn in transactions:
        if not start_date <= txn.date <= end_date:
            continue
        if txn.type == "income":
            income += txn.amount
        elif txn.type == "expense":
            expense += txn.amount
    return PeriodTotals(income=income, expense=expense, balance=income - expense)


def monthly_totals(transactions: Iterable[Transaction], start_date: date, end_date: date) -> List[MonthTotals]:
    if start_date > end_date:
        raise ValueError("start_date must be on or before end_date.")
    buckets = {month_key(month): [ZERO, ZERO] for month in iter_months(start_date, end_date)}
    for txn in transactions:
        if not start_date <= txn.date <= end_date:
            continue
        bucket = buckets[month_key(txn.date)]
        if txn.type == "income":
            bucket[0] += txn.amount
        elif txn.type == "expense":
            bucket[1] += txn.amount
    return [
        MonthTotals(month=key, income=income, expense=expense, balance=income - expense)
        for key, (income, expense) in buckets.items()
    ]


def category_totals(
    transactions: Iterable[Transaction],
    start_date: date,
    end_date: date,
    transaction_type: str = "expense",
) -> List[CategoryTotal]:
    totals: dict[str, Decimal] = {}
    counts: dict[str, int] = {}
    for txn in transactions:
        if txn.type != transaction_type or not start_date <= txn.date <= end_date:
            continue
        category = txn.category or "Outros"
        totals[category] = totals.get(category, ZERO) + txn.amount
        counts[category] = counts.get(category, 0) + 1
    grand_total = sum(totals.values(), ZERO)
    rows = [
        CategoryTotal(
            category=category,
            total=total,
            percentage=_ratio(total, grand_total),
            count=counts[category],
        )
        for category, total in totals.items()
    ]
    rows.sort(key=lambda row: row.total, reverse=True)
    return rows


def spending_trend(transactions: Iterable[Transaction], today: date, months: int = TREND_WINDOW_MONTHS) -> SpendingTrend:
    """Compare average monthly expenses of the recent half of the window to the older half."""
    totals = monthly_totals(transactions, shift_month(today, -months), today)
    if len(totals) < 2:
        return SpendingTrend(trend=ZERO, recent_average=ZERO, older_average=ZERO)
    split_point = max(1, len(totals) // 2)
    recent = totals[-split_point:]
    older = totals[:-split_point]
    recent_average = sum((item.expense for item in recent), ZERO) / len(recent)
    older_average = sum((item.expense for item in older), ZERO) / len(older) if older else ZERO
    trend = _change(recent_average, older_average)
    return SpendingTrend(trend=trend, recent_average=recent_average, older_average=older_average)


def day_of_week_patterns(transactions: Iterable[Transaction], since: date) -> List[DayOfWeekPattern]:
    totals = [ZERO] * 7
    counts = [0] * 7
    for txn in transactions:
        if txn.type != "expense" or txn.date < since:
            continue
        index = weekday_index(txn.date)
        totals[index] += txn.amount
        counts[index] += 1
    grand_total = sum(totals, ZERO)
    return [
        DayOfWeekPattern(
            day_of_week=index,
            day_name=WEEKDAY_NAMES[index],
            total_expenses=totals[index],
            transaction_count=counts[index],
            average_transaction=totals[index] / counts[index] if counts[index] else ZERO,
            percentage=_ratio(totals[index], grand_total),
        )
        for index in range(7)
    ]


def category_trends(transactions: Iterable[Transaction], today: date) -> List[CategoryTrend]:
    keys = [month_key(shift_month(today, -offset)) for offset in range(TREND_WINDOW_MONTHS - 1, -1, -1)]
    since = shift_month_keep_day(today, -TREND_WINDOW_MONTHS)
    by_category: dict[str, dict[str, Decimal]] = {}
    for txn in transactions:
        if txn.type != "expense" or txn.date < since or txn.date > today:
            continue
        months = by_category.setdefault(txn.category or "Outros", {})
        key = month_key(txn.date)
        months[key] = months.get(key, ZERO) + txn.amount

    trends: List[CategoryTrend] = []
    for category, months in by_category.items():
        values = [months.get(key, ZERO) for key in keys]
        average = sum(values, ZERO) / len(values)
        recent_average = sum(values[-3:], ZERO) / 3
        older_average = sum(values[:3], ZERO) / 3
        trends.append(
            CategoryTrend(
                category=category,
                months=[{"month": key, "value": value} for key, value in zip(keys, values)],
                trend=_change(recent_average, older_average),
                average=average,
            )
        )
    trends.sort(key=lambda item: item.average, reverse=True)
    return trends[:TOP_CATEGORY_LIMIT]


def spending_velocity(transactions: Iterable[Transaction], today: date) -> SpendingVelocity:
    current_start = today.replace(day=1)
    last_start = shift_month(today, -1)
    last_end = current_start
    same_start = date(today.year - 1, today.month, 1)
    same_end = shift_month(same_start, 1)

    spent = ZERO
    last_month = ZERO
    same_month_last_year = ZERO
    for txn in transactions:
        if txn.type != "expense":
            continue
        if current_start <= txn.date <= today:
            spent += txn.amount
        elif last_start <= txn.date < last_end:
            last_month += txn.amount
        if same_start <= txn.date < same_end:
            same_month_last_year += txn.amount

    days_elapsed = today.day
    daily_average = spent / days_elapsed
    projected_total = daily_average * days_in_month(today.year, today.month)
    return SpendingVelocity(
        spent=spent,
        daily_average=daily_average,
        days_elapsed=days_elapsed,
        projected_total=projected_total,
        vs_last_month=_change(projected_total, last_month),
        vs_same_month_last_year=_change(projected_total, same_month_last_year),
    )


def year_comparison(transactions: Iterable[Transaction], today: date) -> YearComparison:
    current_year = today.year
    previous_year = current_year - 1
    index: dict[tuple[int, int, str], Decimal] = {}
    for txn in transactions:
        if txn.date.year not in {current_year, previous_year}:
            continue
        key = (txn.date.year, txn.date.month, txn.type)
        index[key] = index.get(key, ZERO) + txn.amount

    months = []
    for month in range(1, 13):
        months.append(
            {
                "month": month,
                "month_name": MONTH_SHORT_NAMES[month - 1],
                "current_year_expenses": index.get((current_year, month, "expense"), ZERO),
                "previous_year_expenses": index.get((previous_year, month, "expense"), ZERO),
                "current_year_income": index.get((current_year, month, "income"), ZERO),
                "previous_year_income": index.get((previous_year, month, "income"), ZERO),
            }
        )
    totals = {
        name: sum((item[name] for item in months), ZERO)
        for name in (
            "current_year_expenses",
            "previous_year_expenses",
            "current_year_income",
            "previous_year_income",
        )
    }
    totals["expense_change"] = _change(totals["current_year_expenses"], totals["previous_year_expenses"])
    totals["income_change"] = _change(totals["current_year_income"], totals["previous_year_income"])
    return YearComparison(
        current_year=current_year,
        previous_year=previous_year,
        months=months,
        totals=totals,
    )


def build_insights(
    trends: List[CategoryTrend],
    velocity: SpendingVelocity,
    patterns: List[DayOfWeekPattern],
) -> List[Insight]:
    insights: List[Insight] = []
    increasing = [item for item in trends if item.trend > INSIGHT_THRESHOLD]
    if increasing:
        biggest = increasing[0]
        insights.append(
            Insight(
                type="negative",
                title="Gastos em alta",
                description=f"{biggest.category} aumentou {biggest.trend:.0f}% nos últimos meses",
                value=biggest.trend,
                category=biggest.category,
            )
        )
    decreasing = [item for item in trends if item.trend < -INSIGHT_THRESHOLD]
    if decreasing:
        biggest = min(decreasing, key=lambda item: item.trend)
        insights.append(
            Insight(
                type="positive",
                title="Economia identificada",
                description=f"{biggest.category} reduziu {abs(biggest.trend):.0f}% nos últimos meses",
                value=biggest.trend,
                category=biggest.category,
            )
        )
    if velocity.vs_last_month > INSIGHT_THRESHOLD:
        insights.append(
            Insight(
                type="negative",
                title="Ritmo acelerado",
                description=(
                    f"Você está gastando {velocity.vs_last_month:.0f}% mais rápido que o mês passado"
                ),
                value=velocity.vs_last_month,
            )
        )
    elif velocity.vs_last_month < -INSIGHT_THRESHOLD:
        insights.append(
            Insight(
                type="positive",
                title="Ritmo controlado",
                description=(
                    f"Seus gastos estão {abs(velocity.vs_last_month):.0f}% menores que o mês passado"
                ),
                value=velocity.vs_last_month,
            )
        )
    if patterns:
        top_day = patterns[0]
        for pattern in patterns[1:]:
            if pattern.total_expenses > top_day.total_expenses:
                top_day = pattern
        if top_day.percentage > INSIGHT_THRESHOLD:
            insights.append(
                Insight(
                    type="neutral",
                    title="Padrão de gastos",
                    description=(
                        f"{top_day.day_name} é o dia que você mais gasta "
                        f"({top_day.percentage:.0f}% do total)"
                    ),
                    value=top_day.percentage,
                )
            )
    return insights


def build_analytics(transactions: Iterable[Transaction], today: date) -> AnalyticsReport:
    items = list(transactions)
    patterns = day_of_week_patterns(items, shift_month_keep_day(today, -TREND_WINDOW_MONTHS))
    trends = category_trends(items, today)
    velocity = spending_velocity(items, today)
    return AnalyticsReport(
        day_of_week_patterns=patterns,
        category_trends=trends,
        spending_velocity=velocity,
        year_comparison=year_comparison(items, today),
        insights=build_insights(trends, velocity, patterns),
    )


def _ratio(part: Decimal, whole: Decimal) -> Decimal:
    return part / whole * HUNDRED if whole > ZERO else ZERO


def _change(current: Decimal, base: Decimal) -> Decimal:
    return (current - base) / base * HUNDRED if base > ZERO else ZERO

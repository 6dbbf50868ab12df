from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from fincontrol.periods import month_end

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CARD_PAYMENT_CATEGORY = "Fatura Cartão"
EXPENSE_CATEGORIES = [
    "Aluguel",
    "Supermercado",
    "Restaurante",
    "Delivery",
    "Transporte",
    "Luz",
    "Água",
    "Internet",
    "Streaming",
    "Lazer",
    "Saúde",
    "Educação",
    "Roupas",
    "Pix",
    CARD_PAYMENT_CATEGORY,
    "Outros",
]
INCOME_CATEGORIES = ["Salário", "Freelance", "Investimentos", "Dividendos", "Pix", "Outros"]
ALERT_LEVEL_ORDER = {"exceeded": 0, "danger": 1, "warning": 2}


@dataclass(frozen=True)
class Transaction:
    amount: Decimal
    type: str
    date: date
    category: Optional[str] = None


@dataclass(frozen=True)
class CardPurchase:
    amount: Decimal
    date: date
    category: str


@dataclass(frozen=True)
class Budget:
    category: str
    limit: Decimal
    month: int = 0
    year: int = 0
    id: Optional[int] = None

    @property
    def is_fixed(self) -> bool:
        return self.month == 0 and self.year == 0


@dataclass(frozen=True)
class BudgetStatus:
    budget: Budget
    spent: Decimal
    percentage: Decimal
    remaining: Decimal


@dataclass(frozen=True)
class BudgetAlert:
    budget_id: Optional[int]
    category: str
    limit: Decimal
    spent: Decimal
    percentage: Decimal
    remaining: Decimal
    level: str
    message: str


def resolve_active_budgets(budgets: Iterable[Budget], month: int, year: int) -> list[Budget]:
    """Budgets that apply to a month; a month-specific budget replaces the fixed one."""
    fixed: dict[str, Budget] = {}
    specific: dict[str, Budget] = {}
    for budget in budgets:
        if budget.is_fixed:
            fixed[budget.category] = budget
        elif budget.month == month and budget.year == year:
            specific[budget.category] = budget
    merged = dict(fixed)
    merged.update(specific)
    return sorted(merged.values(), key=lambda item: item.category)


def spent_by_category(
    transactions: Iterable[Transaction],
    purchases: Iterable[CardPurchase],
    month: int,
    year: int,
) -> dict[str, Decimal]:
    start_date = date(year, month, 1)
    end_date = month_end(start_date)
    totals: dict[str, Decimal] = {}
    for txn in transactions:
        if txn.type.strip().lower() != "expense":
            continue
        if not txn.category or txn.category == CARD_PAYMENT_CATEGORY:
            continue
        if not start_date <= txn.date <= end_date:
            continue
        totals[txn.category] = totals.get(txn.category, ZERO) + _coerce_amount(txn.amount)
    for purchase in purchases:
        if not start_date <= purchase.date <= end_date:
            continue
        totals[purchase.category] = totals.get(purchase.category, ZERO) + _coerce_amount(
            purchase.amount
        )
    return totals


def evaluate_budget(budget: Budget, spent: Decimal) -> BudgetStatus:
    if budget.limit <= ZERO:
        raise ValueError("budget.limit must be greater than zero.")
    percentage = spent / budget.limit * HUNDRED
    return BudgetStatus(
        budget=budget,
        spent=spent,
        percentage=percentage,
        remaining=budget.limit - spent,
    )


def evaluate_budgets(
    budgets: Iterable[Budget],
    transactions: Iterable[Transaction],
    purchases: Iterable[CardPurchase],
    month: int,
    year: int,
) -> list[BudgetStatus]:
    active = resolve_active_budgets(budgets, month, year)
    spent = spent_by_category(transactions, purchases, month, year)
    return [evaluate_budget(budget, spent.get(budget.category, ZERO)) for budget in active]


def danger_threshold(threshold: Decimal) -> Decimal:
    return threshold + (HUNDRED - threshold) / 2


def classify_budget(percentage: Decimal, threshold: Decimal) -> tuple[str, str] | None:
    if threshold < ZERO or threshold > HUNDRED:
        raise ValueError("threshold must be between 0 and 100.")
    if percentage >= HUNDRED:
        return "exceeded", f"Orçamento excedido em {_round_percent(percentage - HUNDRED)}%"
    if percentage >= danger_threshold(threshold):
        return "danger", f"Atenção! {_round_percent(HUNDRED - percentage)}% restante"
    if percentage >= threshold:
        return "warning", f"{_round_percent(HUNDRED - percentage)}% restante do orçamento"
    return None


def build_budget_alerts(statuses: Iterable[BudgetStatus], threshold: Decimal) -> list[BudgetAlert]:
    alerts: list[BudgetAlert] = []
    for status in statuses:
        classified = classify_budget(status.percentage, threshold)
        if classified is None:
            continue
        level, message = classified
        alerts.append(
            BudgetAlert(
                budget_id=status.budget.id,
                category=status.budget.category,
                limit=status.budget.limit,
                spent=status.spent,
                percentage=status.percentage,
                remaining=status.remaining,
                level=level,
                message=message,
            )
        )
    alerts.sort(key=lambda alert: (ALERT_LEVEL_ORDER[alert.level], -alert.percentage))
    return alerts


def summarize_alerts(alerts: Iterable[BudgetAlert]) -> dict[str, int]:
    counts = {"total_alerts": 0, "warning_count": 0, "danger_count": 0, "exceeded_count": 0}
    for alert in alerts:
        counts["total_alerts"] += 1
        counts[f"{alert.level}_count"] += 1
    return counts


def _round_percent(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _coerce_amount(amount: Decimal) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
EMERGENCY_TARGET_MONTHS = 6
DIVERSIFICATION_TARGET_TYPES = 5

WEIGHTS = {
    "savings_rate": Decimal("0.25"),
    "credit_utilization": Decimal("0.20"),
    "emergency_fund": Decimal("0.20"),
    "goals_progress": Decimal("0.10"),
    "diversification": Decimal("0.10"),
    "budget_adherence": Decimal("0.10"),
    "spending_trend": Decimal("0.05"),
}

LEVELS = (
    (800, "excellent", "Excelente! Sua saúde financeira está ótima."),
    (600, "good", "Bom! Você está no caminho certo."),
    (400, "fair", "Regular. Há espaço para melhorar."),
)
POOR_LEVEL = ("poor", "Atenção! Revise suas finanças.")

TIP_SAVINGS = "Tente aumentar sua taxa de poupança para pelo menos 20%"
TIP_CREDIT = "Reduza o uso do cartão de crédito para menos de 30% do limite"
TIP_EMERGENCY = "Priorize construir uma reserva de emergência de 3-6 meses"
TIP_DIVERSIFY = "Diversifique seus investimentos em mais classes de ativos"
TIP_BUDGETS = "Revise seus orçamentos - você está gastando além do planejado"


@dataclass(frozen=True)
class Totals:
    income: Decimal
    expense: Decimal

    @property
    def savings(self) -> Decimal:
        return self.income - self.expense

    @property
    def rate(self) -> Decimal:
        return self.savings / self.income * HUNDRED if self.income > ZERO else ZERO


@dataclass(frozen=True)
class GoalBalance:
    category: str
    target_value: Decimal
    current_value: Decimal
    is_completed: bool = False


@dataclass(frozen=True)
class BudgetUsage:
    limit: Decimal
    spent: Decimal


@dataclass(frozen=True)
class HealthInputs:
    monthly: Totals
    yearly: Totals
    credit_limit: Decimal = ZERO
    credit_used: Decimal = ZERO
    recurring_total: Decimal = ZERO
    goals: List[GoalBalance] = field(default_factory=list)
    investments_by_type: Dict[str, Decimal] = field(default_factory=dict)
    budgets: List[BudgetUsage] = field(default_factory=list)
    spending_trend: Decimal = ZERO


@dataclass(frozen=True)
class HealthReport:
    score: int
    level: str
    message: str
    tips: List[str]
    component_scores: Dict[str, Decimal]
    details: dict


def credit_utilization(limit: Decimal, used: Decimal) -> Decimal:
    return used / limit * HUNDRED if limit > ZERO else ZERO


def budget_adherence(budgets: Iterable[BudgetUsage]) -> Decimal:
    usages = [
        min(item.spent / item.limit * HUNDRED if item.limit > ZERO else ZERO, Decimal("200"))
        for item in budgets
    ]
    if not usages:
        return HUNDRED
    average = sum(usages, ZERO) / len(usages)
    return max(ZERO, HUNDRED - max(ZERO, average - HUNDRED))


def score_level(score: int) -> tuple[str, str]:
    for floor, level, message in LEVELS:
        if score >= floor:
            return level, message
    return POOR_LEVEL


def component_scores(
    savings_rate: Decimal,
    utilization: Decimal,
    months_covered: Decimal,
    goals_progress: Decimal,
    investment_types: int,
    adherence: Decimal,
    spending_trend: Decimal,
) -> Dict[str, Decimal]:
    return {
        "savings_rate": min(max(savings_rate, ZERO), Decimal("50")) * 2,
        "credit_utilization": max(ZERO, HUNDRED - utilization * Decimal("3.33")),
        "emergency_fund": min(months_covered / EMERGENCY_TARGET_MONTHS, ONE) * HUNDRED,
        "goals_progress": min(goals_progress, HUNDRED),
        "diversification": min(Decimal(investment_types) / DIVERSIFICATION_TARGET_TYPES, ONE) * HUNDRED,
        "budget_adherence": adherence,
        "spending_trend": max(ZERO, HUNDRED - abs(spending_trend)),
    }


def assess_health(inputs: HealthInputs) -> HealthReport:
    """Score the user's finances from 0 to 1000 and explain the result."""
    utilization = credit_utilization(inputs.credit_limit, inputs.credit_used)

    monthly_expense_base = inputs.recurring_total + inputs.monthly.expense
    emergency_goal: Optional[GoalBalance] = next(
        (goal for goal in inputs.goals if goal.category == "emergency"), None
    )
    emergency_current = emergency_goal.current_value if emergency_goal else ZERO
    months_covered = (
        emergency_current / monthly_expense_base
        if emergency_goal is not None and monthly_expense_base > ZERO
        else ZERO
    )

    goals_target = sum((goal.target_value for goal in inputs.goals), ZERO)
    goals_current = sum((goal.current_value for goal in inputs.goals), ZERO)
    goals_progress = goals_current / goals_target * HUNDRED if goals_target > ZERO else ZERO

    investment_types = len(inputs.investments_by_type)
    adherence = budget_adherence(inputs.budgets)

    scores = component_scores(
        inputs.monthly.rate,
        utilization,
        months_covered,
        goals_progress,
        investment_types,
        adherence,
        inputs.spending_trend,
    )
    weighted = sum((scores[name] * weight for name, weight in WEIGHTS.items()), ZERO)
    score = int((weighted * 10).quantize(ONE, rounding=ROUND_HALF_UP))
    level, message = score_level(score)

    tips: List[str] = []
    if inputs.monthly.rate < 20:
        tips.append(TIP_SAVINGS)
    if utilization > 30:
        tips.append(TIP_CREDIT)
    if months_covered < 3:
        tips.append(TIP_EMERGENCY)
    if investment_types < 3:
        tips.append(TIP_DIVERSIFY)
    if adherence < 80:
        tips.append(TIP_BUDGETS)

    details = {
        "savings_rate": {
            "monthly": _totals_detail(inputs.monthly),
            "yearly": _totals_detail(inputs.yearly),
        },
        "credit_utilization": {
            "limit": inputs.credit_limit,
            "used": inputs.credit_used,
            "percentage": utilization,
        },
        "emergency_fund": {
            "current": emergency_current,
            "monthly_expenses": monthly_expense_base,
            "months_covered": months_covered,
            "target": EMERGENCY_TARGET_MONTHS,
        },
        "goals": {
            "total": len(inputs.goals),
            "completed": sum(1 for goal in inputs.goals if goal.is_completed),
            "progress": goals_progress,
        },
        "investments": {
            "total": sum(inputs.investments_by_type.values(), ZERO),
            "types": investment_types,
            "diversification": scores["diversification"],
            "by_type": dict(inputs.investments_by_type),
        },
        "budget_adherence": adherence,
        "spending_trend": inputs.spending_trend,
    }
    return HealthReport(
        score=score,
        level=level,
        message=message,
        tips=tips,
        component_scores=scores,
        details=details,
    )


def _totals_detail(totals: Totals) -> dict:
    return {
        "income": totals.income,
        "expenses": totals.expense,
        "savings": totals.savings,
        "rate": totals.rate,
    }

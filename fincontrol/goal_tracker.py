from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from fincontrol.periods import MONTH_SHORT_NAMES, month_key, months_between, shift_month

ZERO = Decimal("0")
HUNDRED = Decimal("100")
GOAL_CATEGORIES = {"emergency", "travel", "car", "house", "education", "retirement", "other"}
GOAL_CATEGORY_LABELS = {
    "emergency": "Reserva de Emergência",
    "travel": "Viagem",
    "car": "Carro",
    "house": "Casa Própria",
    "education": "Educação",
    "retirement": "Aposentadoria",
    "other": "Outro",
}
DEFAULT_GOAL_COLOR = "#8B5CF6"
MILESTONES = (25, 50, 75, 100)
CONTRIBUTION_WINDOW_MONTHS = 6
HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


class InsufficientGoalBalanceError(ValueError):
    """Raised when a withdrawal exceeds what the goal holds."""


@dataclass(frozen=True)
class Goal:
    id: int
    name: str
    target_value: Decimal
    current_value: Decimal = ZERO
    category: str = "other"
    color: str = DEFAULT_GOAL_COLOR
    target_date: Optional[date] = None
    is_completed: bool = False
    completed_at: Optional[date] = None


@dataclass(frozen=True)
class Contribution:
    value: Decimal
    date: date


@dataclass(frozen=True)
class GoalProgress:
    progress: Decimal
    remaining: Decimal
    monthly_needed: Optional[Decimal]
    months_remaining: Optional[int]


@dataclass(frozen=True)
class ContributionOutcome:
    contribution_value: Decimal
    current_value: Decimal
    is_completed: bool
    completed_at: Optional[date]
    transaction_type: str
    transaction_description: str


@dataclass(frozen=True)
class Milestone:
    percentage: int
    value: Decimal
    reached: bool
    reached_at: Optional[date] = None


@dataclass(frozen=True)
class GoalAnalytics:
    goal: Goal
    progress: Decimal
    milestones: List[Milestone]
    monthly_contributions: List[dict]
    average_contribution: Decimal
    days_to_target: Optional[int]
    on_track: bool
    projected_completion: Optional[str]


@dataclass(frozen=True)
class GoalInsight:
    type: str
    title: str
    description: str
    goal_name: Optional[str] = None


@dataclass(frozen=True)
class GoalsReport:
    goals: List[GoalAnalytics] = field(default_factory=list)
    insights: List[GoalInsight] = field(default_factory=list)
    summary: dict = field(default_factory=dict)


def validate_color(value: Optional[str]) -> str:
    if not value:
        return DEFAULT_GOAL_COLOR
    if not HEX_COLOR.match(value):
        raise ValueError("Color must be a hex value like #RRGGBB.")
    return value.upper()


def goal_progress(goal: Goal, today: date) -> GoalProgress:
    if goal.target_value <= ZERO:
        raise ValueError("Target value must be greater than zero.")
    progress = min(goal.current_value / goal.target_value * HUNDRED, HUNDRED)
    remaining = max(goal.target_value - goal.current_value, ZERO)
    months_remaining = None
    monthly_needed = None
    if goal.target_date is not None:
        months_remaining = months_between(today, goal.target_date)
        if months_remaining > 0:
            monthly_needed = remaining / months_remaining
    return GoalProgress(
        progress=progress,
        remaining=remaining,
        monthly_needed=monthly_needed,
        months_remaining=months_remaining,
    )


def apply_contribution(
    goal: Goal, value: Decimal, kind: str, when: date, notes: Optional[str] = None
) -> ContributionOutcome:
    kind = kind.strip().lower()
    if kind not in {"deposit", "withdraw"}:
        raise ValueError("Contribution type must be 'deposit' or 'withdraw'.")
    if value <= ZERO:
        raise ValueError("Contribution value must be greater than zero.")
    if kind == "withdraw" and value > goal.current_value:
        raise InsufficientGoalBalanceError("Saldo insuficiente na meta")

    signed = value if kind == "deposit" else -value
    current_value = goal.current_value + signed
    is_completed = current_value >= goal.target_value
    if is_completed:
        completed_at = goal.completed_at if goal.is_completed and goal.completed_at else when
    else:
        completed_at = None
    if kind == "deposit":
        txn_type, description = "expense", f"Aporte na meta: {goal.name}"
    else:
        txn_type, description = "income", f"Resgate da meta: {goal.name}"
    if notes:
        description = f"{description} - {notes}"
    return ContributionOutcome(
        contribution_value=signed,
        current_value=current_value,
        is_completed=is_completed,
        completed_at=completed_at,
        transaction_type=txn_type,
        transaction_description=description,
    )


def revert_contribution(goal: Goal, contribution_value: Decimal) -> Decimal:
    return max(ZERO, goal.current_value - contribution_value)


def milestones_for(goal: Goal, contributions: Iterable[Contribution]) -> List[Milestone]:
    history = sorted(contributions, key=lambda item: item.date)
    milestones: List[Milestone] = []
    for percentage in MILESTONES:
        target = goal.target_value * percentage / HUNDRED
        reached = goal.current_value >= target
        reached_at = None
        if reached:
            running = ZERO
            for contribution in history:
                running += contribution.value
                if running >= target:
                    reached_at = contribution.date
                    break
        milestones.append(
            Milestone(percentage=percentage, value=target, reached=reached, reached_at=reached_at)
        )
    return milestones


def analyze_goal(goal: Goal, contributions: Iterable[Contribution], today: date) -> GoalAnalytics:
    history = list(contributions)
    window_start = shift_month(today, -(CONTRIBUTION_WINDOW_MONTHS - 1))
    buckets: dict[str, Decimal] = {}
    for offset in range(CONTRIBUTION_WINDOW_MONTHS - 1, -1, -1):
        buckets[month_key(shift_month(today, -offset))] = ZERO
    for contribution in history:
        if contribution.date < window_start or contribution.date > today:
            continue
        key = month_key(contribution.date)
        if key in buckets:
            buckets[key] += contribution.value
    monthly_contributions = [
        {"month": MONTH_SHORT_NAMES[int(key[5:7]) - 1], "value": value}
        for key, value in buckets.items()
    ]
    average = sum(buckets.values(), ZERO) / CONTRIBUTION_WINDOW_MONTHS

    progress = goal.current_value / goal.target_value * HUNDRED if goal.target_value > ZERO else ZERO
    days_to_target = (goal.target_date - today).days if goal.target_date else None
    remaining = goal.target_value - goal.current_value
    on_track = True
    projected_completion: Optional[str] = None
    if remaining > ZERO and average > ZERO:
        months_needed = remaining / average
        projected = shift_month(today, math.ceil(months_needed))
        projected_completion = f"{MONTH_SHORT_NAMES[projected.month - 1]} {projected.year}"
        if goal.target_date is not None:
            on_track = months_needed <= months_between(today, goal.target_date)
    elif remaining <= ZERO:
        projected_completion = "Concluída"
    else:
        on_track = False

    return GoalAnalytics(
        goal=goal,
        progress=min(progress, HUNDRED),
        milestones=milestones_for(goal, history),
        monthly_contributions=monthly_contributions,
        average_contribution=average,
        days_to_target=days_to_target,
        on_track=on_track,
        projected_completion=projected_completion,
    )


def build_goals_report(
    goals: Iterable[Goal],
    contributions_by_goal: dict[int, List[Contribution]],
    today: date,
) -> GoalsReport:
    goal_list = list(goals)
    if not goal_list:
        return GoalsReport(
            summary={
                "total_goals": 0,
                "completed_goals": 0,
                "active_goals": 0,
                "total_saved": ZERO,
                "total_target": ZERO,
                "overall_progress": ZERO,
                "monthly_average": ZERO,
                "goals_on_track": 0,
            }
        )

    analytics = [analyze_goal(goal, contributions_by_goal.get(goal.id, []), today) for goal in goal_list]
    active = [goal for goal in goal_list if not goal.is_completed]
    completed = [goal for goal in goal_list if goal.is_completed]

    insights: List[GoalInsight] = []
    recent = [
        goal
        for goal in completed
        if goal.completed_at is not None and (today - goal.completed_at).days <= 30
    ]
    if recent:
        insights.append(
            GoalInsight(
                type="achievement",
                title="Meta concluída!",
                description=f'Parabéns! Você completou "{recent[0].name}"',
                goal_name=recent[0].name,
            )
        )
    urgent = [
        goal
        for goal in active
        if goal.target_date is not None and 0 < (goal.target_date - today).days <= 30
    ]
    if urgent:
        insights.append(
            GoalInsight(
                type="negative",
                title="Prazo se aproximando",
                description=f'"{urgent[0].name}" vence em menos de 30 dias',
                goal_name=urgent[0].name,
            )
        )
    off_track = [item for item in analytics if not item.on_track and item.progress < HUNDRED]
    if off_track:
        plural = len(off_track) != 1
        insights.append(
            GoalInsight(
                type="neutral",
                title="Aumente suas contribuições",
                description=(
                    f"{len(off_track)} meta{'s' if plural else ''} "
                    f"precisa{'m' if plural else ''} de mais aportes"
                ),
            )
        )
    on_track = [item for item in analytics if item.on_track and ZERO < item.progress < HUNDRED]
    if on_track:
        verb = "s estão" if len(on_track) != 1 else " está"
        insights.append(
            GoalInsight(
                type="positive",
                title="No caminho certo",
                description=f"{len(on_track)} meta{verb} no ritmo para conclusão",
            )
        )
    for item in analytics:
        upcoming = next((m for m in item.milestones if not m.reached), None)
        if upcoming is None:
            continue
        gap = Decimal(upcoming.percentage) - item.progress
        if ZERO < gap <= 5:
            insights.append(
                GoalInsight(
                    type="positive",
                    title="Quase lá!",
                    description=f'"{item.goal.name}" está próxima dos {upcoming.percentage}%',
                    goal_name=item.goal.name,
                )
            )
            break

    total_saved = sum((goal.current_value for goal in goal_list), ZERO)
    total_target = sum((goal.target_value for goal in goal_list), ZERO)
    window_start = shift_month(today, -(CONTRIBUTION_WINDOW_MONTHS - 1))
    recent_total = sum(
        (
            contribution.value
            for goal in goal_list
            for contribution in contributions_by_goal.get(goal.id, [])
            if window_start <= contribution.date <= today
        ),
        ZERO,
    )
    return GoalsReport(
        goals=analytics,
        insights=insights,
        summary={
            "total_goals": len(goal_list),
            "completed_goals": len(completed),
            "active_goals": len(active),
            "total_saved": total_saved,
            "total_target": total_target,
            "overall_progress": total_saved / total_target * HUNDRED if total_target > ZERO else ZERO,
            "monthly_average": recent_total / CONTRIBUTION_WINDOW_MONTHS,
            "goals_on_track": sum(1 for item in analytics if item.on_track),
        },
    )

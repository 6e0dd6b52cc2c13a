"""Savings goal progress and contribution pacing."""

import math
from datetime import date, timedelta

from fincast.core.cadence import anchor_date, monthly_equivalent
from fincast.models.results import GoalMetrics, GoalMilestone
from fincast.models.schemas import Goal, finite_or_zero, round_currency

# Average days per month, used to turn days-left into months-left
DAYS_PER_MONTH = 30.4375
MILESTONE_PERCENTS = (25, 50, 75, 100)


def goal_progress_percent(goal: Goal) -> float:
    """Funded share of the target, 0-100. Targets below 1 count as 1."""
    current = finite_or_zero(goal.current_amount)
    target = max(finite_or_zero(goal.target_amount), 1.0)
    return max(min(current / target * 100, 100.0), 0.0)


def required_monthly_contribution(remaining: float, days_left: int | None) -> float:
    """Monthly amount needed to close *remaining* by the target date.

    Overdue goals need the whole remainder now. Goals with no target date
    have no required pace.
    """
    if remaining <= 0 or days_left is None:
        return 0.0
    if days_left <= 0:
        return round_currency(remaining)
    months_left = max(days_left / DAYS_PER_MONTH, 1 / DAYS_PER_MONTH)
    return round_currency(remaining / months_left)


def build_milestones(goal: Goal, progress: float) -> list[GoalMilestone]:
    """25/50/75/100% checkpoints spread evenly from creation to target date."""
    if goal.target_date is None:
        return [
            GoalMilestone(pct, f"{pct}%", None, progress >= pct)
            for pct in MILESTONE_PERCENTS
        ]

    start = anchor_date(goal.created_at)
    span = max((goal.target_date - start).days, 0)
    milestones = []
    for pct in MILESTONE_PERCENTS:
        if span == 0:
            when = goal.target_date
        else:
            when = start + timedelta(days=math.floor(span * pct / 100 + 0.5))
        milestones.append(GoalMilestone(pct, f"{pct}%", when, progress >= pct))
    return milestones


def goal_metrics(goal: Goal, today: date) -> GoalMetrics:
    progress = goal_progress_percent(goal)
    remaining = max(finite_or_zero(goal.target_amount) - finite_or_zero(goal.current_amount), 0.0)
    days_left = (goal.target_date - today).days if goal.target_date else None

    contribution = finite_or_zero(goal.contribution_amount)
    planned = 0.0
    if contribution > 0:
        planned = monthly_equivalent(
            contribution, goal.cadence, goal.custom_interval, goal.custom_unit
        )

    return GoalMetrics(
        id=goal.id,
        title=goal.title,
        progress_percent=round_currency(progress),
        remaining=round_currency(remaining),
        days_left=days_left,
        planned_monthly_contribution=round_currency(planned),
        required_monthly_contribution=required_monthly_contribution(remaining, days_left),
        milestones=build_milestones(goal, progress),
    )


def goals_funded_percent(goals: list[Goal]) -> float:
    """Average progress across goals, 0 when there are none."""
    if not goals:
        return 0.0
    return sum(goal_progress_percent(g) for g in goals) / len(goals)

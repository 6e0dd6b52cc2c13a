"""Cashflow forecasting.

Resolves every recurring line to a monthly figure, adds a trailing spend
velocity, and projects the resulting monthly net across fixed horizons.
Also builds the income allocation plan and the headline insights that sit
on top of those figures.

All functions are pure; ``today`` is passed in explicitly.
"""

from __future__ import annotations

import logging
import math
from datetime import date, timedelta

from fincast.core.cadence import monthly_equivalent, next_occurrence, parse_month_key
from fincast.core.resolvers import resolve_income_net_amount
from fincast.models.results import (
    AllocationBucket,
    AllocationPlan,
    AllocationSuggestion,
    BillRisk,
    BillRiskAlert,
    ForecastRisk,
    ForecastWindow,
    IncomeVariance,
    Insight,
    InsightSeverity,
    UpcomingCashEvent,
)
from fincast.models.schemas import (
    Account,
    AccountType,
    AllocationTarget,
    Bill,
    Goal,
    GoalPriority,
    Income,
    IncomeAllocationRule,
    IncomePaymentCheck,
    Loan,
    PaymentCheckStatus,
    Purchase,
    RevolvingAccount,
    finite_or_zero,
    round_currency,
)

logger = logging.getLogger("fincast")

# Coverage reported when there are no commitments to cover.
COVERAGE_SENTINEL = 99.0

FORECAST_HORIZONS = (30, 90, 365)
SPEND_WINDOW_DAYS = 90
BILL_ALERT_HORIZON_DAYS = 45
BILL_WARNING_MULTIPLIER = 1.25
UPCOMING_HORIZON_DAYS = 60
UPCOMING_LIMIT = 12

SMOOTHING_MIN_MONTHS = 2
SMOOTHING_MAX_MONTHS = 24
SMOOTHING_DEFAULT_MONTHS = 6

MAX_INSIGHTS = 6

ALLOCATION_TARGETS = (
    AllocationTarget.BILLS,
    AllocationTarget.SAVINGS,
    AllocationTarget.GOALS,
    AllocationTarget.DEBT_OVERPAY,
)
ALLOCATION_LABELS = {
    AllocationTarget.BILLS: "Bills",
    AllocationTarget.SAVINGS: "Savings",
    AllocationTarget.GOALS: "Goals",
    AllocationTarget.DEBT_OVERPAY: "Debt Overpay",
}
GOAL_PRIORITY_RANK = {
    GoalPriority.HIGH: 0,
    GoalPriority.MEDIUM: 1,
    GoalPriority.LOW: 2,
}


# --- Monthly figures ---


def monthly_income(incomes: list[Income]) -> float:
    """Sum of monthly-equivalent net income."""
    return sum(
        monthly_equivalent(
            resolve_income_net_amount(i), i.cadence, i.custom_interval, i.custom_unit
        )
        for i in incomes
    )


def income_variance(incomes: list[Income]) -> IncomeVariance:
    """Compare planned net income with the actual amounts recorded so far.

    Only incomes with a finite ``actual_amount`` count as tracked; the
    variance covers those alone. The rest are reported as pending.
    """
    planned = expected = actual = 0.0
    tracked = 0
    for i in incomes:
        planned_monthly = monthly_equivalent(
            resolve_income_net_amount(i), i.cadence, i.custom_interval, i.custom_unit
        )
        planned += planned_monthly
        if i.actual_amount is None or not math.isfinite(i.actual_amount):
            continue
        tracked += 1
        expected += planned_monthly
        actual += monthly_equivalent(
            max(i.actual_amount, 0.0), i.cadence, i.custom_interval, i.custom_unit
        )

    return IncomeVariance(
        planned_monthly=round_currency(planned),
        expected_tracked_monthly=round_currency(expected),
        actual_tracked_monthly=round_currency(actual),
        variance_monthly=round_currency(actual - expected),
        tracked_count=tracked,
        pending_count=max(len(incomes) - tracked, 0),
    )


def _smoothing_months(value: int | None) -> int:
    months = round(finite_or_zero(value))
    if SMOOTHING_MIN_MONTHS <= months <= SMOOTHING_MAX_MONTHS:
        return months
    return SMOOTHING_DEFAULT_MONTHS


def _lookback_month_keys(anchor_month: str, months: int) -> list[str]:
    """*months* month keys ending at *anchor_month*, newest first."""
    anchor = parse_month_key(anchor_month)
    if anchor is None:
        return []
    keys = []
    year, month = anchor.year, anchor.month
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return keys


def _latest_checks_by_month(
    checks: list[IncomePaymentCheck],
    income_id: str,
) -> dict[str, IncomePaymentCheck]:
    latest: dict[str, IncomePaymentCheck] = {}
    for c in checks:
        if c.income_id != income_id:
            continue
        existing = latest.get(c.cycle_month)
        if existing is None or c.updated_at > existing.updated_at:
            latest[c.cycle_month] = c
    return latest


def _check_cycle_amount(check: IncomePaymentCheck, baseline: float) -> float:
    if check.status == PaymentCheckStatus.MISSED:
        return 0.0
    if check.received_amount is not None:
        return max(finite_or_zero(check.received_amount), 0.0)
    if check.expected_amount is not None:
        return max(finite_or_zero(check.expected_amount), 0.0)
    return max(baseline, 0.0)


def income_forecast_amount(
    income: Income,
    checks: list[IncomePaymentCheck],
    month: str,
) -> float:
    """Monthly amount one income contributes to the forecast.

    Without smoothing this is the plain monthly equivalent. With smoothing
    it is the average over the trailing months ending at *month*, where a
    recorded payment check replaces the baseline for its month.
    """
    baseline_cycle = resolve_income_net_amount(income)
    baseline_monthly = round_currency(monthly_equivalent(
        baseline_cycle, income.cadence, income.custom_interval, income.custom_unit
    ))
    if not income.forecast_smoothing_enabled:
        return baseline_monthly

    keys = _lookback_month_keys(month, _smoothing_months(income.forecast_smoothing_months))
    if not keys:
        logger.debug("Income %s: bad smoothing month %r, using baseline", income.id, month)
        return baseline_monthly

    by_month = _latest_checks_by_month(checks, income.id)
    total = 0.0
    for key in keys:
        check = by_month.get(key)
        if check is None:
            total += baseline_monthly
            continue
        total += monthly_equivalent(
            _check_cycle_amount(check, baseline_cycle),
            income.cadence,
            income.custom_interval,
            income.custom_unit,
        )
    return round_currency(total / len(keys))


def monthly_income_for_forecast(
    incomes: list[Income],
    payment_checks: list[IncomePaymentCheck],
    month: str,
) -> float:
    return sum(income_forecast_amount(i, payment_checks, month) for i in incomes)


def loan_monthly_commitment(loan: Loan) -> float:
    return monthly_equivalent(
        finite_or_zero(loan.minimum_payment),
        loan.cadence,
        loan.custom_interval,
        loan.custom_unit,
    ) + finite_or_zero(loan.subscription_cost)


def monthly_commitments(
    bills: list[Bill],
    cards: list[RevolvingAccount],
    loans: list[Loan],
) -> float:
    """Bills plus fixed card minimums plus loan payments, per month."""
    bill_total = sum(
        monthly_equivalent(b.amount, b.cadence, b.custom_interval, b.custom_unit)
        for b in bills
    )
    card_total = sum(finite_or_zero(c.minimum_payment) for c in cards)
    loan_total = sum(loan_monthly_commitment(loan) for loan in loans)
    return bill_total + card_total + loan_total


def recent_purchases(
    purchases: list[Purchase],
    today: date,
    window_days: int = SPEND_WINDOW_DAYS,
) -> list[Purchase]:
    start = today - timedelta(days=window_days)
    return [p for p in purchases if p.purchase_date >= start]


def monthly_spend_estimate(
    purchases: list[Purchase],
    today: date,
    window_days: int = SPEND_WINDOW_DAYS,
) -> float:
    """Average daily spend over the trailing window, scaled to 30 days."""
    recent = recent_purchases(purchases, today, window_days)
    total = sum(finite_or_zero(p.amount) for p in recent)
    return total / window_days * 30


# --- Forecast windows and bill risk ---


def forecast_window(
    days: int,
    monthly_net: float,
    liquid_reserves: float,
    monthly_commitments: float,
) -> ForecastWindow:
    projected_net = round_currency(monthly_net * (days / 30))
    projected_cash = round_currency(liquid_reserves + projected_net)
    if monthly_commitments > 0:
        coverage = round_currency(projected_cash / monthly_commitments)
    else:
        coverage = COVERAGE_SENTINEL

    if projected_cash < 0:
        risk = ForecastRisk.CRITICAL
    elif projected_cash < monthly_commitments:
        risk = ForecastRisk.WARNING
    else:
        risk = ForecastRisk.HEALTHY

    return ForecastWindow(
        days=days,
        projected_net=projected_net,
        projected_cash=projected_cash,
        coverage_months=coverage,
        risk=risk,
    )


def forecast_windows(
    monthly_net: float,
    liquid_reserves: float,
    monthly_commitments: float,
    horizons: tuple[int, ...] = FORECAST_HORIZONS,
) -> list[ForecastWindow]:
    return [
        forecast_window(days, monthly_net, liquid_reserves, monthly_commitments)
        for days in horizons
    ]


def bill_risk_alerts(
    bills: list[Bill],
    liquid_reserves: float,
    monthly_net: float,
    today: date,
    horizon_days: int = BILL_ALERT_HORIZON_DAYS,
) -> list[BillRiskAlert]:
    """Check each upcoming bill against the cash expected on its due date.

    Bills with no next occurrence, or one further than *horizon_days*
    away, are skipped. Sorted by days away, then larger amounts first.
    """
    alerts = []
    for b in bills:
        due = next_occurrence(
            b.cadence, b.created_at, today, b.day_of_month, b.custom_interval, b.custom_unit
        )
        if due is None:
            continue
        days_away = (due - today).days
        if days_away < 0 or days_away > horizon_days:
            continue

        amount = finite_or_zero(b.amount)
        expected = round_currency(liquid_reserves + (monthly_net / 30) * days_away)
        if expected < amount:
            risk = BillRisk.CRITICAL
        elif expected < amount * BILL_WARNING_MULTIPLIER:
            risk = BillRisk.WARNING
        else:
            risk = BillRisk.GOOD

        alerts.append(BillRiskAlert(
            id=b.id,
            name=b.name,
            due_date=due,
            amount=round_currency(amount),
            days_away=days_away,
            expected_available=expected,
            risk=risk,
            autopay=b.autopay,
        ))

    alerts.sort(key=lambda a: (a.days_away, -a.amount))
    return alerts


def upcoming_cash_events(
    incomes: list[Income],
    bills: list[Bill],
    loans: list[Loan],
    today: date,
    horizon_days: int = UPCOMING_HORIZON_DAYS,
    limit: int = UPCOMING_LIMIT,
) -> list[UpcomingCashEvent]:
    """Next occurrence of every income, bill and loan inside the horizon.

    Income is positive, outgoings negative. Sorted by days away, then
    amount ascending so the largest outgoing on a day comes first.
    """
    lines: list[tuple[str, str, str, object, float]] = []
    for i in incomes:
        lines.append(("income", f"income-{i.id}", i.name, i, resolve_income_net_amount(i)))
    for b in bills:
        lines.append(("bill", f"bill-{b.id}", b.name, b, -finite_or_zero(b.amount)))
    for loan in loans:
        amount = finite_or_zero(loan.minimum_payment) + finite_or_zero(loan.subscription_cost)
        lines.append(("loan", f"loan-{loan.id}", f"{loan.name} payment", loan, -amount))

    events = []
    for kind, event_id, label, line, amount in lines:
        when = next_occurrence(
            line.cadence, line.created_at, today,
            line.day_of_month, line.custom_interval, line.custom_unit,
        )
        if when is None:
            continue
        days_away = (when - today).days
        if days_away < 0 or days_away > horizon_days:
            continue
        events.append(UpcomingCashEvent(
            id=event_id,
            label=label,
            kind=kind,
            date=when,
            amount=round_currency(amount),
            days_away=days_away,
            cadence=line.cadence,
        ))

    events.sort(key=lambda e: (e.days_away, e.amount))
    return events[:limit]


# --- Income allocation ---


def build_allocation_plan(
    monthly_income: float,
    rules: list[IncomeAllocationRule],
) -> AllocationPlan:
    """Split monthly income across bills, savings, goals and debt overpay.

    Active rules for the same target add up. Totals above 100% are
    reported as over-allocation rather than rejected.
    """
    percent_by_target = {t: 0.0 for t in ALLOCATION_TARGETS}
    for rule in rules:
        if not rule.active:
            continue
        percent_by_target[rule.target] = round_currency(
            percent_by_target[rule.target] + finite_or_zero(rule.percentage)
        )

    buckets = []
    for target in ALLOCATION_TARGETS:
        pct = percent_by_target[target]
        buckets.append(AllocationBucket(
            target=target,
            label=ALLOCATION_LABELS[target],
            percentage=pct,
            monthly_amount=round_currency(monthly_income * pct / 100),
            active=pct > 0,
        ))

    total_pct = round_currency(sum(b.percentage for b in buckets))
    total_amount = round_currency(monthly_income * total_pct / 100)
    return AllocationPlan(
        monthly_income=round_currency(monthly_income),
        total_allocated_percent=total_pct,
        total_allocated_amount=total_amount,
        residual_amount=round_currency(monthly_income - total_amount),
        unallocated_percent=round_currency(max(100 - total_pct, 0.0)),
        over_allocated_percent=round_currency(max(total_pct - 100, 0.0)),
        buckets=buckets,
    )


def _savings_target(accounts: list[Account]) -> Account | None:
    savings = [a for a in accounts if a.type == AccountType.SAVINGS]
    if not savings:
        return None
    return max(savings, key=lambda a: finite_or_zero(a.balance))


def _goal_target(goals: list[Goal]) -> tuple[Goal, float] | None:
    open_goals = [
        (g, max(finite_or_zero(g.target_amount) - finite_or_zero(g.current_amount), 0.0))
        for g in goals
    ]
    open_goals = [(g, remaining) for g, remaining in open_goals if remaining > 0]
    if not open_goals:
        return None
    return min(open_goals, key=lambda pair: (GOAL_PRIORITY_RANK[pair[0].priority], -pair[1]))


def _debt_target(
    cards: list[RevolvingAccount],
    loans: list[Loan],
) -> tuple[str, str, float] | None:
    """(kind, name, apr) of the highest-APR debt, ties to the larger balance."""
    candidates = [
        ("card", c.name, finite_or_zero(c.current_balance), finite_or_zero(c.apr))
        for c in cards
        if finite_or_zero(c.current_balance) > 0
    ] + [
        ("loan", loan.name, finite_or_zero(loan.balance), finite_or_zero(loan.interest_rate))
        for loan in loans
        if finite_or_zero(loan.balance) > 0
    ]
    if not candidates:
        return None
    kind, name, _, apr = min(candidates, key=lambda d: (-d[3], -d[2]))
    return kind, name, apr


def suggest_allocations(
    plan: AllocationPlan,
    monthly_commitments: float,
    cards: list[RevolvingAccount],
    loans: list[Loan],
    goals: list[Goal],
    accounts: list[Account],
) -> list[AllocationSuggestion]:
    """Turn each funded allocation bucket into a concrete action."""
    savings = _savings_target(accounts)
    goal = _goal_target(goals)
    debt = _debt_target(cards, loans)

    suggestions = []
    for bucket in plan.buckets:
        if not bucket.active or bucket.monthly_amount <= 0:
            continue
        amount = bucket.monthly_amount

        if bucket.target == AllocationTarget.BILLS:
            action = "reserve_bills"
            title = "Reserve for bills and commitments"
            detail = (
                f"Set aside {amount:.2f} toward monthly commitments "
                f"({round_currency(monthly_commitments):.2f} baseline)."
            )
        elif bucket.target == AllocationTarget.SAVINGS:
            action = "move_to_savings"
            if savings is not None:
                title = f"Move into {savings.name}"
                detail = f"Transfer {amount:.2f} to {savings.name} to strengthen reserves."
            else:
                title = "Move to savings buffer"
                detail = f"Transfer {amount:.2f} into a savings account reserve bucket."
        elif bucket.target == AllocationTarget.GOALS:
            action = "fund_goals"
            if goal is not None:
                g, remaining = goal
                title = f"Fund goal: {g.title}"
                detail = f"Allocate {amount:.2f} to {g.title} ({remaining:.2f} remaining)."
            else:
                title = "Fund active goals"
                detail = f"Allocate {amount:.2f} across your active goal balances."
        else:
            action = "debt_overpay"
            if debt is not None:
                kind, name, apr = debt
                title = f"Overpay debt: {name}"
                detail = (
                    f"Use {amount:.2f} as extra payment on {kind} {name} "
                    f"({apr:.2f}% APR)."
                )
            else:
                title = "Overpay highest APR debt"
                detail = f"Reserve {amount:.2f} for extra debt overpayment when debt exists."

        suggestions.append(AllocationSuggestion(
            target=bucket.target,
            action_type=action,
            title=title,
            detail=detail,
            percentage=bucket.percentage,
            amount=amount,
        ))
    return suggestions


# --- Insights ---


def runway_months(liquid_reserves: float, monthly_commitments: float) -> float:
    """Months of commitments the liquid reserves cover today."""
    if monthly_commitments > 0:
        return liquid_reserves / monthly_commitments
    return COVERAGE_SENTINEL if liquid_reserves > 0 else 0.0


def build_insights(
    monthly_income: float,
    monthly_net: float,
    card_utilization_percent: float,
    runway: float,
    goals_funded_percent: float,
    top_category_share_percent: float,
) -> list[Insight]:
    insights = []

    if monthly_income <= 0:
        insights.append(Insight(
            "income-missing",
            "Income setup needed",
            "Add at least one income source to activate forecasting and runway metrics.",
            InsightSeverity.CRITICAL,
        ))

    if monthly_net < 0:
        insights.append(Insight(
            "net-negative",
            "Monthly net is negative",
            "Commitments and spending are above income.",
            InsightSeverity.CRITICAL,
        ))
    elif monthly_net > 0:
        insights.append(Insight(
            "net-positive",
            "Positive monthly net",
            "The plan projects surplus cash each month.",
            InsightSeverity.GOOD,
        ))

    if card_utilization_percent >= 70:
        insights.append(Insight(
            "utilization-high",
            "High credit utilization",
            "Utilization is above 70%. Target below 30%.",
            InsightSeverity.CRITICAL,
        ))
    elif card_utilization_percent >= 35:
        insights.append(Insight(
            "utilization-watch",
            "Credit utilization watch",
            "Utilization is elevated.",
            InsightSeverity.WARNING,
        ))
    else:
        insights.append(Insight(
            "utilization-good",
            "Credit utilization healthy",
            "Card usage is in a healthy band.",
            InsightSeverity.GOOD,
        ))

    if runway < 1:
        insights.append(Insight(
            "runway-critical",
            "Limited cash runway",
            "Liquid reserves cover less than one month of commitments.",
            InsightSeverity.CRITICAL,
        ))
    elif runway < 3:
        insights.append(Insight(
            "runway-warning",
            "Runway can be improved",
            "Liquid reserves cover under three months of commitments.",
            InsightSeverity.WARNING,
        ))

    if top_category_share_percent > 45:
        insights.append(Insight(
            "category-concentration",
            "Spending concentration detected",
            "One category dominates this month's spending.",
            InsightSeverity.WARNING,
        ))

    if goals_funded_percent >= 75:
        insights.append(Insight(
            "goals-ahead",
            "Goals are progressing fast",
            "Average goal funding is above 75%.",
            InsightSeverity.GOOD,
        ))

    return insights[:MAX_INSIGHTS]

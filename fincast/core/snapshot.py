"""Planning snapshot: every engine output for one user and one month."""

from __future__ import annotations

import logging
from datetime import date

from fincast.config import EngineSettings
from fincast.core.analyzers import (
    analyze_budget_performance,
    build_month_close_checklist,
    month_spend_by_category,
    summarize_data_quality,
    top_categories,
)
from fincast.core.cadence import month_key
from fincast.core.cards import card_risk_alerts, project_card, summarize_card_portfolio
from fincast.core.forecast import (
    bill_risk_alerts,
    build_allocation_plan,
    build_insights,
    forecast_windows,
    income_variance,
    monthly_commitments,
    monthly_income,
    monthly_income_for_forecast,
    monthly_spend_estimate,
    runway_months,
    suggest_allocations,
    upcoming_cash_events,
)
from fincast.core.goals import goal_metrics, goals_funded_percent
from fincast.core.payoff import build_payoff_entries, payoff_plan
from fincast.core.recurring import detect_recurring_candidates
from fincast.core.resolvers import resolve_liquid_reserves
from fincast.core.validation import validate_month_key
from fincast.models.results import PlanningSnapshot
from fincast.models.schemas import LedgerRecords, round_currency

logger = logging.getLogger("fincast")


def build_planning_snapshot(
    records: LedgerRecords,
    today: date,
    month: str | None = None,
    settings: EngineSettings | None = None,
) -> PlanningSnapshot:
    """Run every analysis over *records* for *month* (default: today's month).

    Raises :class:`~fincast.core.validation.MonthKeyError` if *month* is not
    a ``YYYY-MM`` key. Pass ``get_settings()`` to honour environment
    overrides; otherwise the built-in defaults apply.
    """
    settings = settings or EngineSettings()
    month = validate_month_key(month if month is not None else month_key(today))

    income = monthly_income(records.incomes)
    forecast_income = monthly_income_for_forecast(
        records.incomes, records.income_payment_checks, month
    )
    commitments = monthly_commitments(records.bills, records.cards, records.loans)
    spend = monthly_spend_estimate(records.purchases, today, settings.spend_window_days)
    net = forecast_income - commitments - spend
    reserves = resolve_liquid_reserves(records.accounts)

    # Cards and payoff
    card_reports = [
        project_card(c, today, settings.projection_cycles) for c in records.cards
    ]
    portfolio = summarize_card_portfolio(card_reports)

    # Budgets and data quality
    month_spend = month_spend_by_category(records.purchases, records.purchase_splits, month)
    quality = summarize_data_quality(
        records.purchases,
        records.purchase_splits,
        today,
        settings.anomaly_window_days,
        settings.anomaly_z,
        settings.anomaly_floor,
    )
    month_budgets = [b for b in records.envelope_budgets if b.month == month]

    plan = build_allocation_plan(income, records.income_allocation_rules)

    month_purchases = [p for p in records.purchases if p.month_key == month]
    top = top_categories(month_purchases, limit=1)
    insights = build_insights(
        monthly_income=income,
        monthly_net=net,
        card_utilization_percent=portfolio.utilization * 100,
        runway=runway_months(reserves, commitments),
        goals_funded_percent=goals_funded_percent(records.goals),
        top_category_share_percent=top[0].share * 100 if top else 0.0,
    )

    snapshot = PlanningSnapshot(
        month_key=month,
        monthly_income=round_currency(forecast_income),
        monthly_commitments=round_currency(commitments),
        monthly_spend_estimate=round_currency(spend),
        monthly_net=round_currency(net),
        liquid_reserves=round_currency(reserves),
        income_variance=income_variance(records.incomes),
        forecast_windows=forecast_windows(net, reserves, commitments, settings.forecast_horizons),
        bill_risk_alerts=bill_risk_alerts(
            records.bills, reserves, net, today, settings.bill_horizon_days
        ),
        upcoming_events=upcoming_cash_events(
            records.incomes, records.bills, records.loans, today, settings.upcoming_horizon_days
        ),
        recurring_candidates=detect_recurring_candidates(
            records.purchases, today, settings.recurring_window_days, settings.recurring_limit
        ),
        budget_performance=analyze_budget_performance(
            month_budgets,
            records.purchases,
            records.purchase_splits,
            month,
            today,
            settings.budget_warning_ratio,
        ),
        data_quality=quality,
        month_close_checklist=build_month_close_checklist(
            month, quality, month_spend, month_budgets, records.cycle_run_months
        ),
        allocation_plan=plan,
        allocation_suggestions=suggest_allocations(
            plan, commitments, records.cards, records.loans, records.goals, records.accounts
        ),
        card_reports=card_reports,
        card_alerts=card_risk_alerts(card_reports),
        card_portfolio=portfolio,
        payoff=payoff_plan(build_payoff_entries(card_reports)),
        goals=[goal_metrics(g, today) for g in records.goals],
        insights=insights,
    )

    logger.debug(
        "Snapshot %s: income=%.2f commitments=%.2f spend=%.2f net=%.2f "
        "cards=%d bill_alerts=%d recurring=%d",
        month,
        snapshot.monthly_income,
        snapshot.monthly_commitments,
        snapshot.monthly_spend_estimate,
        snapshot.monthly_net,
        len(card_reports),
        len(snapshot.bill_risk_alerts),
        len(snapshot.recurring_candidates),
    )
    return snapshot

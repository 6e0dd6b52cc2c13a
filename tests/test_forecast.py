"""Tests for fincast/core/forecast.py."""

from datetime import date, datetime

import pytest

from tests.conftest import (
    make_account,
    make_allocation_rule,
    make_bill,
    make_card,
    make_goal,
    make_income,
    make_loan,
    make_payment_check,
    make_purchase,
)
from fincast.core.forecast import (
    COVERAGE_SENTINEL,
    bill_risk_alerts,
    build_allocation_plan,
    build_insights,
    forecast_window,
    forecast_windows,
    income_forecast_amount,
    income_variance,
    loan_monthly_commitment,
    monthly_commitments,
    monthly_income,
    monthly_spend_estimate,
    recent_purchases,
    runway_months,
    suggest_allocations,
    upcoming_cash_events,
)
from fincast.models.results import BillRisk, ForecastRisk, InsightSeverity
from fincast.models.schemas import AllocationTarget, Cadence


# --- Monthly figures ---


class TestMonthlyIncome:
    def test_sums_monthly_equivalents(self):
        incomes = [make_income(), make_income(name="Side", amount=100, cadence="weekly")]
        assert monthly_income(incomes) == pytest.approx(3000 + 100 * 52 / 12)

    def test_uses_net_amount(self):
        income = make_income(
            amount=9999, gross_amount=4000, tax_amount=800,
            national_insurance_amount=300, pension_amount=200,
        )
        assert monthly_income([income]) == 2700

    def test_empty(self):
        assert monthly_income([]) == 0


class TestIncomeVariance:
    def test_tracked_and_pending_incomes(self):
        incomes = [
            make_income(actual_amount=2800),
            make_income(name="Side", amount=100, cadence="weekly"),
        ]
        result = income_variance(incomes)
        assert result.planned_monthly == pytest.approx(3433.33)
        assert result.expected_tracked_monthly == 3000
        assert result.actual_tracked_monthly == 2800
        assert result.variance_monthly == -200
        assert result.tracked_count == 1
        assert result.pending_count == 1

    def test_actual_scaled_by_cadence(self):
        income = make_income(name="Side", amount=100, cadence="weekly", actual_amount=120)
        result = income_variance([income])
        assert result.actual_tracked_monthly == pytest.approx(520)
        assert result.variance_monthly == pytest.approx(86.67)

    def test_negative_actual_counts_as_zero(self):
        result = income_variance([make_income(actual_amount=-50)])
        assert result.actual_tracked_monthly == 0
        assert result.variance_monthly == -3000
        assert result.tracked_count == 1

    def test_non_finite_actual_is_pending(self):
        result = income_variance([make_income(actual_amount=float("nan"))])
        assert result.tracked_count == 0
        assert result.pending_count == 1
        assert result.variance_monthly == 0

    def test_empty(self):
        result = income_variance([])
        assert result.planned_monthly == 0
        assert result.tracked_count == 0
        assert result.pending_count == 0


class TestIncomeForecastAmount:
    def test_without_smoothing_is_baseline(self):
        income = make_income()
        checks = [make_payment_check(status="missed")]
        assert income_forecast_amount(income, checks, "2024-03") == 3000

    def test_smoothing_blends_checks_with_baseline(self):
        income = make_income(smoothing=True, smoothing_months=3)
        checks = [
            make_payment_check(cycle_month="2024-03", received_amount=2500),
            make_payment_check(cycle_month="2024-02", status="missed"),
        ]
        # (2500 + 0 + 3000) / 3
        assert income_forecast_amount(income, checks, "2024-03") == 1833.33

    def test_latest_check_per_month_wins(self):
        income = make_income(smoothing=True, smoothing_months=2)
        checks = [
            make_payment_check(cycle_month="2024-03", received_amount=100,
                               updated_at=datetime(2024, 3, 1)),
            make_payment_check(cycle_month="2024-03", received_amount=2800,
                               updated_at=datetime(2024, 3, 28)),
        ]
        assert income_forecast_amount(income, checks, "2024-03") == 2900

    def test_partial_check_falls_back_to_expected(self):
        income = make_income(smoothing=True, smoothing_months=2)
        checks = [make_payment_check(cycle_month="2024-03", status="partial", expected_amount=1500)]
        assert income_forecast_amount(income, checks, "2024-03") == 2250

    def test_checks_for_other_incomes_ignored(self):
        income = make_income(smoothing=True, smoothing_months=2)
        checks = [make_payment_check(income_id="inc-other", cycle_month="2024-03", status="missed")]
        assert income_forecast_amount(income, checks, "2024-03") == 3000

    def test_out_of_range_months_use_default_window(self):
        income = make_income(smoothing=True, smoothing_months=30)
        # default window of 6 months ending 2024-02 reaches back to 2023-09
        checks = [make_payment_check(cycle_month="2023-09", status="missed")]
        assert income_forecast_amount(income, checks, "2024-02") == 2500

    def test_bad_month_uses_baseline(self):
        income = make_income(smoothing=True)
        checks = [make_payment_check(status="missed")]
        assert income_forecast_amount(income, checks, "03/2024") == 3000


class TestCommitments:
    def test_loan_commitment_includes_subscription(self):
        assert loan_monthly_commitment(make_loan(minimum_payment=250, subscription_cost=10)) == 260

    def test_loan_commitment_without_payment(self):
        assert loan_monthly_commitment(make_loan(minimum_payment=None)) == 0

    def test_bills_cards_and_loans(self):
        bills = [make_bill(), make_bill(name="Insurance", amount=1200, cadence="yearly")]
        cards = [make_card(), make_card(name="Amex", minimum_payment=None)]
        loans = [make_loan(minimum_payment=250, subscription_cost=10)]
        assert monthly_commitments(bills, cards, loans) == pytest.approx(1200 + 100 + 35 + 260)

    def test_empty(self):
        assert monthly_commitments([], [], []) == 0


class TestMonthlySpendEstimate:
    def test_scales_trailing_window_to_thirty_days(self):
        purchases = [
            make_purchase(amount=600, purchase_date="2024-03-15"),
            make_purchase(amount=300, purchase_date="2024-01-01"),
            make_purchase(amount=5000, purchase_date="2023-12-31"),
        ]
        assert monthly_spend_estimate(purchases, date(2024, 3, 31)) == pytest.approx(300)

    def test_no_purchases(self):
        assert monthly_spend_estimate([], date(2024, 3, 31)) == 0

    def test_window_includes_its_first_day(self):
        purchases = [
            make_purchase(amount=90, purchase_date="2024-01-01"),
            make_purchase(amount=900, purchase_date="2023-12-31"),
        ]
        recent = recent_purchases(purchases, date(2024, 3, 31))
        assert [p.purchase_date for p in recent] == [date(2024, 1, 1)]
        assert monthly_spend_estimate(purchases, date(2024, 3, 31)) == pytest.approx(30)


# --- Forecast windows ---


class TestForecastWindow:
    def test_negative_cash_is_critical(self):
        window = forecast_window(30, -200, 100, 500)
        assert window.projected_net == -200
        assert window.projected_cash == -100
        assert window.coverage_months == -0.2
        assert window.risk == ForecastRisk.CRITICAL

    def test_cash_below_commitments_is_warning(self):
        window = forecast_window(30, 100, 300, 500)
        assert window.projected_cash == 400
        assert window.coverage_months == 0.8
        assert window.risk == ForecastRisk.WARNING

    def test_healthy(self):
        window = forecast_window(90, 500, 1000, 500)
        assert window.projected_net == 1500
        assert window.projected_cash == 2500
        assert window.coverage_months == 5
        assert window.risk == ForecastRisk.HEALTHY

    def test_no_commitments_reports_sentinel(self):
        window = forecast_window(30, 0, 250, 0)
        assert window.coverage_months == COVERAGE_SENTINEL
        assert window.risk == ForecastRisk.HEALTHY

    def test_default_horizons(self):
        windows = forecast_windows(100, 0, 50)
        assert [w.days for w in windows] == [30, 90, 365]
        assert windows[2].projected_net == 1216.67

    def test_custom_horizons(self):
        assert [w.days for w in forecast_windows(0, 0, 0, horizons=(7, 14))] == [7, 14]


class TestBillRiskAlerts:
    def test_risk_levels_and_order(self):
        bills = [
            make_bill(name="Rent", amount=1200, day_of_month=15),
            make_bill(name="Phone", amount=50, day_of_month=12),
            make_bill(name="Gym", amount=40, day_of_month=15),
            make_bill(name="Insurance", amount=600, cadence="yearly"),
            make_bill(name="Deposit", amount=900, cadence="one_time"),
        ]
        alerts = bill_risk_alerts(bills, 1000, 600, date(2024, 3, 10))
        assert [a.name for a in alerts] == ["Phone", "Rent", "Gym"]
        rent = alerts[1]
        assert rent.due_date == date(2024, 3, 15)
        assert rent.days_away == 5
        assert rent.expected_available == 1100
        assert rent.risk == BillRisk.CRITICAL
        assert alerts[0].risk == BillRisk.GOOD

    def test_thin_margin_is_warning(self):
        bills = [make_bill(name="Rent", amount=1000, day_of_month=10)]
        alerts = bill_risk_alerts(bills, 1100, 0, date(2024, 3, 10))
        assert alerts[0].days_away == 0
        assert alerts[0].risk == BillRisk.WARNING

    def test_autopay_carried_through(self):
        bills = [make_bill(name="Water", amount=30, day_of_month=20, autopay=True)]
        assert bill_risk_alerts(bills, 500, 0, date(2024, 3, 10))[0].autopay is True

    def test_outside_horizon_skipped(self):
        bills = [make_bill(name="Rent", amount=1000, day_of_month=20)]
        assert bill_risk_alerts(bills, 500, 0, date(2024, 3, 10), horizon_days=5) == []


class TestUpcomingCashEvents:
    def test_signed_amounts_and_order(self):
        today = date(2024, 3, 10)
        events = upcoming_cash_events(
            [make_income(day_of_month=25)],
            [make_bill(day_of_month=15)],
            [make_loan(minimum_payment=250, subscription_cost=10, day_of_month=15)],
            today,
        )
        assert [(e.kind, e.amount, e.days_away) for e in events] == [
            ("bill", -1200, 5),
            ("loan", -260, 5),
            ("income", 3000, 15),
        ]
        assert events[1].label == "Car Loan payment"
        assert events[0].id == "bill-bill-rent"
        assert events[2].cadence == Cadence.MONTHLY

    def test_income_uses_net_amount(self):
        income = make_income(gross_amount=4000, tax_amount=1000, day_of_month=20)
        events = upcoming_cash_events([income], [], [], date(2024, 3, 10))
        assert events[0].amount == 3000

    def test_horizon_and_limit(self):
        bills = [make_bill(name=f"Bill {d}", amount=10, day_of_month=d) for d in range(11, 20)]
        bills.append(make_bill(name="Annual", amount=99, cadence="yearly"))
        today = date(2024, 3, 10)
        assert len(upcoming_cash_events([], bills, [], today)) == 9
        assert len(upcoming_cash_events([], bills, [], today, limit=3)) == 3


# --- Allocation ---


class TestBuildAllocationPlan:
    def test_buckets_and_totals(self):
        rules = [
            make_allocation_rule("bills", 50),
            make_allocation_rule("savings", 20),
            make_allocation_rule("savings", 5),
            make_allocation_rule("goals", 10, active=False),
        ]
        plan = build_allocation_plan(3000, rules)
        amounts = {b.target: b.monthly_amount for b in plan.buckets}
        assert amounts == {
            AllocationTarget.BILLS: 1500,
            AllocationTarget.SAVINGS: 750,
            AllocationTarget.GOALS: 0,
            AllocationTarget.DEBT_OVERPAY: 0,
        }
        assert plan.total_allocated_percent == 75
        assert plan.total_allocated_amount == 2250
        assert plan.residual_amount == 750
        assert plan.unallocated_percent == 25
        assert plan.over_allocated_percent == 0
        assert [b.active for b in plan.buckets] == [True, True, False, False]

    def test_over_allocation_reported(self):
        rules = [make_allocation_rule("bills", 80), make_allocation_rule("savings", 40)]
        plan = build_allocation_plan(3000, rules)
        assert plan.over_allocated_percent == 20
        assert plan.unallocated_percent == 0
        assert plan.residual_amount == -600


class TestSuggestAllocations:
    def _plan(self):
        return build_allocation_plan(3000, [
            make_allocation_rule("bills", 50),
            make_allocation_rule("savings", 20),
            make_allocation_rule("goals", 10),
            make_allocation_rule("debt_overpay", 5),
        ])

    def test_targets_named_records(self):
        accounts = [
            make_account("Rainy Day", "savings", 2000),
            make_account("Holiday", "savings", 500),
            make_account("Checking", "checking", 9000),
        ]
        goals = [
            make_goal("Car", 5000, 1000, priority="low"),
            make_goal("Trip", 1000, 200, priority="high"),
            make_goal("Done", 100, 100, priority="high"),
        ]
        cards = [make_card("Visa", current_balance=1000, apr=24)]
        loans = [make_loan(balance=5000, interest_rate=6)]

        suggestions = suggest_allocations(self._plan(), 1595, cards, loans, goals, accounts)

        assert [s.action_type for s in suggestions] == [
            "reserve_bills", "move_to_savings", "fund_goals", "debt_overpay",
        ]
        assert suggestions[0].detail == (
            "Set aside 1500.00 toward monthly commitments (1595.00 baseline)."
        )
        assert suggestions[1].title == "Move into Rainy Day"
        assert suggestions[2].title == "Fund goal: Trip"
        assert suggestions[2].detail == "Allocate 300.00 to Trip (800.00 remaining)."
        assert suggestions[3].title == "Overpay debt: Visa"
        assert suggestions[3].detail == "Use 150.00 as extra payment on card Visa (24.00% APR)."

    def test_generic_titles_without_records(self):
        suggestions = suggest_allocations(self._plan(), 0, [], [], [], [])
        assert [s.title for s in suggestions[1:]] == [
            "Move to savings buffer",
            "Fund active goals",
            "Overpay highest APR debt",
        ]

    def test_debt_tie_goes_to_larger_balance(self):
        cards = [make_card("Visa", current_balance=1000, apr=24)]
        loans = [make_loan("Personal", balance=5000, interest_rate=24)]
        suggestions = suggest_allocations(self._plan(), 0, cards, loans, [], [])
        assert suggestions[-1].title == "Overpay debt: Personal"

    def test_inactive_buckets_skipped(self):
        plan = build_allocation_plan(3000, [make_allocation_rule("savings", 10)])
        suggestions = suggest_allocations(plan, 0, [], [], [], [])
        assert len(suggestions) == 1
        assert suggestions[0].amount == 300


# --- Insights ---


class TestRunwayMonths:
    def test_ratio(self):
        assert runway_months(3000, 1000) == 3

    def test_no_commitments(self):
        assert runway_months(100, 0) == COVERAGE_SENTINEL
        assert runway_months(0, 0) == 0


class TestBuildInsights:
    def test_stressed_plan(self):
        insights = build_insights(0, -100, 80, 0.5, 80, 50)
        assert [i.id for i in insights] == [
            "income-missing",
            "net-negative",
            "utilization-high",
            "runway-critical",
            "category-concentration",
            "goals-ahead",
        ]

    def test_healthy_plan(self):
        insights = build_insights(3000, 500, 10, 5, 0, 20)
        assert [i.id for i in insights] == ["net-positive", "utilization-good"]
        assert all(i.severity == InsightSeverity.GOOD for i in insights)

    def test_watch_bands(self):
        insights = build_insights(3000, 0, 50, 2, 0, 0)
        assert [i.id for i in insights] == ["utilization-watch", "runway-warning"]

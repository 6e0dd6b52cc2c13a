"""Card amortization engine.

Projects a revolving-credit balance through its statement cycle and N
monthly cycles after it. Each public function normalizes the raw account
once through :func:`normalize_card`; everything downstream works on the
clean :class:`CardTerms`.

Intermediate balances stay unrounded. Money is rounded to cents only when
it is written into a result object.
"""

import logging
from dataclasses import dataclass
from datetime import date

from fincast.core.cadence import clamped_date, monthly_equivalent
from fincast.models.results import (
    CardPortfolioSummary,
    CardProjectionRow,
    CardReport,
    CardRiskAlert,
    CycleLifecycleResult,
    DueTiming,
    RiskSeverity,
)
from fincast.models.schemas import (
    Loan,
    MinimumPaymentPolicy,
    RevolvingAccount,
    finite_or_zero,
    non_negative,
    round_currency,
)

logger = logging.getLogger("fincast")

DEFAULT_STATEMENT_DAY = 1
DEFAULT_DUE_DAY = 21
PROJECTION_CYCLES = 12

OVER_LIMIT_EPSILON = 1e-6
INTEREST_SHORTFALL_TOLERANCE = 0.01

DUE_ALERT_WINDOW_DAYS = 14
UTILIZATION_THRESHOLDS = (
    (0.9, RiskSeverity.CRITICAL),
    (0.5, RiskSeverity.WARNING),
    (0.3, RiskSeverity.WATCH),
)
SEVERITY_RANK = {
    RiskSeverity.CRITICAL: 3,
    RiskSeverity.WARNING: 2,
    RiskSeverity.WATCH: 1,
}

# Percentage-point band inside which the utilization trend reads "flat".
TREND_DEAD_BAND_PP = 0.05


@dataclass(frozen=True)
class CardTerms:
    """A revolving account with every fallback already applied.

    ``statement_day`` is carried through to the report for display only; the
    cycle projection and due timing never read it.
    """
    id: str
    name: str
    limit: float
    current_balance: float
    statement_balance: float
    pending_charges: float
    policy: MinimumPaymentPolicy
    minimum_payment: float
    minimum_payment_percent: float
    extra_payment: float
    planned_spend: float
    apr: float
    statement_day: int
    due_day: int

    @property
    def monthly_rate(self) -> float:
        return self.apr / 100 / 12 if self.apr > 0 else 0.0


def _day_or_default(value: int | None, default: int) -> int:
    if value is None or not 1 <= value <= 31:
        return default
    return value


def utilization(balance: float, limit: float) -> float:
    """Balance over limit as a ratio; 0 when there is no limit."""
    return balance / limit if limit > 0 else 0.0


def normalize_card(account: RevolvingAccount) -> CardTerms:
    """Resolve optional and malformed card fields to their defaults.

    Money and percent fields are clamped non-negative, the statement
    balance falls back to the current balance, and pending charges fall
    back to whatever the current balance holds beyond the statement.
    """
    current = non_negative(account.current_balance)
    statement = non_negative(
        account.statement_balance
        if account.statement_balance is not None
        else account.current_balance
    )
    pending = non_negative(
        account.pending_charges
        if account.pending_charges is not None
        else max(current - statement, 0.0)
    )
    return CardTerms(
        id=account.id,
        name=account.name,
        limit=non_negative(account.credit_limit),
        current_balance=current,
        statement_balance=statement,
        pending_charges=pending,
        policy=account.minimum_payment_policy or MinimumPaymentPolicy.FIXED,
        minimum_payment=non_negative(account.minimum_payment),
        minimum_payment_percent=min(non_negative(account.minimum_payment_percent), 100.0),
        extra_payment=non_negative(account.extra_payment),
        planned_spend=non_negative(account.planned_monthly_spend),
        apr=non_negative(account.apr),
        statement_day=_day_or_default(account.statement_day, DEFAULT_STATEMENT_DAY),
        due_day=_day_or_default(account.due_day, DEFAULT_DUE_DAY),
    )


# --- Single cycle ---


def minimum_due(terms: CardTerms, start_balance: float, interest: float) -> float:
    """Minimum payment for a cycle, capped at the balance due."""
    due_balance = start_balance + interest
    if terms.policy == MinimumPaymentPolicy.PERCENT_PLUS_INTEREST:
        raw = start_balance * (terms.minimum_payment_percent / 100) + interest
    else:
        raw = terms.minimum_payment
    return min(due_balance, max(raw, 0.0))


def planned_payment(terms: CardTerms, due_balance: float, minimum: float) -> float:
    return min(due_balance, minimum + terms.extra_payment)


def project_card_cycles(
    terms: CardTerms,
    start_balance: float,
    cycles: int = PROJECTION_CYCLES,
) -> list[CardProjectionRow]:
    """Roll a balance forward *cycles* months.

    Each cycle charges interest on the start balance, pays the planned
    payment, and adds the planned spend. The ending balance never drops
    below the planned spend.
    """
    rows: list[CardProjectionRow] = []
    balance = max(start_balance, 0.0)

    for month_index in range(1, cycles + 1):
        interest = balance * terms.monthly_rate
        due_balance = balance + interest
        minimum = minimum_due(terms, balance, interest)
        payment = planned_payment(terms, due_balance, minimum)
        ending = max(due_balance - payment, 0.0) + terms.planned_spend

        rows.append(CardProjectionRow(
            month_index=month_index,
            start_balance=round_currency(balance),
            interest=round_currency(interest),
            minimum_due=round_currency(minimum),
            planned_payment=round_currency(payment),
            planned_spend=round_currency(terms.planned_spend),
            ending_balance=round_currency(ending),
            ending_utilization=utilization(ending, terms.limit),
        ))
        balance = ending

    return rows


# --- Due timing ---


def due_timing(due_day: int, today: date) -> DueTiming:
    """Whether this month's due date has passed, and days to the next one.

    The due date is applied once today's day reaches the raw due day, so a
    day-31 card is never applied in a 30-day month. The reported due date
    is clamped to the month's length.
    """
    due_this_month = clamped_date(today.year, today.month, due_day)
    if today.day < due_day:
        return DueTiming(
            due_applied=False,
            due_in_days=(due_this_month - today).days,
            due_date=due_this_month,
        )
    due_next_month = clamped_date(today.year, today.month + 1, due_day)
    return DueTiming(
        due_applied=True,
        due_in_days=(due_next_month - today).days,
        due_date=due_next_month,
    )


# --- Card report ---


def project_card(
    account: RevolvingAccount,
    today: date,
    cycles: int = PROJECTION_CYCLES,
) -> CardReport:
    """Build the full statement-cycle report for one card.

    The displayed balance is the post-payment (due-adjusted) balance once
    this month's due date has passed, and the raw current balance before
    it. The forward projection always starts from the due-adjusted balance.
    """
    terms = normalize_card(account)

    interest = terms.statement_balance * terms.monthly_rate
    new_statement = terms.statement_balance + interest
    minimum = minimum_due(terms, terms.statement_balance, interest)
    payment = planned_payment(terms, new_statement, minimum)
    due_adjusted = max(new_statement - payment, 0.0) + terms.pending_charges

    timing = due_timing(terms.due_day, today)
    display = round_currency(
        due_adjusted if timing.due_applied else terms.current_balance
    )

    rows = project_card_cycles(terms, due_adjusted, cycles)
    interest_amount = round_currency(interest)
    payment_amount = round_currency(payment)

    return CardReport(
        id=terms.id,
        name=terms.name,
        limit=round_currency(terms.limit),
        current_input=round_currency(terms.current_balance),
        statement_input=round_currency(terms.statement_balance),
        pending_charges=round_currency(terms.pending_charges),
        minimum_payment_policy=terms.policy.value,
        minimum_payment=round_currency(terms.minimum_payment),
        minimum_payment_percent=terms.minimum_payment_percent,
        extra_payment=round_currency(terms.extra_payment),
        planned_spend=round_currency(terms.planned_spend),
        apr=terms.apr,
        statement_day=terms.statement_day,
        due_day=terms.due_day,
        due_in_days=timing.due_in_days,
        due_applied=timing.due_applied,
        interest_amount=interest_amount,
        new_statement_balance=round_currency(new_statement),
        minimum_due=round_currency(minimum),
        planned_payment=payment_amount,
        due_adjusted_current=round_currency(due_adjusted),
        display_current_balance=display,
        display_available_credit=round_currency(terms.limit - display),
        display_utilization=utilization(display, terms.limit),
        projected_utilization_after_payment=utilization(due_adjusted, terms.limit),
        projected_next_month_interest=rows[0].interest if rows else 0.0,
        projected_12_month_interest_cost=round_currency(sum(r.interest for r in rows)),
        projection_rows=rows,
        over_limit=display > terms.limit + OVER_LIMIT_EPSILON,
        payment_below_interest=payment_amount + INTEREST_SHORTFALL_TOLERANCE < interest_amount,
    )


# --- Alerts and portfolio ---


def _utilization_severity(ratio: float) -> RiskSeverity | None:
    for threshold, severity in UTILIZATION_THRESHOLDS:
        if ratio >= threshold:
            return severity
    return None


def _due_countdown(days: int) -> str:
    if days <= 0:
        return "Due today"
    return f"Due in {days} day{'' if days == 1 else 's'}"


def card_risk_alerts(reports: list[CardReport]) -> list[CardRiskAlert]:
    """Due-date, utilization, interest-shortfall and over-limit alerts.

    Sorted most severe first, then by title (case-insensitive).
    """
    alerts: list[CardRiskAlert] = []

    for r in reports:
        if r.display_current_balance > 0 and r.due_in_days <= DUE_ALERT_WINDOW_DAYS:
            if r.due_in_days <= 1:
                severity = RiskSeverity.CRITICAL
            elif r.due_in_days <= 3:
                severity = RiskSeverity.WARNING
            else:
                severity = RiskSeverity.WATCH
            alerts.append(CardRiskAlert(
                id=f"due-{r.id}",
                severity=severity,
                title=f"{r.name}: {_due_countdown(r.due_in_days)}",
                detail=f"Due day {r.due_day}, planned payment {r.planned_payment:.2f}",
            ))

        util_severity = _utilization_severity(r.display_utilization)
        if util_severity is not None:
            alerts.append(CardRiskAlert(
                id=f"util-{r.id}",
                severity=util_severity,
                title=f"{r.name}: utilization {r.display_utilization * 100:.1f}%",
                detail=f"Available credit {r.display_available_credit:.2f}",
            ))

        if r.payment_below_interest:
            alerts.append(CardRiskAlert(
                id=f"interest-{r.id}",
                severity=RiskSeverity.CRITICAL,
                title=f"{r.name}: payment below interest",
                detail=(
                    f"Planned {r.planned_payment:.2f} is below "
                    f"interest {r.interest_amount:.2f}."
                ),
            ))

        if r.over_limit:
            alerts.append(CardRiskAlert(
                id=f"over-limit-{r.id}",
                severity=RiskSeverity.CRITICAL,
                title=f"{r.name}: over credit limit",
                detail=f"Current {r.display_current_balance:.2f} against {r.limit:.2f} limit.",
            ))

    alerts.sort(key=lambda a: (-SEVERITY_RANK[a.severity], a.title.casefold()))
    return alerts


def summarize_card_portfolio(reports: list[CardReport]) -> CardPortfolioSummary:
    """Totals across all cards, plus balance-weighted APR and trend."""
    if not reports:
        return CardPortfolioSummary()

    limit_total = sum(r.limit for r in reports)
    display_total = sum(r.display_current_balance for r in reports)
    post_payment_total = sum(r.due_adjusted_current for r in reports)

    util_now = utilization(display_total, limit_total)
    util_after = utilization(post_payment_total, limit_total)

    weighted_apr = 0.0
    if display_total > 0:
        weighted_apr = sum(
            max(r.display_current_balance, 0.0) * r.apr for r in reports
        ) / display_total

    delta_pp = (util_after - util_now) * 100
    if delta_pp < -TREND_DEAD_BAND_PP:
        trend = "down"
    elif delta_pp > TREND_DEAD_BAND_PP:
        trend = "up"
    else:
        trend = "flat"

    return CardPortfolioSummary(
        limit_total=round_currency(limit_total),
        display_balance_total=round_currency(display_total),
        post_payment_balance_total=round_currency(post_payment_total),
        minimum_due_total=round_currency(sum(r.minimum_due for r in reports)),
        planned_payment_total=round_currency(sum(r.planned_payment for r in reports)),
        pending_charges_total=round_currency(sum(r.pending_charges for r in reports)),
        new_statements_total=round_currency(sum(r.new_statement_balance for r in reports)),
        available_credit_total=round_currency(sum(r.display_available_credit for r in reports)),
        next_month_interest_total=round_currency(
            sum(r.projected_next_month_interest for r in reports)
        ),
        twelve_month_interest_total=round_currency(
            sum(r.projected_12_month_interest_cost for r in reports)
        ),
        utilization=util_now,
        utilization_after_payment=util_after,
        weighted_apr=round_currency(weighted_apr),
        utilization_trend=trend,
    )


# --- Elapsed-cycle lifecycle ---


def apply_card_lifecycle(account: RevolvingAccount, cycles: int) -> CycleLifecycleResult:
    """Roll a card forward *cycles* elapsed monthly cycles.

    Each cycle charges interest on the statement balance, applies the
    planned payment, then carries the remainder plus pending charges and
    the month's planned spend into the next statement.
    """
    terms = normalize_card(account)
    if cycles <= 0:
        logger.debug("Card %s: no elapsed cycles to apply", terms.id)
        return CycleLifecycleResult(
            balance=round_currency(terms.current_balance),
            interest_accrued=0.0,
            payments_applied=0.0,
            statement_balance=round_currency(terms.statement_balance),
            due_balance=round_currency(terms.statement_balance),
        )

    statement = terms.statement_balance
    pending = non_negative(account.pending_charges)
    latest_due = statement
    interest_accrued = payments_applied = spend_added = 0.0

    for _ in range(cycles):
        interest = statement * terms.monthly_rate
        interest_accrued += interest
        due_balance = statement + interest
        latest_due = due_balance
        payment = planned_payment(
            terms, due_balance, minimum_due(terms, statement, interest)
        )
        payments_applied += payment

        pending += terms.planned_spend
        spend_added += terms.planned_spend
        statement = due_balance - payment + pending
        pending = 0.0

    return CycleLifecycleResult(
        balance=round_currency(max(statement, 0.0)),
        interest_accrued=round_currency(interest_accrued),
        payments_applied=round_currency(payments_applied),
        spend_added=round_currency(spend_added),
        statement_balance=round_currency(max(statement, 0.0)),
        due_balance=round_currency(max(latest_due, 0.0)),
    )


def apply_loan_lifecycle(loan: Loan, cycles: int) -> CycleLifecycleResult:
    """Roll a loan forward: add monthly interest, then pay up to the instalment."""
    balance = finite_or_zero(loan.balance)
    monthly_payment = monthly_equivalent(
        finite_or_zero(loan.minimum_payment),
        loan.cadence,
        loan.custom_interval,
        loan.custom_unit,
    )
    apr = finite_or_zero(loan.interest_rate)
    monthly_rate = apr / 100 / 12 if apr > 0 else 0.0
    interest_accrued = payments_applied = 0.0

    for _ in range(max(cycles, 0)):
        interest = balance * monthly_rate
        balance += interest
        interest_accrued += interest
        payment = min(balance, monthly_payment)
        balance -= payment
        payments_applied += payment

    return CycleLifecycleResult(
        balance=round_currency(max(balance, 0.0)),
        interest_accrued=round_currency(interest_accrued),
        payments_applied=round_currency(payments_applied),
    )

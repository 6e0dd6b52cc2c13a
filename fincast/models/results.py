"""Result dataclasses for engine outputs.

These are derived view models handed to the presentation layer:
lightweight dataclasses rather than Pydantic models since they don't need
validation. Money fields are already rounded to cents.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from fincast.models.schemas import AllocationTarget, Cadence


class ForecastRisk(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class BillRisk(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"


class BudgetStatus(str, Enum):
    ON_TRACK = "on_track"
    WARNING = "warning"
    OVER = "over"


class RiskSeverity(str, Enum):
    WATCH = "watch"
    WARNING = "warning"
    CRITICAL = "critical"


class InsightSeverity(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"


class PayoffStrategy(str, Enum):
    AVALANCHE = "avalanche"
    SNOWBALL = "snowball"


# --- Cashflow ---


@dataclass
class ForecastWindow:
    """Projected cash position at a fixed horizon."""
    days: int
    projected_net: float
    projected_cash: float
    coverage_months: float   # 99 when commitments are zero
    risk: ForecastRisk


@dataclass
class BillRiskAlert:
    """An upcoming bill checked against the cash expected by its due date."""
    id: str
    name: str
    due_date: date
    amount: float
    days_away: int
    expected_available: float
    risk: BillRisk
    autopay: bool = False


@dataclass
class UpcomingCashEvent:
    id: str
    label: str
    kind: str              # "income", "bill" or "loan"
    date: date
    amount: float          # positive inflow, negative outflow
    days_away: int
    cadence: Cadence


@dataclass
class IncomeVariance:
    """Planned income against the actual amounts recorded on incomes."""
    planned_monthly: float = 0.0
    expected_tracked_monthly: float = 0.0
    actual_tracked_monthly: float = 0.0
    variance_monthly: float = 0.0       # actual - expected, tracked incomes only
    tracked_count: int = 0
    pending_count: int = 0


@dataclass
class AllocationBucket:
    target: AllocationTarget
    label: str
    percentage: float
    monthly_amount: float
    active: bool


@dataclass
class AllocationPlan:
    """How monthly income splits across allocation targets."""
    monthly_income: float
    total_allocated_percent: float
    total_allocated_amount: float
    residual_amount: float
    unallocated_percent: float
    over_allocated_percent: float
    buckets: list[AllocationBucket] = field(default_factory=list)


@dataclass
class AllocationSuggestion:
    target: AllocationTarget
    action_type: str
    title: str
    detail: str
    percentage: float
    amount: float


@dataclass
class Insight:
    id: str
    title: str
    detail: str
    severity: InsightSeverity


# --- Recurring purchases ---


@dataclass
class RecurringCandidate:
    """A merchant that looks like a subscription or standing order."""
    id: str                      # normalized merchant text
    label: str                   # item text of the latest purchase
    category: str
    count: int
    average_amount: float
    average_interval_days: float
    next_expected_date: date
    confidence: float            # 0-100


# --- Cards ---


@dataclass
class CardProjectionRow:
    month_index: int
    start_balance: float
    interest: float
    minimum_due: float
    planned_payment: float
    planned_spend: float
    ending_balance: float
    ending_utilization: float    # ratio, 0 when the limit is 0


@dataclass
class DueTiming:
    due_applied: bool
    due_in_days: int
    due_date: date


@dataclass
class CardReport:
    """A single card's statement cycle, display balance and projection."""
    id: str
    name: str
    limit: float
    current_input: float
    statement_input: float
    pending_charges: float
    minimum_payment_policy: str
    minimum_payment: float
    minimum_payment_percent: float
    extra_payment: float
    planned_spend: float
    apr: float
    statement_day: int               # display only
    due_day: int
    due_in_days: int
    due_applied: bool
    interest_amount: float
    new_statement_balance: float
    minimum_due: float
    planned_payment: float
    due_adjusted_current: float
    display_current_balance: float
    display_available_credit: float
    display_utilization: float
    projected_utilization_after_payment: float
    projected_next_month_interest: float
    projected_12_month_interest_cost: float
    projection_rows: list[CardProjectionRow] = field(default_factory=list)
    over_limit: bool = False
    payment_below_interest: bool = False


@dataclass
class CardRiskAlert:
    id: str
    severity: RiskSeverity
    title: str
    detail: str


@dataclass
class CardPortfolioSummary:
    """Totals across every card report."""
    limit_total: float = 0.0
    display_balance_total: float = 0.0
    post_payment_balance_total: float = 0.0
    minimum_due_total: float = 0.0
    planned_payment_total: float = 0.0
    pending_charges_total: float = 0.0
    new_statements_total: float = 0.0
    available_credit_total: float = 0.0
    next_month_interest_total: float = 0.0
    twelve_month_interest_total: float = 0.0
    utilization: float = 0.0
    utilization_after_payment: float = 0.0
    weighted_apr: float = 0.0
    utilization_trend: str = "flat"   # "up", "down" or "flat"


@dataclass
class CycleLifecycleResult:
    """Balances after rolling a card or loan forward N monthly cycles."""
    balance: float
    interest_accrued: float
    payments_applied: float
    spend_added: float = 0.0
    statement_balance: float | None = None
    due_balance: float | None = None


# --- Payoff ---


@dataclass
class PayoffEntry:
    id: str
    name: str
    balance: float
    apr: float
    monthly_interest: float
    utilization: float
    minimum_due: float
    planned_payment: float


@dataclass
class PayoffRanking:
    """Both payoff orderings with the recommended overpay targets."""
    avalanche: list[PayoffEntry] = field(default_factory=list)
    snowball: list[PayoffEntry] = field(default_factory=list)
    avalanche_target: PayoffEntry | None = None
    snowball_target: PayoffEntry | None = None


# --- Budgets and data quality ---


@dataclass
class BudgetPerformanceRow:
    id: str
    category: str
    target_amount: float
    carryover_amount: float
    effective_target: float
    spent: float
    variance: float              # effective target - spent
    projected_month_end: float
    rollover_enabled: bool
    suggested_rollover: float
    status: BudgetStatus


@dataclass
class DataQualitySummary:
    duplicate_count: int = 0
    anomaly_count: int = 0
    missing_category_count: int = 0
    pending_reconciliation_count: int = 0
    split_mismatch_count: int = 0


@dataclass
class RangeQualityKpis:
    """Data-quality figures for a purchase range (report view)."""
    purchase_count: int = 0
    pending_count: int = 0
    missing_category_count: int = 0
    duplicate_count: int = 0
    anomaly_count: int = 0
    reconciliation_completion_rate: float = 1.0


@dataclass
class CategoryShare:
    category: str
    total: float
    share: float                 # ratio of all purchases in range


@dataclass
class ChecklistItem:
    id: str
    label: str
    done: bool
    detail: str


# --- Goals ---


@dataclass
class GoalMilestone:
    percent: int
    label: str
    target_date: date | None
    achieved: bool


@dataclass
class GoalMetrics:
    id: str
    title: str
    progress_percent: float
    remaining: float
    days_left: int | None
    planned_monthly_contribution: float
    required_monthly_contribution: float
    milestones: list[GoalMilestone] = field(default_factory=list)


# --- Snapshot ---


@dataclass
class PlanningSnapshot:
    """Everything the planning view needs for one month."""
    month_key: str
    monthly_income: float
    monthly_commitments: float
    monthly_spend_estimate: float
    monthly_net: float
    liquid_reserves: float
    income_variance: IncomeVariance = field(default_factory=IncomeVariance)
    forecast_windows: list[ForecastWindow] = field(default_factory=list)
    bill_risk_alerts: list[BillRiskAlert] = field(default_factory=list)
    upcoming_events: list[UpcomingCashEvent] = field(default_factory=list)
    recurring_candidates: list[RecurringCandidate] = field(default_factory=list)
    budget_performance: list[BudgetPerformanceRow] = field(default_factory=list)
    data_quality: DataQualitySummary = field(default_factory=DataQualitySummary)
    month_close_checklist: list[ChecklistItem] = field(default_factory=list)
    allocation_plan: AllocationPlan | None = None
    allocation_suggestions: list[AllocationSuggestion] = field(default_factory=list)
    card_reports: list[CardReport] = field(default_factory=list)
    card_alerts: list[CardRiskAlert] = field(default_factory=list)
    card_portfolio: CardPortfolioSummary = field(default_factory=CardPortfolioSummary)
    payoff: PayoffRanking = field(default_factory=PayoffRanking)
    goals: list[GoalMetrics] = field(default_factory=list)
    insights: list[Insight] = field(default_factory=list)

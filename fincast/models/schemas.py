"""Pydantic models for the ledger records the engine reads.

The record provider hands these over already fetched and already
authorized. The engine never mutates them.
"""

import math
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Money helpers (all amounts are plain decimal numbers) ---

_CENT = Decimal("0.01")


def finite_or_zero(value: Optional[float]) -> float:
    """Return *value* as a float, or 0.0 when it is missing or non-finite."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def non_negative(value: Optional[float]) -> float:
    """Clamp a possibly-missing number to a finite value >= 0."""
    return max(finite_or_zero(value), 0.0)


def round_currency(value: float) -> float:
    """Round to cents, half-up. Non-finite input rounds to 0.0."""
    number = finite_or_zero(value)
    return float(Decimal(str(number)).quantize(_CENT, rounding=ROUND_HALF_UP))


# --- Enums ---

class Cadence(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    CUSTOM = "custom"
    ONE_TIME = "one_time"


class CustomCadenceUnit(str, Enum):
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    YEARS = "years"


class ReconciliationStatus(str, Enum):
    PENDING = "pending"
    POSTED = "posted"
    RECONCILED = "reconciled"


class MinimumPaymentPolicy(str, Enum):
    FIXED = "fixed"
    PERCENT_PLUS_INTEREST = "percent_plus_interest"


class AccountType(str, Enum):
    CHECKING = "checking"
    SAVINGS = "savings"
    INVESTMENT = "investment"
    CASH = "cash"
    DEBT = "debt"


class GoalPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RuleMatchType(str, Enum):
    CONTAINS = "contains"
    EXACT = "exact"
    STARTS_WITH = "starts_with"


class AllocationTarget(str, Enum):
    BILLS = "bills"
    SAVINGS = "savings"
    GOALS = "goals"
    DEBT_OVERPAY = "debt_overpay"


class PaymentCheckStatus(str, Enum):
    RECEIVED = "received"
    PARTIAL = "partial"
    MISSED = "missed"


# --- Recurring obligations ---

class RecurringObligation(BaseModel):
    """A line that repeats on a cadence: income, bill, or loan."""
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    name: str = ""
    amount: float = 0.0
    cadence: Cadence = Cadence.MONTHLY
    custom_interval: Optional[float] = None
    custom_unit: Optional[CustomCadenceUnit] = None
    day_of_month: Optional[int] = None
    created_at: datetime


class Income(RecurringObligation):
    gross_amount: Optional[float] = None
    tax_amount: Optional[float] = None
    national_insurance_amount: Optional[float] = None
    pension_amount: Optional[float] = None
    actual_amount: Optional[float] = None
    forecast_smoothing_enabled: bool = False
    forecast_smoothing_months: Optional[int] = None


class Bill(RecurringObligation):
    autopay: bool = False


class Loan(RecurringObligation):
    balance: float = 0.0
    minimum_payment: Optional[float] = None
    subscription_cost: Optional[float] = None
    interest_rate: Optional[float] = None


class IncomePaymentCheck(BaseModel):
    """What actually arrived for an income in a given month."""
    model_config = ConfigDict(extra="ignore")

    income_id: str
    cycle_month: str  # "YYYY-MM"
    status: PaymentCheckStatus = PaymentCheckStatus.RECEIVED
    expected_amount: Optional[float] = None
    received_amount: Optional[float] = None
    updated_at: datetime


# --- Cards and accounts ---

class RevolvingAccount(BaseModel):
    """A credit card or other revolving credit line."""
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    name: str = ""
    credit_limit: Optional[float] = None
    current_balance: Optional[float] = None  # the raw "used limit"
    statement_balance: Optional[float] = None
    pending_charges: Optional[float] = None
    minimum_payment_policy: Optional[MinimumPaymentPolicy] = None
    minimum_payment: Optional[float] = None
    minimum_payment_percent: Optional[float] = None
    extra_payment: Optional[float] = None
    planned_monthly_spend: Optional[float] = None
    apr: Optional[float] = None
    statement_day: Optional[int] = None
    due_day: Optional[int] = None


class Account(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    name: str = ""
    type: AccountType = AccountType.CHECKING
    balance: float = 0.0
    liquid: bool = False


# --- Purchases and budgets ---

class Purchase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    item: str
    amount: float
    category: str = ""
    purchase_date: date
    reconciliation_status: Optional[ReconciliationStatus] = None

    @property
    def month_key(self) -> str:
        return self.purchase_date.strftime("%Y-%m")

    @property
    def effective_status(self) -> ReconciliationStatus:
        """Reconciliation defaults to posted when unset."""
        return self.reconciliation_status or ReconciliationStatus.POSTED


class PurchaseSplit(BaseModel):
    """One category slice of a purchase."""
    model_config = ConfigDict(extra="ignore")

    purchase_id: str
    category: str
    amount: float


class EnvelopeBudget(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    category: str
    month: str  # "YYYY-MM"
    target_amount: float = 0.0
    carryover_amount: Optional[float] = None
    rollover_enabled: bool = False


class TransactionRule(BaseModel):
    """Maps purchase text to a category and reconciliation status."""
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    merchant_pattern: str
    match_type: RuleMatchType = RuleMatchType.CONTAINS
    category: str
    reconciliation_status: Optional[ReconciliationStatus] = None
    priority: int = 0
    active: bool = True
    created_at: datetime


class IncomeAllocationRule(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    target: AllocationTarget
    percentage: float = Field(default=0.0, ge=0, le=100)
    active: bool = True


# --- Goals ---

class Goal(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    title: str
    target_amount: float
    current_amount: float = 0.0
    target_date: Optional[date] = None
    priority: GoalPriority = GoalPriority.MEDIUM
    created_at: datetime
    contribution_amount: Optional[float] = None
    cadence: Cadence = Cadence.MONTHLY
    custom_interval: Optional[float] = None
    custom_unit: Optional[CustomCadenceUnit] = None


# --- Record bundle ---

class LedgerRecords(BaseModel):
    """Every record collection the engine needs for one user."""
    model_config = ConfigDict(extra="ignore")

    incomes: list[Income] = []
    bills: list[Bill] = []
    loans: list[Loan] = []
    cards: list[RevolvingAccount] = []
    accounts: list[Account] = []
    purchases: list[Purchase] = []
    purchase_splits: list[PurchaseSplit] = []
    envelope_budgets: list[EnvelopeBudget] = []
    goals: list[Goal] = []
    transaction_rules: list[TransactionRule] = []
    income_allocation_rules: list[IncomeAllocationRule] = []
    income_payment_checks: list[IncomePaymentCheck] = []
    cycle_run_months: list[str] = []

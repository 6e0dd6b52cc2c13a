"""Shared record factories for fincast tests."""

from datetime import date, datetime

from fincast.models.schemas import (
    Account,
    AccountType,
    AllocationTarget,
    Bill,
    Cadence,
    CustomCadenceUnit,
    EnvelopeBudget,
    Goal,
    GoalPriority,
    Income,
    IncomeAllocationRule,
    IncomePaymentCheck,
    Loan,
    MinimumPaymentPolicy,
    PaymentCheckStatus,
    Purchase,
    PurchaseSplit,
    ReconciliationStatus,
    RevolvingAccount,
    RuleMatchType,
    TransactionRule,
)

ANCHOR = datetime(2024, 1, 1, 9, 30)


def _slug(value: str) -> str:
    return value.lower().replace(" ", "-")


def make_income(
    name: str = "Salary",
    amount: float = 3000.0,
    cadence: str = "monthly",
    day_of_month: int | None = None,
    created_at: datetime = ANCHOR,
    custom_interval: float | None = None,
    custom_unit: str | None = None,
    gross_amount: float | None = None,
    tax_amount: float | None = None,
    national_insurance_amount: float | None = None,
    pension_amount: float | None = None,
    smoothing: bool = False,
    smoothing_months: int | None = None,
    actual_amount: float | None = None,
) -> Income:
    return Income(
        id=f"inc-{_slug(name)}",
        name=name,
        amount=amount,
        cadence=Cadence(cadence),
        day_of_month=day_of_month,
        created_at=created_at,
        custom_interval=custom_interval,
        custom_unit=CustomCadenceUnit(custom_unit) if custom_unit else None,
        gross_amount=gross_amount,
        tax_amount=tax_amount,
        national_insurance_amount=national_insurance_amount,
        pension_amount=pension_amount,
        forecast_smoothing_enabled=smoothing,
        forecast_smoothing_months=smoothing_months,
        actual_amount=actual_amount,
    )


def make_bill(
    name: str = "Rent",
    amount: float = 1200.0,
    cadence: str = "monthly",
    day_of_month: int | None = None,
    created_at: datetime = ANCHOR,
    custom_interval: float | None = None,
    custom_unit: str | None = None,
    autopay: bool = False,
) -> Bill:
    return Bill(
        id=f"bill-{_slug(name)}",
        name=name,
        amount=amount,
        cadence=Cadence(cadence),
        day_of_month=day_of_month,
        created_at=created_at,
        custom_interval=custom_interval,
        custom_unit=CustomCadenceUnit(custom_unit) if custom_unit else None,
        autopay=autopay,
    )


def make_loan(
    name: str = "Car Loan",
    balance: float = 5000.0,
    minimum_payment: float | None = 250.0,
    subscription_cost: float | None = None,
    interest_rate: float | None = 6.0,
    cadence: str = "monthly",
    day_of_month: int | None = None,
    created_at: datetime = ANCHOR,
) -> Loan:
    return Loan(
        id=f"loan-{_slug(name)}",
        name=name,
        amount=minimum_payment or 0.0,
        balance=balance,
        minimum_payment=minimum_payment,
        subscription_cost=subscription_cost,
        interest_rate=interest_rate,
        cadence=Cadence(cadence),
        day_of_month=day_of_month,
        created_at=created_at,
    )


def make_card(
    name: str = "Visa",
    credit_limit: float | None = 5000.0,
    current_balance: float | None = 1000.0,
    statement_balance: float | None = None,
    pending_charges: float | None = None,
    policy: str | None = "fixed",
    minimum_payment: float | None = 35.0,
    minimum_payment_percent: float | None = None,
    extra_payment: float | None = 0.0,
    planned_monthly_spend: float | None = 0.0,
    apr: float | None = 24.0,
    statement_day: int | None = None,
    due_day: int | None = None,
) -> RevolvingAccount:
    return RevolvingAccount(
        id=f"card-{_slug(name)}",
        name=name,
        credit_limit=credit_limit,
        current_balance=current_balance,
        statement_balance=statement_balance,
        pending_charges=pending_charges,
        minimum_payment_policy=MinimumPaymentPolicy(policy) if policy else None,
        minimum_payment=minimum_payment,
        minimum_payment_percent=minimum_payment_percent,
        extra_payment=extra_payment,
        planned_monthly_spend=planned_monthly_spend,
        apr=apr,
        statement_day=statement_day,
        due_day=due_day,
    )


def make_account(
    name: str = "Checking",
    type_: str = "checking",
    balance: float = 0.0,
    liquid: bool = True,
) -> Account:
    return Account(
        id=f"acc-{_slug(name)}",
        name=name,
        type=AccountType(type_),
        balance=balance,
        liquid=liquid,
    )


def make_purchase(
    item: str = "Coffee",
    amount: float = 4.5,
    purchase_date: str = "2024-03-10",
    category: str = "Dining",
    status: str | None = None,
    id: str | None = None,
) -> Purchase:
    return Purchase(
        id=id or f"p-{_slug(item)}-{purchase_date}-{amount}",
        item=item,
        amount=amount,
        category=category,
        purchase_date=date.fromisoformat(purchase_date),
        reconciliation_status=ReconciliationStatus(status) if status else None,
    )


def make_split(purchase_id: str, category: str, amount: float) -> PurchaseSplit:
    return PurchaseSplit(purchase_id=purchase_id, category=category, amount=amount)


def make_budget(
    category: str = "Groceries",
    month: str = "2024-03",
    target_amount: float = 400.0,
    carryover_amount: float | None = None,
    rollover_enabled: bool = False,
) -> EnvelopeBudget:
    return EnvelopeBudget(
        id=f"bud-{_slug(category)}-{month}",
        category=category,
        month=month,
        target_amount=target_amount,
        carryover_amount=carryover_amount,
        rollover_enabled=rollover_enabled,
    )


def make_goal(
    title: str = "Emergency Fund",
    target_amount: float = 1000.0,
    current_amount: float = 0.0,
    target_date: str | None = "2024-12-31",
    priority: str = "medium",
    created_at: datetime = ANCHOR,
    contribution_amount: float | None = None,
    cadence: str = "monthly",
) -> Goal:
    return Goal(
        id=f"goal-{_slug(title)}",
        title=title,
        target_amount=target_amount,
        current_amount=current_amount,
        target_date=date.fromisoformat(target_date) if target_date else None,
        priority=GoalPriority(priority),
        created_at=created_at,
        contribution_amount=contribution_amount,
        cadence=Cadence(cadence),
    )


def make_rule(
    pattern: str = "tesco",
    category: str = "Groceries",
    match_type: str = "contains",
    priority: int = 0,
    active: bool = True,
    status: str | None = None,
    created_at: datetime = ANCHOR,
) -> TransactionRule:
    return TransactionRule(
        id=f"rule-{_slug(pattern)}-{priority}",
        merchant_pattern=pattern,
        match_type=RuleMatchType(match_type),
        category=category,
        reconciliation_status=ReconciliationStatus(status) if status else None,
        priority=priority,
        active=active,
        created_at=created_at,
    )


def make_allocation_rule(
    target: str = "savings",
    percentage: float = 10.0,
    active: bool = True,
) -> IncomeAllocationRule:
    return IncomeAllocationRule(
        id=f"alloc-{target}",
        target=AllocationTarget(target),
        percentage=percentage,
        active=active,
    )


def make_payment_check(
    income_id: str = "inc-salary",
    cycle_month: str = "2024-03",
    status: str = "received",
    expected_amount: float | None = None,
    received_amount: float | None = None,
    updated_at: datetime = ANCHOR,
) -> IncomePaymentCheck:
    return IncomePaymentCheck(
        income_id=income_id,
        cycle_month=cycle_month,
        status=PaymentCheckStatus(status),
        expected_amount=expected_amount,
        received_amount=received_amount,
        updated_at=updated_at,
    )

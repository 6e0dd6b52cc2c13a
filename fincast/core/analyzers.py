"""Budget performance and data-quality analysis over purchase history.

All functions take already-fetched records and return result
dataclasses. No I/O. Read-side problems (split mismatches, anomalies,
duplicates) are reported as counts, never raised.
"""

import statistics
from datetime import date, timedelta

from fincast.core.cadence import days_in_month, month_key, parse_month_key
from fincast.core.resolvers import normalize_text
from fincast.core.validation import SPLIT_TOLERANCE
from fincast.models.results import (
    BudgetPerformanceRow,
    BudgetStatus,
    CategoryShare,
    ChecklistItem,
    DataQualitySummary,
    RangeQualityKpis,
)
from fincast.models.schemas import (
    EnvelopeBudget,
    Purchase,
    PurchaseSplit,
    ReconciliationStatus,
    finite_or_zero,
    round_currency,
)

# Category labels that count as "not really categorized"
_GENERIC_CATEGORIES = {"", "uncategorized", "other", "misc"}

BUDGET_WARNING_RATIO = 0.9
ANOMALY_WINDOW_DAYS = 90
ANOMALY_Z = 2.5
ANOMALY_FLOOR = 50.0
TOP_CATEGORY_LIMIT = 5
CHECKLIST_TOP_CATEGORIES = 3


def _splits_by_purchase(splits: list[PurchaseSplit]) -> dict[str, list[PurchaseSplit]]:
    grouped: dict[str, list[PurchaseSplit]] = {}
    for s in splits:
        grouped.setdefault(s.purchase_id, []).append(s)
    return grouped


# --- Envelope budgets ---


def month_spend_by_category(
    purchases: list[Purchase],
    splits: list[PurchaseSplit],
    month: str,
) -> dict[str, float]:
    """Spend per normalized category for one ``YYYY-MM`` month.

    A purchase with split rows is counted through its splits only, so it
    never lands in both its own category and its split categories.
    """
    split_map = _splits_by_purchase(splits)
    totals: dict[str, float] = {}

    for p in purchases:
        if p.month_key != month:
            continue
        parts = split_map.get(p.id)
        if parts:
            for s in parts:
                key = normalize_text(s.category)
                totals[key] = totals.get(key, 0.0) + finite_or_zero(s.amount)
        else:
            key = normalize_text(p.category)
            totals[key] = totals.get(key, 0.0) + finite_or_zero(p.amount)

    return totals


def elapsed_days_in_month(month: str, today: date) -> int:
    """Days of *month* to pace spend over: today's day for the current month."""
    start = parse_month_key(month)
    if start is None:
        return days_in_month(today.year, today.month)
    total = days_in_month(start.year, start.month)
    if month == month_key(today):
        return max(min(today.day, total), 1)
    return total


def analyze_budget_performance(
    budgets: list[EnvelopeBudget],
    purchases: list[Purchase],
    splits: list[PurchaseSplit],
    month: str,
    today: date,
    warning_ratio: float = BUDGET_WARNING_RATIO,
) -> list[BudgetPerformanceRow]:
    """Score each of the month's envelope budgets against actual spend.

    Spend is projected to month end at the pace so far. A projection
    above the effective target (target + carryover) is ``over``, above
    90% of it ``warning``. Rows are sorted by spend, largest first.
    """
    spend = month_spend_by_category(purchases, splits, month)
    start = parse_month_key(month)
    total_days = days_in_month(start.year, start.month) if start else 30
    elapsed = elapsed_days_in_month(month, today)

    rows = []
    for b in budgets:
        if b.month != month:
            continue

        spent = round_currency(spend.get(normalize_text(b.category), 0.0))
        carryover = finite_or_zero(b.carryover_amount)
        effective = round_currency(finite_or_zero(b.target_amount) + carryover)
        variance = round_currency(effective - spent)
        projected = round_currency(spent / elapsed * total_days)

        if projected > effective:
            status = BudgetStatus.OVER
        elif projected > effective * warning_ratio:
            status = BudgetStatus.WARNING
        else:
            status = BudgetStatus.ON_TRACK

        rows.append(BudgetPerformanceRow(
            id=b.id,
            category=b.category,
            target_amount=round_currency(b.target_amount),
            carryover_amount=round_currency(carryover),
            effective_target=effective,
            spent=spent,
            variance=variance,
            projected_month_end=projected,
            rollover_enabled=b.rollover_enabled,
            suggested_rollover=round_currency(max(variance, 0.0)) if b.rollover_enabled else 0.0,
            status=status,
        ))

    rows.sort(key=lambda r: -r.spent)
    return rows


# --- Data quality ---


def duplicate_key(p: Purchase) -> tuple[str, float, date]:
    return (normalize_text(p.item), round_currency(p.amount), p.purchase_date)


def count_duplicate_groups(purchases: list[Purchase]) -> int:
    """Number of (item, amount, date) groups with more than one purchase.

    Each group counts once however many copies it holds.
    """
    counts: dict[tuple, int] = {}
    for p in purchases:
        key = duplicate_key(p)
        counts[key] = counts.get(key, 0) + 1
    return sum(1 for n in counts.values() if n > 1)


def _anomaly_threshold(amounts: list[float], z: float) -> tuple[float, float]:
    """(mean + z*stdev, stdev) using the sample standard deviation."""
    if not amounts:
        return 0.0, 0.0
    mean = statistics.fmean(amounts)
    std = statistics.stdev(amounts) if len(amounts) > 1 else 0.0
    return mean + z * std, std


def count_anomalies(
    purchases: list[Purchase],
    today: date,
    window_days: int = ANOMALY_WINDOW_DAYS,
    z: float = ANOMALY_Z,
    floor: float = ANOMALY_FLOOR,
) -> int:
    """Count trailing-window purchases far above the window's mean.

    A purchase is anomalous when it exceeds ``mean + z*stdev`` and also
    the absolute *floor*.
    """
    start = today - timedelta(days=window_days)
    amounts = [finite_or_zero(p.amount) for p in purchases if p.purchase_date >= start]
    threshold, _ = _anomaly_threshold(amounts, z)
    return sum(1 for a in amounts if a > threshold and a > floor)


def is_missing_category(category: str | None) -> bool:
    return normalize_text(category) in _GENERIC_CATEGORIES


def count_pending_reconciliation(purchases: list[Purchase]) -> int:
    return sum(1 for p in purchases if p.effective_status == ReconciliationStatus.PENDING)


def count_split_mismatches(
    purchases: list[Purchase],
    splits: list[PurchaseSplit],
) -> int:
    """Purchases whose split rows don't add up to the purchase amount."""
    split_map = _splits_by_purchase(splits)
    mismatches = 0
    for p in purchases:
        parts = split_map.get(p.id)
        if not parts:
            continue
        split_total = round_currency(sum(finite_or_zero(s.amount) for s in parts))
        if abs(split_total - round_currency(p.amount)) > SPLIT_TOLERANCE:
            mismatches += 1
    return mismatches


def summarize_data_quality(
    purchases: list[Purchase],
    splits: list[PurchaseSplit],
    today: date,
    anomaly_window_days: int = ANOMALY_WINDOW_DAYS,
    anomaly_z: float = ANOMALY_Z,
    anomaly_floor: float = ANOMALY_FLOOR,
) -> DataQualitySummary:
    return DataQualitySummary(
        duplicate_count=count_duplicate_groups(purchases),
        anomaly_count=count_anomalies(
            purchases, today, anomaly_window_days, anomaly_z, anomaly_floor
        ),
        missing_category_count=sum(1 for p in purchases if is_missing_category(p.category)),
        pending_reconciliation_count=count_pending_reconciliation(purchases),
        split_mismatch_count=count_split_mismatches(purchases, splits),
    )


def range_quality_kpis(
    purchases: list[Purchase],
    z: float = ANOMALY_Z,
    floor: float = ANOMALY_FLOOR,
) -> RangeQualityKpis:
    """Data-quality figures for an arbitrary purchase range.

    Unlike the trailing-window anomaly count, the whole range is the
    sample, and a range with zero spread flags nothing.
    """
    if not purchases:
        return RangeQualityKpis()

    amounts = [finite_or_zero(p.amount) for p in purchases]
    threshold, std = _anomaly_threshold(amounts, z)
    anomalies = 0
    if std > 0:
        anomalies = sum(1 for a in amounts if a > threshold and a > floor)

    settled = [p for p in purchases if p.effective_status != ReconciliationStatus.PENDING]
    reconciled = sum(1 for p in settled if p.effective_status == ReconciliationStatus.RECONCILED)

    return RangeQualityKpis(
        purchase_count=len(purchases),
        pending_count=len(purchases) - len(settled),
        missing_category_count=sum(1 for p in purchases if is_missing_category(p.category)),
        duplicate_count=count_duplicate_groups(purchases),
        anomaly_count=anomalies,
        reconciliation_completion_rate=reconciled / len(settled) if settled else 1.0,
    )


def top_categories(
    purchases: list[Purchase],
    limit: int = TOP_CATEGORY_LIMIT,
) -> list[CategoryShare]:
    """Largest spend categories with their share of the total.

    Categories group trimmed and case-insensitive; the label is the first
    spelling seen.
    """
    totals: dict[str, float] = {}
    labels: dict[str, str] = {}
    for p in purchases:
        key = normalize_text(p.category)
        labels.setdefault(key, p.category.strip())
        totals[key] = totals.get(key, 0.0) + finite_or_zero(p.amount)

    grand_total = sum(totals.values())
    ranked = sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]
    return [
        CategoryShare(
            category=labels[key],
            total=round_currency(total),
            share=total / grand_total if grand_total > 0 else 0.0,
        )
        for key, total in ranked
    ]


# --- Month close ---


def build_month_close_checklist(
    month: str,
    quality: DataQualitySummary,
    month_spend: dict[str, float],
    budgets: list[EnvelopeBudget],
    cycle_run_months: list[str],
) -> list[ChecklistItem]:
    """Steps left before a month can be closed.

    *month_spend* is keyed by normalized category, as returned by
    :func:`month_spend_by_category`.
    """
    top_spend = [
        category
        for category, _ in sorted(month_spend.items(), key=lambda kv: -kv[1])[:CHECKLIST_TOP_CATEGORIES]
    ]
    budgeted = {normalize_text(b.category) for b in budgets}
    cycle_done = month in cycle_run_months

    return [
        ChecklistItem(
            id="pending-reconciliation",
            label="Resolve pending purchase reconciliation",
            done=quality.pending_reconciliation_count == 0,
            detail=f"{quality.pending_reconciliation_count} pending entries",
        ),
        ChecklistItem(
            id="cycle-run",
            label=f"Run monthly cycle for {month}",
            done=cycle_done,
            detail="Cycle run recorded" if cycle_done else "No cycle run recorded",
        ),
        ChecklistItem(
            id="anomalies-reviewed",
            label="Review spending anomalies",
            done=quality.anomaly_count == 0,
            detail=f"{quality.anomaly_count} anomalies flagged",
        ),
        ChecklistItem(
            id="budget-coverage",
            label="Cover top spending categories with budgets",
            done=all(c in budgeted for c in top_spend),
            detail=(
                f"{len(top_spend)} top categories checked"
                if top_spend else "No spend categories yet"
            ),
        ),
        ChecklistItem(
            id="categories-complete",
            label="Clear missing categories",
            done=quality.missing_category_count == 0,
            detail=f"{quality.missing_category_count} uncategorized entries",
        ),
    ]

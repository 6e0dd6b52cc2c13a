"""Caller-contract checks.

The analytics themselves never raise on messy data. These helpers are for
the few inputs a caller must get right: month keys, one budget per
category per month, and split rows that add up to their purchase.
"""

from __future__ import annotations

from fincast.core.cadence import parse_month_key
from fincast.core.resolvers import normalize_text
from fincast.models.schemas import EnvelopeBudget, PurchaseSplit, round_currency

# Largest split-vs-purchase difference still treated as reconciled.
SPLIT_TOLERANCE = 0.01


class EngineInputError(ValueError):
    """Base class for caller-contract violations."""


class MonthKeyError(EngineInputError):
    """Raised when a month key is not ``YYYY-MM``."""

    def __init__(self, value: str, label: str = "Month"):
        self.value = value
        self.label = label
        super().__init__(f"{label} must use YYYY-MM format, got '{value}'.")


class DuplicateBudgetError(EngineInputError):
    """Raised when a category has more than one budget in the same month."""

    def __init__(self, month: str, category: str):
        self.month = month
        self.category = category
        super().__init__(
            f"A budget for '{category}' already exists in {month}."
        )


class SplitMismatchError(EngineInputError):
    """Raised when split amounts don't sum to the purchase total."""

    def __init__(self, purchase_total: float, split_total: float):
        self.purchase_total = purchase_total
        self.split_total = split_total
        self.difference = round_currency(abs(split_total - purchase_total))
        super().__init__(
            f"Split amounts sum to ${split_total:.2f} but total is "
            f"${purchase_total:.2f}. Difference: ${self.difference:.2f}"
        )


def validate_month_key(value: str, label: str = "Month") -> str:
    """Return *value* unchanged if it is a valid ``YYYY-MM`` key."""
    if parse_month_key(value) is None:
        raise MonthKeyError(value, label)
    return value


def validate_unique_budgets(budgets: list[EnvelopeBudget]) -> None:
    """Raise if any (month, category) pair appears twice.

    Categories compare trimmed and case-insensitive.
    """
    seen: set[tuple[str, str]] = set()
    for b in budgets:
        validate_month_key(b.month, "Budget month")
        key = (b.month, normalize_text(b.category))
        if key in seen:
            raise DuplicateBudgetError(b.month, b.category.strip())
        seen.add(key)


def validate_split_amounts(
    purchase_total: float,
    splits: list[PurchaseSplit],
) -> None:
    """Raise :class:`SplitMismatchError` if splits don't sum to the total."""
    split_total = round_currency(sum(s.amount for s in splits))
    total = round_currency(purchase_total)
    if abs(split_total - total) > SPLIT_TOLERANCE:
        raise SplitMismatchError(total, split_total)

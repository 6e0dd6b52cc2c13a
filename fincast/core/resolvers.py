"""Resolution helpers for ledger records.

Pure functions that resolve a record to the single figure or rule the
analytics need. No I/O; they operate on already-fetched data and never
raise for missing optional fields.
"""

from __future__ import annotations

from fincast.models.schemas import (
    Account,
    Income,
    Purchase,
    RuleMatchType,
    TransactionRule,
    finite_or_zero,
)


def normalize_text(value: str | None) -> str:
    """Trim and lowercase free text for grouping and matching."""
    return (value or "").strip().lower()


def resolve_income_net_amount(income: Income) -> float:
    """Net amount of one income payment.

    When a gross amount or any deduction is recorded the net is
    ``gross - deductions`` (floored at 0); otherwise the plain amount.
    """
    gross = finite_or_zero(income.gross_amount)
    deductions = (
        finite_or_zero(income.tax_amount)
        + finite_or_zero(income.national_insurance_amount)
        + finite_or_zero(income.pension_amount)
    )
    if gross > 0 or deductions > 0:
        return max(gross - deductions, 0.0)
    return max(finite_or_zero(income.amount), 0.0)


def resolve_liquid_reserves(accounts: list[Account]) -> float:
    """Sum of positive balances across accounts flagged liquid."""
    return sum(
        max(finite_or_zero(a.balance), 0.0)
        for a in accounts
        if a.liquid
    )


def rule_matches(rule: TransactionRule, item: str) -> bool:
    value = normalize_text(item)
    pattern = normalize_text(rule.merchant_pattern)
    if not pattern:
        return False
    if rule.match_type == RuleMatchType.EXACT:
        return value == pattern
    if rule.match_type == RuleMatchType.STARTS_WITH:
        return value.startswith(pattern)
    return pattern in value


def resolve_transaction_rule(
    rules: list[TransactionRule],
    item: str,
) -> TransactionRule | None:
    """Find the rule that applies to a purchase's item text.

    Only active rules are considered, highest priority first; ties go to
    the rule created earliest. Returns ``None`` if nothing matches.
    """
    ordered = sorted(
        (r for r in rules if r.active),
        key=lambda r: (-r.priority, r.created_at),
    )
    for rule in ordered:
        if rule_matches(rule, item):
            return rule
    return None


def apply_transaction_rules(
    rules: list[TransactionRule],
    purchases: list[Purchase],
) -> list[Purchase]:
    """Return copies of *purchases* with matching rules applied.

    The category is replaced, and the reconciliation status too when the
    rule sets one. Purchases with no matching rule are returned unchanged.
    """
    result = []
    for p in purchases:
        rule = resolve_transaction_rule(rules, p.item)
        if rule is None:
            result.append(p)
            continue
        update: dict = {"category": rule.category}
        if rule.reconciliation_status is not None:
            update["reconciliation_status"] = rule.reconciliation_status
        result.append(p.model_copy(update=update))
    return result

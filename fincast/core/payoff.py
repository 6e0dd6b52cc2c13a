"""Debt payoff ordering: avalanche (APR first) and snowball (balance first)."""

from fincast.models.results import CardReport, PayoffEntry, PayoffRanking, PayoffStrategy
from fincast.models.schemas import round_currency


def build_payoff_entries(reports: list[CardReport]) -> list[PayoffEntry]:
    """Reduce card reports to payoff entries, dropping zero balances."""
    entries = []
    for r in reports:
        balance = round_currency(max(r.display_current_balance, 0.0))
        if balance <= 0:
            continue
        entries.append(PayoffEntry(
            id=r.id,
            name=r.name,
            balance=balance,
            apr=r.apr,
            monthly_interest=r.interest_amount,
            utilization=r.display_utilization,
            minimum_due=r.minimum_due,
            planned_payment=r.planned_payment,
        ))
    return entries


def _avalanche_key(e: PayoffEntry):
    return (-e.apr, -e.monthly_interest, -e.balance, e.name.casefold(), e.id)


def _snowball_key(e: PayoffEntry):
    return (e.balance, -e.apr, -e.monthly_interest, e.name.casefold(), e.id)


def rank_payoff(entries: list[PayoffEntry], strategy: PayoffStrategy) -> list[PayoffEntry]:
    """Order entries for *strategy*.

    Avalanche: APR desc, monthly interest desc, balance desc, name.
    Snowball: balance asc, APR desc, monthly interest desc, name.
    Entries with no positive balance are excluded.
    """
    positive = [e for e in entries if e.balance > 0]
    key = _avalanche_key if strategy == PayoffStrategy.AVALANCHE else _snowball_key
    return sorted(positive, key=key)


def payoff_plan(entries: list[PayoffEntry]) -> PayoffRanking:
    avalanche = rank_payoff(entries, PayoffStrategy.AVALANCHE)
    snowball = rank_payoff(entries, PayoffStrategy.SNOWBALL)
    return PayoffRanking(
        avalanche=avalanche,
        snowball=snowball,
        avalanche_target=avalanche[0] if avalanche else None,
        snowball_target=snowball[0] if snowball else None,
    )

"""Recurring purchase detection from a flat purchase history."""

from __future__ import annotations

import math
from datetime import date, timedelta

from fincast.core.resolvers import normalize_text
from fincast.models.results import RecurringCandidate
from fincast.models.schemas import Purchase, finite_or_zero, round_currency

RECURRING_WINDOW_DAYS = 210
MIN_OCCURRENCES = 3
MIN_MEAN_GAP_DAYS = 5
MAX_MEAN_GAP_DAYS = 45
MAX_CANDIDATES = 8


def _confidence(gaps: list[int], mean_gap: float, count: int) -> float:
    """``clamp(1 - MAD/20 + 0.04*count, 0, 1)``."""
    mad = sum(abs(g - mean_gap) for g in gaps) / len(gaps)
    return max(0.0, min(1.0, 1 - mad / 20 + count * 0.04))


def detect_recurring_candidates(
    purchases: list[Purchase],
    today: date,
    window_days: int = RECURRING_WINDOW_DAYS,
    limit: int = MAX_CANDIDATES,
) -> list[RecurringCandidate]:
    """Find merchants bought from at a steady, subscription-like rhythm.

    Purchases inside the trailing window are grouped by trimmed,
    case-insensitive item text. A group needs at least three purchases
    and a mean gap between 5 and 45 days. Candidates are ranked by
    confidence, then purchase count.
    """
    window_start = today - timedelta(days=window_days)

    groups: dict[str, list[Purchase]] = {}
    for p in purchases:
        if p.purchase_date < window_start:
            continue
        groups.setdefault(normalize_text(p.item), []).append(p)

    candidates: list[RecurringCandidate] = []
    for key, group in groups.items():
        if len(group) < MIN_OCCURRENCES:
            continue

        ordered = sorted(group, key=lambda p: p.purchase_date)
        gaps = [
            (ordered[i].purchase_date - ordered[i - 1].purchase_date).days
            for i in range(1, len(ordered))
        ]
        mean_gap = sum(gaps) / len(gaps)
        if mean_gap < MIN_MEAN_GAP_DAYS or mean_gap > MAX_MEAN_GAP_DAYS:
            continue

        last = ordered[-1]
        average_amount = sum(finite_or_zero(p.amount) for p in ordered) / len(ordered)
        confidence = _confidence(gaps, mean_gap, len(ordered))

        candidates.append(RecurringCandidate(
            id=key,
            label=last.item,
            category=last.category,
            count=len(ordered),
            average_amount=round_currency(average_amount),
            average_interval_days=round_currency(mean_gap),
            next_expected_date=last.purchase_date + timedelta(days=math.floor(mean_gap)),
            confidence=round_currency(confidence * 100),
        ))

    candidates.sort(key=lambda c: (-c.confidence, -c.count))
    return candidates[:limit]

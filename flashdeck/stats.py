"""
Deck statistics: maturity, review forecast, study streak.

Maturity buckets by interval:
- new:      ivl <= 1
- learning: 1 < ivl <= 21
- known:    ivl > 21
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import date, timedelta
from enum import Enum
from typing import Any

from .card import Card, CardState, normalize
from .clock import Clock, SystemClock

KNOWN_INTERVAL_DAYS = 21


class Maturity(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    KNOWN = "known"


def maturity(card: Card) -> Maturity:
    """Bucket a card by its current interval."""
    if card.ivl <= 1:
        return Maturity.NEW
    if card.ivl <= KNOWN_INTERVAL_DAYS:
        return Maturity.LEARNING
    return Maturity.KNOWN


def filter_by_maturity(cards: Iterable[Any], bucket: Maturity | str | None) -> list[Card]:
    """Cards in a maturity bucket; None or "all" keeps everything."""
    normalized = [normalize(c) for c in cards]
    if bucket is None or bucket == "all":
        return normalized
    bucket = Maturity(bucket)
    return [c for c in normalized if maturity(c) == bucket]


def review_forecast(
    cards: Iterable[Any],
    days: int = 7,
    clock: Clock | None = None,
) -> list[tuple[date, int]]:
    """
    Reviews falling due on each of the next `days` days.

    Args:
        cards: Card records
        days: Number of days, today included
        clock: Provider of the current day

    Returns:
        List of (day, count), today first
    """
    today = (clock or SystemClock()).today()
    due_counts = Counter(c.due for c in map(normalize, cards) if not c.is_new and c.due)
    return [(day, due_counts.get(day, 0)) for day in (today + timedelta(days=i) for i in range(days))]


def answered_days(cards: Iterable[Any]) -> set[date]:
    """Distinct days on which any card was last answered."""
    return {c.last_answered for c in map(normalize, cards) if c.last_answered}


def study_streak(days: Iterable[date], clock: Clock | None = None) -> int:
    """
    Consecutive study days ending today or yesterday.

    A streak whose latest day is older than yesterday is broken (0).
    """
    today = (clock or SystemClock()).today()
    unique = sorted(set(days), reverse=True)
    if not unique or unique[0] < today - timedelta(days=1):
        return 0

    streak = 1
    for current, previous in zip(unique, unique[1:]):
        if (current - previous).days != 1:
            break
        streak += 1
    return streak


def known_progress(
    cards: Iterable[Any],
    days: int = 30,
    clock: Clock | None = None,
) -> list[tuple[date, int]]:
    """
    Known-card counts over the last `days` days.

    For each day, counts known cards whose due date lies after that day.

    Returns:
        List of (day, count), oldest first
    """
    today = (clock or SystemClock()).today()
    known = [c for c in map(normalize, cards) if maturity(c) == Maturity.KNOWN and c.due]
    result = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        result.append((day, sum(1 for c in known if c.due > day)))
    return result


def deck_stats(
    cards: Iterable[Any],
    clock: Clock | None = None,
    extra_answered_days: Iterable[date] = (),
) -> dict:
    """
    Aggregate statistics for a deck.

    Args:
        cards: Card records
        clock: Provider of the current day
        extra_answered_days: Additional study days (e.g. from a review log)

    Returns:
        Dictionary with aggregate stats
    """
    clock = clock or SystemClock()
    today = clock.today()
    normalized = [normalize(c) for c in cards]

    by_state = Counter(c.state.value for c in normalized)
    by_maturity = Counter(maturity(c).value for c in normalized)

    return {
        "total_cards": len(normalized),
        "by_state": {s.value: by_state.get(s.value, 0) for s in CardState},
        "by_maturity": {m.value: by_maturity.get(m.value, 0) for m in Maturity},
        "due_today": sum(1 for c in normalized if c.is_due(today)),
        "new_available": by_state.get(CardState.NEW.value, 0),
        "total_lapses": sum(c.lapses for c in normalized),
        "streak_days": study_streak(answered_days(normalized) | set(extra_answered_days), clock),
    }

"""
Queue Builder: the ordered working queue for a study session.

Order:
1. Due reviews (non-new cards due today or earlier), oldest first
2. New cards, up to the per-session limit, in input order
3. Future cards (not yet due) as filler, soonest first
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from loguru import logger

from .card import Card, normalize
from .clock import Clock, SystemClock


@dataclass
class StudySession:
    """A prepared study session."""

    due_cards: list[Card] = field(default_factory=list)
    new_cards: list[Card] = field(default_factory=list)
    future_cards: list[Card] = field(default_factory=list)

    @property
    def queue(self) -> list[Card]:
        """Due ++ New ++ Future, as a fresh list."""
        return [*self.due_cards, *self.new_cards, *self.future_cards]

    @property
    def total_cards(self) -> int:
        return len(self.due_cards) + len(self.new_cards) + len(self.future_cards)

    @property
    def estimated_minutes(self) -> int:
        """Estimate study time (30 sec per card average)."""
        return max(1, self.total_cards // 2)


def build_session(
    cards: Iterable[Any],
    new_card_limit: int,
    clock: Clock | None = None,
) -> StudySession:
    """
    Partition cards into due, new and future groups for today.

    Args:
        cards: Card records (raw mappings or Cards); normalized first
        new_card_limit: Maximum new cards to introduce (negative means 0)
        clock: Provider of the current day

    Returns:
        StudySession with the three sorted groups
    """
    today = (clock or SystemClock()).today()
    limit = max(0, new_card_limit)

    session = StudySession()
    new_available = 0

    for raw in cards:
        card = normalize(raw)
        if card.is_new:
            new_available += 1
            if len(session.new_cards) < limit:
                session.new_cards.append(card)
        elif card.is_due(today):
            session.due_cards.append(card)
        else:
            session.future_cards.append(card)

    # Stable sorts: ties keep input order. Absent due counts as "now".
    session.due_cards.sort(key=lambda c: _due_key(c, today))
    session.future_cards.sort(key=lambda c: _due_key(c, date.max))

    logger.debug(
        f"Queue built: {len(session.due_cards)} due + "
        f"{len(session.new_cards)}/{new_available} new + "
        f"{len(session.future_cards)} future = {session.total_cards} cards"
    )
    return session


def _due_key(card: Card, absent: date) -> date:
    return card.due if card.due is not None else absent


def build_queue(
    cards: Iterable[Any],
    new_card_limit: int,
    clock: Clock | None = None,
) -> list[Card]:
    """
    Build the ordered working queue: Due ++ New ++ Future.

    Args:
        cards: Card records (raw mappings or Cards)
        new_card_limit: Maximum new cards to introduce
        clock: Provider of the current day

    Returns:
        Ordered list of normalized cards
    """
    return build_session(cards, new_card_limit, clock).queue


def filter_by_tags(cards: Iterable[Any], tags: Iterable[str]) -> list[Card]:
    """
    Keep cards carrying at least one of the given tags.

    An empty tag set keeps every card.
    """
    wanted = {t.strip() for t in tags if t and t.strip()}
    normalized = [normalize(c) for c in cards]
    if not wanted:
        return normalized
    return [c for c in normalized if wanted.intersection(c.tags)]

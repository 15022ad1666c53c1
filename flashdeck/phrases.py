"""
Phrase lists: header groups, tag filter and star ratings.

Phrase decks are stored in order. A card whose front starts with "#"
is a header for the cards that follow it, up to the next header.
Within each group, phrases are shown best-rated first.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from .card import Card, normalize
from .queue_builder import filter_by_tags


@dataclass
class PhraseGroup:
    """Phrases under one header (None for phrases before the first header)."""

    header: str | None
    cards: list[Card] = field(default_factory=list)


def group_phrases(cards: Iterable[Any], tags: Iterable[str] = ()) -> list[PhraseGroup]:
    """
    Group phrases under their headers.

    Args:
        cards: Card records in storage order
        tags: Keep only phrases carrying one of these tags (empty keeps all)

    Returns:
        Non-empty groups in storage order, each sorted by rating (highest
        first, ties in storage order)
    """
    tags = list(tags)
    groups: list[PhraseGroup] = []
    current: PhraseGroup | None = None

    for card in map(normalize, cards):
        if card.is_header:
            current = PhraseGroup(header=card.front[1:].strip())
            groups.append(current)
            continue
        if current is None:
            current = PhraseGroup(header=None)
            groups.append(current)
        current.cards.append(card)

    result = []
    for group in groups:
        kept = filter_by_tags(group.cards, tags)
        if kept:
            kept.sort(key=lambda c: c.rating, reverse=True)
            result.append(PhraseGroup(header=group.header, cards=kept))
    return result


def rate(card: Any, rating: int) -> Card:
    """Return a copy of the card with a 0-5 star rating."""
    if isinstance(rating, bool) or not isinstance(rating, int) or not 0 <= rating <= 5:
        raise ValueError(f"Rating must be 0-5, got {rating!r}")
    card = normalize(card)
    return replace(card, extra={**card.extra, "rating": rating})

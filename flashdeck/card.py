"""
Card: the unit of learning and its normalizer.

A card is a front/back pair (word, phrase or sentence) plus the
scheduling fields the state machine needs. Records coming from storage
may be partial, may use the legacy SM-2 field names, or may carry
values of the wrong type; normalize() turns any of them into a fully
populated Card without ever raising.

Persisted record keys (camelCase, as stored by the card sink):
    id, front, back, state, factor, ivl, reps, lapses,
    stepIndex, lapseStepIndex, due, lastAnswered

Legacy SM-2 keys migrated on read:
    repetition -> reps, efactor -> factor, interval -> ivl, dueDate -> due

Content fallbacks: english -> front, russian -> back, phrase -> front
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from loguru import logger

DEFAULT_FACTOR = 2.5
MINIMUM_FACTOR = 1.3
MAX_INTERVAL_DAYS = (date.max - date.min).days

# Keys owned by Card; anything else is carried through in Card.extra
_CARD_KEYS = {
    "id",
    "front",
    "back",
    "state",
    "factor",
    "ivl",
    "reps",
    "lapses",
    "stepIndex",
    "lapseStepIndex",
    "due",
    "lastAnswered",
}
_LEGACY_KEYS = {"repetition", "efactor", "interval", "dueDate"}


class CardState(str, Enum):
    """Scheduling state of a card."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


@dataclass
class Card:
    """
    A learnable item with its scheduling state.

    front/back are opaque to the scheduler. ivl is in days and only
    meaningful once the card has reached review.
    """

    id: str | None = None
    front: str = ""
    back: str = ""
    state: CardState = CardState.NEW
    factor: float = DEFAULT_FACTOR
    ivl: int = 0
    reps: int = 0
    lapses: int = 0
    step_index: int = 0
    lapse_step_index: int = 0
    due: date | None = None
    last_answered: date | None = None

    # Pass-through fields (tags, notes, source columns...)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Card:
        """Build a card from a persisted record (same as normalize)."""
        return normalize(data)

    def to_dict(self) -> dict[str, Any]:
        """Render the persisted record for the card sink."""
        record = dict(self.extra)
        record.update(
            {
                "id": self.id,
                "front": self.front,
                "back": self.back,
                "state": self.state.value,
                "factor": self.factor,
                "ivl": self.ivl,
                "reps": self.reps,
                "lapses": self.lapses,
                "stepIndex": self.step_index,
                "lapseStepIndex": self.lapse_step_index,
                "due": self.due.isoformat() if self.due else None,
                "lastAnswered": self.last_answered.isoformat() if self.last_answered else None,
            }
        )
        return record

    @property
    def is_new(self) -> bool:
        return self.state == CardState.NEW

    @property
    def is_header(self) -> bool:
        """Phrase-list header row ("# Greetings"), not a learnable card."""
        return self.front.startswith("#")

    @property
    def rating(self) -> int:
        """User star rating 0-5 from the `rating` pass-through field."""
        return min(5, max(0, _to_int(self.extra.get("rating"))))

    @property
    def tags(self) -> list[str]:
        """Tags from the comma-separated `tags` pass-through field."""
        raw = self.extra.get("tags")
        if not raw:
            return []
        if isinstance(raw, str):
            raw = raw.split(",")
        return [str(t).strip() for t in raw if str(t).strip()]

    def is_due(self, today: date) -> bool:
        """Whether a non-new card is eligible for review on `today`."""
        if self.is_new:
            return False
        return self.due is None or self.due <= today


# =============================================================================
# Normalizer
# =============================================================================


def parse_date(value: Any) -> date | None:
    """
    Parse a due/answered date at day granularity.

    Accepts date, datetime and ISO strings ("2024-05-01" or a full
    timestamp such as "2024-05-01T00:00:00.000Z"). Returns None for
    anything else.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            logger.debug(f"Unparseable date {value!r}, treating as absent")
            return None
    return None


def _to_int(value: Any, default: int = 0) -> int:
    if not value or isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        logger.debug(f"Non-numeric value {value!r}, using {default}")
        return default


def _to_float(value: Any, default: float) -> float:
    if not value or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.debug(f"Non-numeric value {value!r}, using {default}")
        return default
    return number if math.isfinite(number) else default


def _to_state(value: Any) -> CardState | None:
    if isinstance(value, CardState):
        return value
    if not value:
        return None
    try:
        return CardState(str(value).strip().lower())
    except ValueError:
        logger.debug(f"Unknown card state {value!r}, treating as absent")
        return None


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    """First truthy value among keys (modern key first, then legacy)."""
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return None


def normalize(raw: Any) -> Card:
    """
    Ensure a record has every scheduling field.

    Absent or falsy fields take their defaults; malformed values degrade
    to defaults rather than raising. Legacy SM-2 records are migrated:
    a legacy record with no state but at least one successful
    repetition is placed in review.

    Args:
        raw: A persisted record (mapping) or an existing Card

    Returns:
        A new, fully populated Card
    """
    if isinstance(raw, Card):
        raw = raw.to_dict()
    if not isinstance(raw, Mapping):
        logger.debug(f"Cannot normalize {type(raw).__name__}, using an empty card")
        raw = {}

    reps = _to_int(_first(raw, "reps", "repetition"))

    state = _to_state(raw.get("state"))
    if state is None:
        legacy_graduated = "state" not in raw and _to_int(raw.get("repetition")) > 0
        state = CardState.REVIEW if legacy_graduated else CardState.NEW

    factor = max(MINIMUM_FACTOR, _to_float(_first(raw, "factor", "efactor"), DEFAULT_FACTOR))

    card_id = raw.get("id")
    extra = {k: v for k, v in raw.items() if k not in _CARD_KEYS and k not in _LEGACY_KEYS}

    return Card(
        id=str(card_id) if card_id is not None and card_id != "" else None,
        front=str(_first(raw, "front", "english", "phrase") or ""),
        back=str(_first(raw, "back", "russian") or ""),
        state=state,
        factor=factor,
        ivl=min(MAX_INTERVAL_DAYS, max(0, _to_int(_first(raw, "ivl", "interval")))),
        reps=max(0, reps),
        lapses=max(0, _to_int(raw.get("lapses"))),
        step_index=max(0, _to_int(raw.get("stepIndex"))),
        lapse_step_index=max(0, _to_int(raw.get("lapseStepIndex"))),
        due=parse_date(_first(raw, "due", "dueDate")),
        last_answered=parse_date(raw.get("lastAnswered")),
        extra=extra,
    )

"""
Spaced Repetition Scheduler.

Implements:
- The learning/review/relearning state machine (primary mode)
- The original SM-2 algorithm (legacy mode, for old decks)

Quality Scale:
1 - Again (failed to recall)
3 - Hard (recalled with serious difficulty)
4 - Good (recalled with some hesitation)
5 - Easy (perfect recall)

2 is not produced by the study buttons; 0 and 2 are accepted and
treated like 1.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date, timedelta
from enum import IntEnum

from loguru import logger

from .card import MINIMUM_FACTOR, Card, CardState, normalize
from .clock import Clock, SystemClock
from .errors import InvalidQualityError


class Quality(IntEnum):
    """Answer buttons and their ratings."""

    AGAIN = 1
    HARD = 3
    GOOD = 4
    EASY = 5


FAIL_THRESHOLD = 2  # ratings at or below this are failures


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


def add_days(day: date, days: int) -> date:
    """Calendar arithmetic that saturates at date.max for huge intervals."""
    try:
        return day + timedelta(days=days)
    except OverflowError:
        return date.max


def validate_quality(quality: int) -> int:
    """Return quality as an int, raising InvalidQualityError outside 0-5."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidQualityError(f"Quality must be an integer 0-5, got {quality!r}")
    if quality < 0 or quality > 5:
        raise InvalidQualityError(f"Quality must be 0-5, got {quality}")
    return int(quality)


@dataclass(frozen=True)
class ScheduleResult:
    """
    Outcome of one review.

    immediate=True means the card must be shown again in the current
    session (re-queued at the back); False means it leaves the session
    until its due date.
    """

    updated: Card
    immediate: bool


# =============================================================================
# Learning / Review State Machine
# =============================================================================


def _check_minimum_factor(value: float) -> None:
    # Stored cards are normalized with this floor, so a config may only raise it
    if value < MINIMUM_FACTOR:
        raise ValueError(f"minimum_factor must be at least {MINIMUM_FACTOR}, got {value}")


@dataclass
class SchedulerConfig:
    """Configuration for the state machine."""

    minimum_factor: float = MINIMUM_FACTOR
    learning_steps: int = 2  # same-day repeats before graduating
    relearning_steps: int = 1  # same-day repeats after a lapse
    min_interval_days: int = 1
    hard_interval_multiplier: float = 1.2
    easy_bonus: float = 1.3
    easy_factor_bonus: float = 0.05
    lapse_factor_penalty: float = 0.2
    relearn_interval_multiplier: float = 0.5

    def __post_init__(self):
        _check_minimum_factor(self.minimum_factor)


class Scheduler:
    """
    Computes the next state of a card from a quality rating.

    Cards move new -> learning -> review, drop to relearning on a lapse
    and return to review after the relearning steps. Learning and
    relearning steps are same-session repeats; review intervals grow
    multiplicatively with the card's ease factor.
    """

    def __init__(self, config: SchedulerConfig | None = None, clock: Clock | None = None):
        """
        Initialize the scheduler.

        Args:
            config: Custom configuration (uses defaults if None)
            clock: Provider of the current day (system clock if None)
        """
        self.config = config or SchedulerConfig()
        self.clock = clock or SystemClock()

    def schedule(self, card: Card, quality: int) -> ScheduleResult:
        """
        Apply a review to a card.

        Args:
            card: Card being answered (not modified)
            quality: Rating 1/3/4/5 (0-5 accepted)

        Returns:
            ScheduleResult with the updated card and the re-queue flag
        """
        quality = validate_quality(quality)
        card = normalize(card)
        today = self.clock.today()

        if card.state in (CardState.NEW, CardState.LEARNING):
            updated, immediate = self._schedule_learning(card, quality)
        elif card.state == CardState.REVIEW:
            updated, immediate = self._schedule_review(card, quality)
        else:
            updated, immediate = self._schedule_relearning(card, quality)

        due = today if immediate else add_days(today, updated.ivl)
        updated = replace(updated, due=due, last_answered=today)

        logger.debug(
            f"Scheduled {card.id}: {card.state.value} -> {updated.state.value}, "
            f"q={quality}, ivl={updated.ivl}d, factor={updated.factor:.2f}, "
            f"immediate={immediate}"
        )
        return ScheduleResult(updated=updated, immediate=immediate)

    def _schedule_learning(self, card: Card, quality: int) -> tuple[Card, bool]:
        cfg = self.config

        if quality <= FAIL_THRESHOLD:
            return replace(card, state=CardState.LEARNING, step_index=0), True

        if quality == Quality.HARD:
            # Repeat the current step
            return replace(card, state=CardState.LEARNING), True

        if quality == Quality.GOOD:
            if card.step_index + 1 < cfg.learning_steps:
                return replace(card, state=CardState.LEARNING, step_index=card.step_index + 1), True
            ivl = max(cfg.min_interval_days, card.ivl or 1)
            return self._graduate(card, ivl), False

        # Easy: graduate straight away with a bonus
        ivl = max(cfg.min_interval_days, round_half_up(max(1, card.ivl) * cfg.easy_bonus))
        return self._graduate(card, ivl, factor=card.factor + cfg.easy_factor_bonus), False

    def _graduate(self, card: Card, ivl: int, factor: float | None = None) -> Card:
        return replace(
            card,
            state=CardState.REVIEW,
            step_index=0,
            ivl=ivl,
            factor=card.factor if factor is None else factor,
            reps=card.reps + 1,
        )

    def _schedule_review(self, card: Card, quality: int) -> tuple[Card, bool]:
        cfg = self.config

        if quality <= FAIL_THRESHOLD:
            # Lapse; reps are deliberately left as they are
            return (
                replace(
                    card,
                    state=CardState.RELEARNING,
                    lapse_step_index=0,
                    ivl=cfg.min_interval_days,
                    lapses=card.lapses + 1,
                    factor=max(cfg.minimum_factor, card.factor - cfg.lapse_factor_penalty),
                ),
                True,
            )

        factor = card.factor
        if quality == Quality.HARD:
            ivl = max(cfg.min_interval_days, round_half_up(card.ivl * cfg.hard_interval_multiplier))
        elif quality == Quality.GOOD:
            ivl = max(cfg.min_interval_days, round_half_up(card.ivl * card.factor))
        else:
            boosted = card.factor * cfg.easy_bonus
            factor = card.factor + cfg.easy_factor_bonus
            ivl = max(card.ivl + 1, round_half_up(card.ivl * boosted))

        return replace(card, ivl=ivl, factor=factor, reps=card.reps + 1), False

    def _schedule_relearning(self, card: Card, quality: int) -> tuple[Card, bool]:
        cfg = self.config

        if quality <= FAIL_THRESHOLD:
            return replace(card, state=CardState.RELEARNING, lapse_step_index=0), True

        if card.lapse_step_index + 1 < cfg.relearning_steps:
            return replace(card, lapse_step_index=card.lapse_step_index + 1), True

        ivl = max(cfg.min_interval_days, round_half_up(card.ivl * cfg.relearn_interval_multiplier))
        return (
            replace(
                card,
                state=CardState.REVIEW,
                lapse_step_index=0,
                ivl=ivl,
                reps=card.reps + 1,
            ),
            False,
        )


# =============================================================================
# Legacy SM-2
# =============================================================================


@dataclass
class SM2Config:
    """Configuration for the legacy SM-2 algorithm."""

    minimum_factor: float = MINIMUM_FACTOR
    first_interval: int = 1  # Days for first review
    second_interval: int = 6  # Days for second review

    def __post_init__(self):
        _check_minimum_factor(self.minimum_factor)


class LegacySM2Scheduler:
    """
    The original SM-2 algorithm, kept for decks scheduled before the
    learning/relearning steps existed.

    There are no same-session repeats: every answer moves the due date
    forward. Failed cards are meant to be replayed from a lapse pile at
    the end of the session (see LapsePolicy.LAPSE_PILE).
    """

    def __init__(self, config: SM2Config | None = None, clock: Clock | None = None):
        self.config = config or SM2Config()
        self.clock = clock or SystemClock()

    def schedule(self, card: Card, quality: int) -> ScheduleResult:
        """
        Apply a review using SM-2.

        Args:
            card: Card being answered (not modified)
            quality: Rating 0-5

        Returns:
            ScheduleResult, never immediate
        """
        quality = validate_quality(quality)
        card = normalize(card)
        today = self.clock.today()

        # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
        ef_delta = 0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)
        new_factor = max(self.config.minimum_factor, card.factor + ef_delta)

        lapses = card.lapses
        if quality < 3:
            reps = 0
            ivl = self.config.first_interval
            if card.state == CardState.REVIEW:
                lapses += 1
        else:
            reps = card.reps + 1
            if reps == 1:
                ivl = self.config.first_interval
            elif reps == 2:
                ivl = self.config.second_interval
            else:
                # Uses the pre-answer factor, as the original does
                ivl = round_half_up(card.ivl * card.factor)

        updated = replace(
            card,
            state=CardState.REVIEW,
            step_index=0,
            lapse_step_index=0,
            reps=reps,
            ivl=ivl,
            factor=new_factor,
            lapses=lapses,
            due=add_days(today, ivl),
            last_answered=today,
        )

        logger.debug(
            f"SM-2 scheduled {card.id}: q={quality}, reps={reps}, "
            f"ivl={ivl}d, factor={new_factor:.2f}"
        )
        return ScheduleResult(updated=updated, immediate=False)


def create_scheduler(
    mode: str = "anki",
    clock: Clock | None = None,
    **config_kwargs,
) -> Scheduler | LegacySM2Scheduler:
    """
    Build the scheduler for a configured mode.

    Args:
        mode: "anki" for the state machine, "sm2" for legacy SM-2
        clock: Provider of the current day
        **config_kwargs: SchedulerConfig fields (ignored by SM-2 except
            minimum_factor)

    Returns:
        A scheduler exposing schedule(card, quality)
    """
    if mode == "sm2":
        sm2_config = SM2Config(
            minimum_factor=config_kwargs.get("minimum_factor", MINIMUM_FACTOR)
        )
        return LegacySM2Scheduler(sm2_config, clock=clock)
    if mode != "anki":
        raise ValueError(f"Unknown scheduler mode: {mode!r}")
    return Scheduler(SchedulerConfig(**config_kwargs), clock=clock)

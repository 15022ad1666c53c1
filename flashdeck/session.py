"""
Session Runner: drives a study session over a built queue.

One runner per session; all state lives on the instance.

Lifecycle:
    IDLE -> ACTIVE (cards remaining) -> COMPLETE (queue empty)

COMPLETE is terminal. A new session needs a freshly built queue.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from loguru import logger

from .card import Card, normalize
from .scheduler import FAIL_THRESHOLD, LegacySM2Scheduler, ScheduleResult, Scheduler


class CardSink(Protocol):
    """Receives updated cards for persistence, keyed by card id."""

    def save(self, card: Card) -> None: ...


class LapsePolicy(str, Enum):
    """Where failed cards go during a session."""

    REQUEUE = "requeue"  # back of the working queue
    LAPSE_PILE = "lapse_pile"  # legacy: replayed after the queue empties


class RunnerState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETE = "complete"


@dataclass(frozen=True)
class SessionComplete:
    """Returned by next() once no cards remain."""

    answered: int = 0
    requeued: int = 0


@dataclass
class _LastAction:
    before: Card
    after: Card
    requeued_to: deque[Card] | None


class SessionRunner:
    """
    Presents cards one at a time and applies answers.

    Usage:
        runner = SessionRunner(build_queue(cards, 20), scheduler, sink=store)
        item = runner.next()
        while not isinstance(item, SessionComplete):
            runner.answer(item, quality)
            item = runner.next()
    """

    def __init__(
        self,
        queue: Iterable[Any],
        scheduler: Scheduler | LegacySM2Scheduler | None = None,
        sink: CardSink | None = None,
        lapse_policy: LapsePolicy = LapsePolicy.REQUEUE,
    ):
        """
        Initialize the runner.

        Args:
            queue: Ordered cards from the queue builder
            scheduler: Scheduler to apply answers (default Scheduler())
            sink: Optional persistence target for updated cards
            lapse_policy: REQUEUE (default) or legacy LAPSE_PILE
        """
        self.queue: deque[Card] = deque(normalize(c) for c in queue)
        self.lapse_pile: deque[Card] = deque()
        self.scheduler = scheduler or Scheduler()
        self.sink = sink
        self.lapse_policy = LapsePolicy(lapse_policy)

        self.state = RunnerState.IDLE
        self.current: Card | None = None
        self.answered = 0
        self.requeued = 0
        self._last_action: _LastAction | None = None

    @property
    def remaining(self) -> int:
        """Cards still to be shown, including the lapse pile."""
        return len(self.queue) + len(self.lapse_pile)

    @property
    def is_complete(self) -> bool:
        return self.state == RunnerState.COMPLETE

    def next(self) -> Card | SessionComplete:
        """
        Take the next card from the front of the queue.

        Returns:
            The next Card, or SessionComplete when nothing is left
        """
        if self.state == RunnerState.COMPLETE:
            return self._summary()

        if not self.queue and self.lapse_pile:
            logger.debug(f"Replaying {len(self.lapse_pile)} cards from the lapse pile")
            self.queue.extend(self.lapse_pile)
            self.lapse_pile.clear()

        if not self.queue:
            self.state = RunnerState.COMPLETE
            self.current = None
            logger.info(f"Session complete: {self.answered} answers, {self.requeued} re-queued")
            return self._summary()

        self.state = RunnerState.ACTIVE
        self.current = self.queue.popleft()
        return self.current

    def answer(self, card: Card, quality: int) -> ScheduleResult:
        """
        Apply a rating to a card.

        Immediate results are re-queued for this session; the rest leave
        the session. The updated card is handed to the sink either way.

        Args:
            card: The card being answered
            quality: Rating 1/3/4/5

        Returns:
            The scheduler's result
        """
        result = self.scheduler.schedule(card, quality)
        updated = result.updated

        target: deque[Card] | None = None
        if self.lapse_policy == LapsePolicy.LAPSE_PILE and quality <= FAIL_THRESHOLD:
            target = self.lapse_pile
        elif result.immediate:
            target = self.queue

        if target is not None:
            target.append(updated)
            self.requeued += 1

        self.answered += 1
        self.current = None
        self._last_action = _LastAction(before=normalize(card), after=updated, requeued_to=target)
        self._emit(updated)
        return result

    def undo(self) -> Card | None:
        """
        Revert the last answer (single level).

        The pre-answer snapshot is re-sent to the sink and, while the
        session is open, put back at the front of the queue.

        Returns:
            The restored card, or None when there is nothing to undo
        """
        action = self._last_action
        if action is None:
            return None
        self._last_action = None

        if action.requeued_to is not None:
            # The lapse pile may have been replayed into the queue since
            for pile in (self.queue, self.lapse_pile):
                if self._discard(pile, action.after):
                    break
            self.requeued -= 1
        # A card shown since the answer goes back in line behind the restored one
        if self.current is not None and self.current is not action.after:
            self.queue.appendleft(self.current)
        self.current = None

        self.answered -= 1
        if self.state != RunnerState.COMPLETE:
            self.queue.appendleft(action.before)

        logger.debug(f"Undo for {action.before.id}")
        self._emit(action.before)
        return action.before

    def _discard(self, pile: deque[Card], card: Card) -> bool:
        for i, queued in enumerate(pile):
            if queued is card:
                del pile[i]
                return True
        return False

    def _emit(self, card: Card) -> None:
        if self.sink is None:
            return
        try:
            self.sink.save(card)
        except Exception as e:
            # Persistence failures never affect scheduling state
            logger.warning(f"Failed to persist card {card.id}: {e}")

    def _summary(self) -> SessionComplete:
        return SessionComplete(answered=self.answered, requeued=self.requeued)

"""
flashdeck: spaced repetition flashcards.

Components:
- card: Card record and normalizer (current and legacy SM-2 records)
- queue_builder: Session queue ordering (due, new, not yet due)
- scheduler: Learning-step scheduler and legacy SM-2 scheduler
- session: Session runner with re-queue and single-level undo
- card_store: SQLite persistence per dataset, background save sink
- stats: Maturity buckets, forecast, streak
- phrases: Phrase lists grouped by header, star ratings
"""

from .card import Card, CardState, normalize
from .clock import Clock, FixedClock, SystemClock
from .errors import CardImportError, FlashdeckError, InvalidQualityError
from .phrases import PhraseGroup, group_phrases, rate
from .queue_builder import StudySession, build_queue, build_session
from .scheduler import (
    LegacySM2Scheduler,
    Quality,
    ScheduleResult,
    Scheduler,
    SchedulerConfig,
    create_scheduler,
)
from .session import LapsePolicy, SessionComplete, SessionRunner

__all__ = [
    "Card",
    "CardState",
    "normalize",
    "Clock",
    "FixedClock",
    "SystemClock",
    "CardImportError",
    "FlashdeckError",
    "InvalidQualityError",
    "StudySession",
    "build_queue",
    "build_session",
    "LegacySM2Scheduler",
    "Quality",
    "ScheduleResult",
    "Scheduler",
    "SchedulerConfig",
    "create_scheduler",
    "PhraseGroup",
    "group_phrases",
    "rate",
    "LapsePolicy",
    "SessionComplete",
    "SessionRunner",
]

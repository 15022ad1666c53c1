"""
Unit tests for the session runner.
"""
import pytest

from flashdeck.card import Card, CardState
from flashdeck.errors import InvalidQualityError
from flashdeck.scheduler import LegacySM2Scheduler, Quality, Scheduler
from flashdeck.session import LapsePolicy, RunnerState, SessionComplete, SessionRunner


class RecordingSink:
    """Collects saved cards."""

    def __init__(self):
        self.saved: list[Card] = []

    def save(self, card: Card) -> None:
        self.saved.append(card)


class FailingSink:
    """Sink whose storage is unavailable."""

    def __init__(self):
        self.calls = 0

    def save(self, card: Card) -> None:
        self.calls += 1
        raise OSError("disk full")


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def runner_for(clock, sink):
    """Factory for runners on the fixed day."""

    def _make(queue, **kwargs):
        kwargs.setdefault("scheduler", Scheduler(clock=clock))
        kwargs.setdefault("sink", sink)
        return SessionRunner(queue, **kwargs)

    return _make


def drain(runner, quality):
    """Answer every card with the same quality; return the shown ids."""
    shown = []
    item = runner.next()
    while not isinstance(item, SessionComplete):
        shown.append(item.id)
        runner.answer(item, quality)
        item = runner.next()
    return shown, item


class TestNextAndAnswer:
    """Basic queue driving."""

    def test_lifecycle(self, runner_for, make_card):
        """IDLE until the first card, COMPLETE once empty."""
        runner = runner_for([make_card(state=CardState.REVIEW, ivl=3)])
        assert runner.state == RunnerState.IDLE

        card = runner.next()
        assert runner.state == RunnerState.ACTIVE
        assert runner.current is card

        runner.answer(card, Quality.GOOD)
        summary = runner.next()

        assert isinstance(summary, SessionComplete)
        assert runner.is_complete
        assert summary == SessionComplete(answered=1, requeued=0)

    def test_empty_queue(self, runner_for):
        """An empty session completes straight away."""
        runner = runner_for([])

        assert runner.next() == SessionComplete()
        assert runner.is_complete

    def test_complete_is_terminal(self, runner_for, make_card):
        """next() keeps returning the summary after completion."""
        runner = runner_for([])
        runner.next()

        assert isinstance(runner.next(), SessionComplete)
        assert isinstance(runner.next(), SessionComplete)

    def test_immediate_cards_requeued_at_back(self, runner_for, make_card):
        """Learning steps repeat after the rest of the queue."""
        runner = runner_for([make_card(id="a"), make_card(id="b")])
        shown, summary = drain(runner, Quality.GOOD)

        assert shown == ["a", "b", "a", "b"]
        assert summary == SessionComplete(answered=4, requeued=2)

    def test_graduated_cards_leave_session(self, runner_for, make_card):
        """Non-immediate results are not shown again."""
        runner = runner_for([make_card(id="a"), make_card(id="b")])
        shown, _ = drain(runner, Quality.EASY)

        assert shown == ["a", "b"]

    def test_lapse_is_redrilled_same_session(self, runner_for, make_card):
        """A failed review comes back at the end of the queue."""
        runner = runner_for([
            make_card(id="r", state=CardState.REVIEW, ivl=10),
            make_card(id="s", state=CardState.REVIEW, ivl=4),
        ])

        first = runner.next()
        runner.answer(first, Quality.AGAIN)
        second = runner.next()
        runner.answer(second, Quality.GOOD)
        again = runner.next()

        assert again.id == "r"
        assert again.state == CardState.RELEARNING
        runner.answer(again, Quality.GOOD)
        assert isinstance(runner.next(), SessionComplete)

    def test_every_update_persisted(self, runner_for, sink, make_card):
        """Each answer hands the updated card to the sink."""
        runner = runner_for([make_card(id="a")])
        drain(runner, Quality.GOOD)

        assert [c.id for c in sink.saved] == ["a", "a"]
        assert sink.saved[-1].state == CardState.REVIEW

    def test_sink_failure_does_not_break_session(self, runner_for, make_card):
        """Storage errors are logged and scheduling carries on."""
        failing = FailingSink()
        runner = runner_for([make_card(id="a")], sink=failing)
        shown, summary = drain(runner, Quality.GOOD)

        assert shown == ["a", "a"]
        assert failing.calls == 2
        assert summary.answered == 2

    def test_no_sink(self, clock, make_card):
        """A runner works without persistence."""
        runner = SessionRunner([make_card()], Scheduler(clock=clock))
        shown, _ = drain(runner, Quality.EASY)

        assert len(shown) == 1

    def test_invalid_quality_leaves_state(self, runner_for, sink, make_card):
        """A rejected rating changes nothing."""
        runner = runner_for([make_card(id="a")])
        card = runner.next()

        with pytest.raises(InvalidQualityError):
            runner.answer(card, 7)

        assert runner.answered == 0
        assert sink.saved == []

    def test_remaining(self, runner_for, make_card):
        runner = runner_for([make_card(), make_card(), make_card()])
        runner.next()

        assert runner.remaining == 2


class TestLapsePile:
    """Legacy policy: failures replay after the main queue."""

    def test_failures_replayed_at_end(self, clock, sink, make_card):
        runner = SessionRunner(
            [
                make_card(id="r1", state=CardState.REVIEW, ivl=10, reps=3),
                make_card(id="r2", state=CardState.REVIEW, ivl=5, reps=3),
            ],
            LegacySM2Scheduler(clock=clock),
            sink=sink,
            lapse_policy=LapsePolicy.LAPSE_PILE,
        )

        first = runner.next()
        runner.answer(first, 1)
        assert [c.id for c in runner.lapse_pile] == ["r1"]
        assert runner.remaining == 2

        second = runner.next()
        runner.answer(second, 4)

        replayed = runner.next()
        assert replayed.id == "r1"
        runner.answer(replayed, 4)

        assert runner.next() == SessionComplete(answered=3, requeued=1)

    def test_policy_from_string(self, runner_for, make_card):
        runner = runner_for([make_card()], lapse_policy="lapse_pile")

        assert runner.lapse_policy == LapsePolicy.LAPSE_PILE


class TestUndo:
    """Single-level undo."""

    def test_nothing_to_undo(self, runner_for, make_card):
        runner = runner_for([make_card()])

        assert runner.undo() is None
        runner.next()
        assert runner.undo() is None

    def test_restores_snapshot(self, runner_for, sink, make_card):
        """The pre-answer card returns to the front and is re-persisted."""
        runner = runner_for([
            make_card(id="a", state=CardState.REVIEW, ivl=10),
            make_card(id="b", state=CardState.REVIEW, ivl=4),
        ])
        card = runner.next()
        runner.answer(card, Quality.GOOD)

        restored = runner.undo()

        assert restored.id == "a"
        assert restored.ivl == 10
        assert restored.state == CardState.REVIEW
        assert sink.saved[-1] == restored
        assert runner.answered == 0
        assert [c.id for c in runner.queue] == ["a", "b"]

    def test_removes_requeued_copy(self, runner_for, make_card):
        """An immediate result is withdrawn from the queue."""
        runner = runner_for([make_card(id="a"), make_card(id="b")])
        card = runner.next()
        runner.answer(card, Quality.GOOD)
        assert runner.requeued == 1

        runner.undo()

        assert runner.requeued == 0
        assert [(c.id, c.state) for c in runner.queue] == [
            ("a", CardState.NEW),
            ("b", CardState.NEW),
        ]

    def test_undo_while_next_card_shown(self, runner_for, make_card):
        """The card on screen goes back behind the restored one."""
        runner = runner_for([make_card(id="a"), make_card(id="b"), make_card(id="c")])
        runner.answer(runner.next(), Quality.EASY)
        shown = runner.next()
        assert shown.id == "b"

        runner.undo()

        assert runner.current is None
        assert [c.id for c in runner.queue] == ["a", "b", "c"]
        assert runner.next().id == "a"

    def test_undo_when_requeued_copy_is_shown(self, runner_for, make_card):
        """The re-queued copy on screen is dropped, not duplicated."""
        runner = runner_for([make_card(id="a")])
        runner.answer(runner.next(), Quality.GOOD)
        assert runner.next().step_index == 1

        restored = runner.undo()

        assert restored.step_index == 0
        assert [c.id for c in runner.queue] == ["a"]
        assert runner.requeued == 0

    def test_single_level(self, runner_for, make_card):
        """Only the last answer can be undone."""
        runner = runner_for([make_card(id="a"), make_card(id="b")])
        runner.answer(runner.next(), Quality.EASY)
        runner.answer(runner.next(), Quality.EASY)

        assert runner.undo().id == "b"
        assert runner.undo() is None

    def test_undo_lapse_pile(self, clock, make_card):
        """Undo withdraws the card from the lapse pile."""
        runner = SessionRunner(
            [make_card(id="r", state=CardState.REVIEW, ivl=10)],
            LegacySM2Scheduler(clock=clock),
            lapse_policy=LapsePolicy.LAPSE_PILE,
        )
        runner.answer(runner.next(), 1)

        runner.undo()

        assert not runner.lapse_pile
        assert [c.id for c in runner.queue] == ["r"]

    def test_undo_after_complete(self, runner_for, sink, make_card):
        """After completion undo only re-persists the snapshot."""
        runner = runner_for([make_card(id="a", state=CardState.REVIEW, ivl=3)])
        runner.answer(runner.next(), Quality.GOOD)
        assert isinstance(runner.next(), SessionComplete)

        restored = runner.undo()

        assert restored.ivl == 3
        assert sink.saved[-1].ivl == 3
        assert not runner.queue
        assert isinstance(runner.next(), SessionComplete)

    def test_undo_after_lapse_pile_replayed(self, clock, make_card):
        """Undo still withdraws the failed copy once the pile is in the queue."""
        runner = SessionRunner(
            [
                make_card(id="a", state=CardState.REVIEW, ivl=10, reps=3),
                make_card(id="b", state=CardState.REVIEW, ivl=8, reps=3),
            ],
            LegacySM2Scheduler(clock=clock),
            lapse_policy=LapsePolicy.LAPSE_PILE,
        )
        runner.answer(runner.next(), 1)
        runner.answer(runner.next(), 1)
        replayed = runner.next()
        assert replayed.id == "a"
        assert not runner.lapse_pile

        restored = runner.undo()
        assert restored.id == "b"
        assert runner.requeued == 1

        shown, _ = drain(runner, 4)

        assert shown == ["b", "a"]
        assert not runner.queue
        assert not runner.lapse_pile

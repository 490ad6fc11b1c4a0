"""Tests for the card combat negotiator."""

from conquestclient.engine.card_negotiator import CardCombatNegotiator
from conquestclient.models.cards import CardType, CombatCard, WindowMode
from conquestclient.util.events import CardWindowClosed, CardWindowOpened, EventBus


def _cards(*ids: str, card_type: str = "attack") -> list[CombatCard]:
    return [CombatCard(id=i, name=i, card_type=CardType(card_type)) for i in ids]


def _make_negotiator(default_deadline: int = 100):
    bus = EventBus()
    opened, closed = [], []
    bus.on(CardWindowOpened, opened.append)
    bus.on(CardWindowClosed, closed.append)
    return CardCombatNegotiator(bus, default_deadline), opened, closed


class TestOpen:
    def test_open_creates_window(self):
        neg, opened, _ = _make_negotiator()
        assert neg.open(WindowMode.ATTACK, _cards("a1", "a2"), "Attack on t7")
        assert neg.is_open
        assert set(neg.window.eligible_cards) == {"a1", "a2"}
        assert neg.window.context_message == "Attack on t7"
        assert opened[0].card_count == 2

    def test_second_open_refused(self):
        neg, _, _ = _make_negotiator()
        neg.open(WindowMode.ATTACK, _cards("a1"))
        assert not neg.open(WindowMode.DEFENSE, _cards("d1", card_type="defense"))
        assert neg.mode == WindowMode.ATTACK

    def test_defense_window_always_has_deadline(self):
        neg, _, _ = _make_negotiator(default_deadline=42)
        neg.open(WindowMode.DEFENSE, _cards("d1", card_type="defense"))
        assert neg.window.deadline_frames == 42
        assert neg.window.remaining_frames == 42

    def test_attack_window_has_no_deadline(self):
        neg, _, _ = _make_negotiator()
        neg.open(WindowMode.ATTACK, _cards("a1"))
        assert neg.window.deadline_frames is None
        assert not neg.step(10_000)


class TestToggle:
    def test_toggle_adds_and_removes(self):
        neg, _, _ = _make_negotiator()
        neg.open(WindowMode.ATTACK, _cards("a1", "a2"))
        assert neg.toggle("a1")
        assert neg.window.selected == {"a1"}
        assert neg.toggle("a1")
        assert neg.window.selected == set()

    def test_ineligible_card_is_noop(self):
        neg, _, _ = _make_negotiator()
        neg.open(WindowMode.ATTACK, _cards("a1"))
        assert not neg.toggle("zz")
        assert neg.window.selected == set()

    def test_toggle_without_window(self):
        neg, _, _ = _make_negotiator()
        assert not neg.toggle("a1")


class TestClose:
    def test_commit_returns_selection_and_closes(self):
        neg, _, closed = _make_negotiator()
        neg.open(WindowMode.ATTACK, _cards("a1", "a2", "a3"))
        neg.toggle("a1")
        neg.toggle("a3")
        window = neg.window
        assert neg.commit() == frozenset({"a1", "a3"})
        assert not neg.is_open
        assert window.selected == set()
        assert closed[0].card_ids == ("a1", "a3")
        assert not closed[0].skipped

    def test_commit_with_nothing_selected(self):
        neg, _, _ = _make_negotiator()
        neg.open(WindowMode.ATTACK, _cards("a1"))
        assert neg.commit() == frozenset()
        assert not neg.is_open

    def test_skip_discards_selection(self):
        neg, _, closed = _make_negotiator()
        neg.open(WindowMode.ATTACK, _cards("a1", "a2"))
        neg.toggle("a1")
        neg.toggle("a2")
        window = neg.window
        assert neg.skip() == frozenset()
        assert not neg.is_open
        assert window.selected == set()
        assert closed[0].skipped

    def test_close_without_window(self):
        neg, _, _ = _make_negotiator()
        assert neg.commit() is None
        assert neg.skip() is None

    def test_reopen_after_close(self):
        neg, _, _ = _make_negotiator()
        neg.open(WindowMode.ATTACK, _cards("a1"))
        neg.commit()
        assert neg.open(WindowMode.DEFENSE, _cards("d1", card_type="defense"))


class TestDeadline:
    def test_step_reports_elapsed_deadline(self):
        neg, _, _ = _make_negotiator()
        neg.open(WindowMode.DEFENSE, _cards("d1", card_type="defense"), deadline_frames=3)
        assert not neg.step()
        assert not neg.step()
        assert neg.step()
        assert neg.is_open  # caller decides what to commit

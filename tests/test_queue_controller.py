"""
Unit tests for the session queue state machine.
Run: python -m pytest tests/test_queue_controller.py -v
"""

import random

import pytest

from lexigraph_app.core.error_handlers import ValidationError
from lexigraph_app.core.signals import SessionSignals
from lexigraph_app.models import CardState, Rating
from lexigraph_app.modules.session.engine.queue_controller import QueueController, RATING_NOTICE
from lexigraph_app.modules.session.schemas import Phase, SessionItem

from conftest import FakeRating, make_card


def phases(controller):
    return [(item.card.word, item.phase) for item in controller.items]


@pytest.fixture
def controller(rating):
    return QueueController(rating, SessionSignals())


def load(controller, *words):
    cards = [make_card(f"c{i}", w) for i, w in enumerate(words)]
    controller.initialize(cards)
    return cards


class TestScenarioA:
    def test_full_pass_removes_item_and_rates_once(self, controller, rating):
        a = make_card('a', 'apple')
        b = make_card('b', 'banana')
        c = make_card('c', 'cherry', state=CardState.LEARNING)
        controller.initialize([a, b, c])
        assert phases(controller) == [('apple', 'learn'), ('banana', 'learn'), ('cherry', 'learn')]

        assert controller.know('a').to_phase == Phase.CHOICE
        assert controller.choose_answer('a', a).to_phase == Phase.TEST
        result = controller.submit_spelling('a', 'apple')

        assert result.terminal
        assert phases(controller) == [('banana', 'learn'), ('cherry', 'learn')]
        assert rating.calls == [('a', Rating.Good)]


class TestTransitions:
    def test_know_reinserts_at_promote_offset(self, controller):
        load(controller, 'w0', 'w1', 'w2', 'w3', 'w4')
        result = controller.know('c0')
        assert result.index == 3
        assert controller.items[3].card.id == 'c0'
        assert controller.items[3].phase == Phase.CHOICE

    def test_know_with_short_queue_goes_to_tail(self, controller):
        load(controller, 'w0', 'w1')
        result = controller.know('c0')
        assert result.index == 1
        assert [i.card.id for i in controller.items] == ['c1', 'c0']

    def test_forgot_moves_to_tail(self, controller):
        load(controller, 'w0', 'w1', 'w2', 'w3')
        result = controller.forgot('c0')
        assert result.to_phase == Phase.LEARN
        assert [i.card.id for i in controller.items] == ['c1', 'c2', 'c3', 'c0']

    def test_choice_incorrect_demotes_and_counts(self, controller):
        cards = load(controller, 'w0', 'w1', 'w2', 'w3')
        controller.know('c0')
        result = controller.choose_answer('c0', cards[1])

        assert result.to_phase == Phase.LEARN
        assert result.is_correct is False
        assert result.index <= 2
        assert controller.stats.total == 1
        assert controller.stats.correct == 0
        assert controller.stats.failed_attempts == {'c0': 1}

    def test_choice_accepts_word_or_id(self, controller):
        load(controller, 'w0', 'w1')
        controller.know('c0')
        assert controller.choose_answer('c0', 'W0 ').to_phase == Phase.TEST

    def test_spelling_is_trimmed_and_case_insensitive(self, controller):
        load(controller, 'Apple', 'w1')
        controller.know('c0')
        controller.choose_answer('c0', 'c0')
        result = controller.submit_spelling('c0', '  aPPle ')
        assert result.terminal
        assert controller.find('c0') is None

    def test_spelling_incorrect_demotes_to_learn(self, controller, rating):
        load(controller, 'w0', 'w1', 'w2', 'w3')
        controller.know('c0')
        controller.choose_answer('c0', 'c0')
        result = controller.submit_spelling('c0', 'wrong')

        assert result.to_phase == Phase.LEARN
        assert result.index == 2
        assert controller.find('c0').phase == Phase.LEARN
        assert rating.calls == []

    def test_blank_spelling_is_ignored(self, controller, rating):
        load(controller, 'w0', 'w1')
        controller.know('c0')
        controller.choose_answer('c0', 'c0')
        total = controller.stats.total

        assert controller.submit_spelling('c0', '') is None
        assert controller.submit_spelling('c0', '   ') is None
        assert controller.submit_spelling('c0', None) is None

        assert controller.find('c0').phase == Phase.TEST
        assert controller.stats.total == total
        assert rating.calls == []

    def test_demotion_sends_signal(self, controller):
        received = []
        controller.signals.item_demoted.connect(lambda sender, **kw: received.append(kw), weak=False)
        load(controller, 'w0', 'w1')
        controller.know('c0')
        controller.choose_answer('c0', 'nope')
        assert received[0]['card_id'] == 'c0'
        assert received[0]['from_phase'] == Phase.CHOICE


class TestGuards:
    def test_intent_for_missing_item_is_noop(self, controller):
        load(controller, 'w0', 'w1')
        assert controller.know('ghost') is None
        assert len(controller) == 2

    def test_intent_in_wrong_phase_is_noop(self, controller):
        load(controller, 'w0', 'w1')
        assert controller.submit_spelling('c0', 'w0') is None
        assert controller.choose_answer('c0', 'c0') is None
        assert controller.items[0].phase == Phase.LEARN

    def test_stale_callback_after_graduation_is_noop(self, controller, rating):
        load(controller, 'w0', 'w1')
        controller.know('c0')
        controller.choose_answer('c0', 'c0')
        controller.submit_spelling('c0', 'w0')
        assert controller.submit_spelling('c0', 'w0') is None
        assert len(rating.calls) == 1

    def test_reentrant_transition_is_refused(self):
        inner_results = []

        class ReentrantRating(FakeRating):
            def rate(self, card, grade):
                inner_results.append(controller.know('c1'))
                return super().rate(card, grade)

        controller = QueueController(ReentrantRating())
        load(controller, 'w0', 'w1')
        controller.know('c0')
        controller.choose_answer('c0', 'c0')
        controller.submit_spelling('c0', 'w0')

        assert inner_results == [None]
        assert controller.find('c1').phase == Phase.LEARN


class TestInitialize:
    def test_duplicates_and_familiar_cards_are_filtered(self, controller):
        a = make_card('a', 'apple')
        familiar = make_card('f', 'fig', is_familiar=True)
        items = controller.initialize([a, a.copy(), familiar, make_card('b', 'banana')])
        assert [i.card.id for i in items] == ['a', 'b']

    def test_unresolvable_cards_are_dropped(self, controller):
        cards = [make_card('a', 'apple'), make_card('gone', 'ghost')]
        items = controller.initialize(cards, resolver=lambda cid: cards[0] if cid == 'a' else None)
        assert [i.card.id for i in items] == ['a']

    def test_items_keep_given_phase(self, controller):
        item = SessionItem(card=make_card('a', 'apple'), phase=Phase.TEST)
        controller.initialize([item])
        assert controller.head.phase == Phase.TEST
        assert controller.head.node_id == 'a'


class TestRatingFailure:
    def test_failure_keeps_removal_and_raises_notice_once(self, controller, rating):
        rating.fail = True
        failures = []
        controller.signals.rating_failed.connect(lambda sender, **kw: failures.append(kw), weak=False)
        load(controller, 'w0', 'w1', 'w2')

        for cid, word in (('c0', 'w0'), ('c1', 'w1')):
            controller.know(cid)
            controller.choose_answer(cid, cid)
            assert controller.submit_spelling(cid, word).terminal
            if cid == 'c0':
                assert controller.rating_notice == RATING_NOTICE
                controller.dismiss_rating_notice()

        assert [i.card.id for i in controller.items] == ['c2']
        assert len(failures) == 2
        assert controller.rating_notice is None
        assert controller.stats.completed_ids == ['c0', 'c1']


class TestReviewAndEdits:
    def test_review_rates_with_given_grade(self, controller, rating):
        load(controller, 'w0', 'w1')
        result = controller.review('c1', Rating.Hard)
        assert result.terminal and result.grade == Rating.Hard
        assert rating.calls == [('c1', Rating.Hard)]
        assert [i.card.id for i in controller.items] == ['c0']

    def test_review_rejects_unknown_grade(self, controller):
        load(controller, 'w0')
        with pytest.raises(ValidationError):
            controller.review('c0', 9)

    def test_remove_and_replace_card(self, controller):
        cards = load(controller, 'w0', 'w1')
        assert controller.replace_card(cards[1].copy(example='an example'))
        assert controller.find('c1').card.example == 'an example'
        assert controller.remove_card('c0').card.id == 'c0'
        assert controller.remove_card('c0') is None


class TestQueueProperties:
    def test_length_only_shrinks_on_graduation(self, controller):
        random.seed(7)
        load(controller, *[f"w{i}" for i in range(6)])

        for _ in range(300):
            head = controller.head
            if head is None:
                break
            before = len(controller)
            if head.phase == Phase.LEARN:
                result = random.choice([controller.know, controller.forgot])(head)
            elif head.phase == Phase.CHOICE:
                result = controller.choose_answer(head, random.choice([head.card, 'wrong']))
            else:
                result = controller.submit_spelling(head, random.choice([head.card.word, 'wrong']))

            if result.terminal:
                assert len(controller) == before - 1
            else:
                assert len(controller) == before

    def test_demotion_index_is_bounded(self, controller):
        load(controller, *[f"w{i}" for i in range(5)])
        offset = controller.settings.reinsert_offset
        for cid in ('c0', 'c1', 'c2'):
            controller.know(cid)
        for item in list(controller.items):
            if item.phase == Phase.CHOICE:
                result = controller.choose_answer(item, 'wrong')
                assert result.index <= min(len(controller) - 1, offset)

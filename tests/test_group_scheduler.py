"""
Tests for group sequencing and session resumption.
Run: python -m pytest tests/test_group_scheduler.py -v
"""

import asyncio

import pytest

from lexigraph_app.core.error_handlers import NotFoundError
from lexigraph_app.models import CardState, MemoryCardStore
from lexigraph_app.modules.session.engine.queue_controller import QueueController
from lexigraph_app.modules.session.schemas import GroupDescriptor
from lexigraph_app.modules.session.services.group_scheduler import GroupScheduler

from conftest import make_card


def build(cards, embeddings, rating):
    store = MemoryCardStore(cards)
    controller = QueueController(rating)
    scheduler = GroupScheduler(store, embeddings, controller)
    return store, controller, scheduler


def graduate(controller, card):
    controller.know(card.id)
    controller.choose_answer(card.id, card.id)
    return controller.submit_spelling(card.id, card.word)


class TestResume:
    def test_resumes_at_first_group_with_unlearned_cards(self, embeddings, rating):
        """Group 0 is fully learned in storage, so the session starts at group 1."""
        fruit = [make_card('a', 'apple', state=CardState.REVIEW), make_card('b', 'banana', is_familiar=True)]
        weather = [make_card('r', 'rain'), make_card('s', 'storm')]
        store, controller, scheduler = build(fruit + weather, embeddings, rating)

        index = asyncio.run(scheduler.resume([
            GroupDescriptor('fruit', fruit),
            {'label': 'weather', 'items': [c.to_dict() for c in weather]},
        ]))

        assert index == 1
        assert scheduler.active_group.label == 'weather'
        assert sorted(i.card.id for i in controller.items) == ['r', 's']

    def test_resume_reads_fresh_state_from_storage(self, embeddings, rating):
        """Cards passed in are stale; storage says apple was learned elsewhere."""
        stale = [make_card('a', 'apple'), make_card('b', 'banana')]
        store, controller, scheduler = build(stale, embeddings, rating)
        store.save_card(stale[0].copy(state=CardState.REVIEW))

        asyncio.run(scheduler.resume([GroupDescriptor('fruit', stale)]))
        assert [i.card.id for i in controller.items] == ['b']

    def test_all_complete_loads_first_group_empty(self, embeddings, rating):
        cards = [make_card('a', 'apple', state=CardState.REVIEW)]
        _, controller, scheduler = build(cards, embeddings, rating)
        assert asyncio.run(scheduler.resume([GroupDescriptor('fruit', cards)])) == 0
        assert controller.is_empty

    def test_no_groups(self, embeddings, rating):
        _, _, scheduler = build([], embeddings, rating)
        assert asyncio.run(scheduler.resume([])) is None

    def test_missing_cards_are_dropped(self, embeddings, rating):
        cards = [make_card('a', 'apple'), make_card('gone', 'ghost')]
        store, controller, scheduler = build(cards, embeddings, rating)
        store.delete_card('gone')
        asyncio.run(scheduler.resume([GroupDescriptor('fruit', cards)]))
        assert [c.id for c in scheduler.groups[0].items] == ['a']
        assert [i.card.id for i in controller.items] == ['a']


class TestLoadGroup:
    def test_group_is_chain_ordered(self, embeddings, rating):
        cards = [make_card('a', 'apple'), make_card('r', 'rain'), make_card('b', 'banana'), make_card('x', 'xylophone')]
        _, controller, scheduler = build(cards, embeddings, rating)
        asyncio.run(scheduler.resume([GroupDescriptor('mixed', cards)]))
        assert [i.card.word for i in controller.items] == ['apple', 'banana', 'rain', 'xylophone']

    def test_embedding_failure_keeps_given_order(self, embeddings, rating):
        embeddings.fail = True
        cards = [make_card('a', 'apple'), make_card('r', 'rain'), make_card('b', 'banana')]
        _, controller, scheduler = build(cards, embeddings, rating)
        asyncio.run(scheduler.resume([GroupDescriptor('mixed', cards)]))
        assert [i.card.word for i in controller.items] == ['apple', 'rain', 'banana']

    def test_bad_index_raises(self, embeddings, rating):
        _, _, scheduler = build([], embeddings, rating)
        with pytest.raises(NotFoundError):
            asyncio.run(scheduler.load_group(3))

    def test_load_bumps_generation_and_signals(self, embeddings, rating):
        cards = [make_card('a', 'apple')]
        _, controller, scheduler = build(cards, embeddings, rating)
        loaded = []
        controller.signals.group_loaded.connect(lambda sender, **kw: loaded.append(kw), weak=False)

        asyncio.run(scheduler.resume([GroupDescriptor('fruit', cards)]))
        asyncio.run(scheduler.load_group(0))

        assert scheduler.generation == 2
        assert loaded[0] == {'index': 0, 'label': 'fruit', 'queue_size': 1}


class TestAdvance:
    def test_advance_moves_to_next_group_then_finishes(self, embeddings, rating):
        fruit = [make_card('a', 'apple')]
        weather = [make_card('r', 'rain')]
        _, controller, scheduler = build(fruit + weather, embeddings, rating)
        completed = []
        controller.signals.session_completed.connect(lambda sender, **kw: completed.append(kw), weak=False)

        asyncio.run(scheduler.resume([GroupDescriptor('fruit', fruit), GroupDescriptor('weather', weather)]))
        assert asyncio.run(scheduler.advance()) == 0

        graduate(controller, fruit[0])
        assert scheduler.is_complete(scheduler.groups[0])
        assert asyncio.run(scheduler.advance()) == 1
        assert controller.head.card.id == 'r'

        graduate(controller, weather[0])
        assert asyncio.run(scheduler.advance()) is None
        assert scheduler.finished
        assert completed == [{'groups_total': 2, 'correct': 4, 'total': 4}]
        assert asyncio.run(scheduler.advance()) is None
        assert len(completed) == 1

    def test_progress_reports_per_group_counts(self, embeddings, rating):
        fruit = [make_card('a', 'apple'), make_card('b', 'banana', state=CardState.REVIEW)]
        _, controller, scheduler = build(fruit, embeddings, rating)
        asyncio.run(scheduler.resume([GroupDescriptor('fruit', fruit)]))

        progress = scheduler.progress()
        assert progress['active_index'] == 0
        assert progress['groups'][0]['completed'] == 1
        assert progress['groups'][0]['is_complete'] is False

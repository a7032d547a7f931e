"""
Tests for the learning session facade: groups, review mode, graph refresh
and presentation state.
Run: python -m pytest tests/test_learning_session.py -v
"""

import asyncio

import pytest

from lexigraph_app.core.error_handlers import NotFoundError, ServiceUnavailableError, ValidationError
from lexigraph_app.core.extensions import EngineServices
from lexigraph_app.models import CardState, Rating
from lexigraph_app.modules.graph.schemas import Rect
from lexigraph_app.modules.session.schemas import GroupDescriptor, Phase
from lexigraph_app.modules.session.services.learning_session import LearningSession, parse_viewport

from conftest import VECTORS, make_card


@pytest.fixture
def deck(store):
    cards = {word: make_card(f"c-{word}", word) for word in VECTORS}
    for card in cards.values():
        store.save_card(card)
    return cards


@pytest.fixture
def session(services):
    return LearningSession(services, session_id='s1')


def groups_of(deck, *groups):
    return [GroupDescriptor(label, [deck[w] for w in words]) for label, words in groups]


def graduate(session, card_id, word):
    asyncio.run(session.know(card_id))
    asyncio.run(session.choose_answer(card_id, card_id))
    return asyncio.run(session.submit_spelling(card_id, word))


class TestGroupMode:
    def test_start_builds_graph_for_first_group(self, session, deck):
        index = asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple', 'banana']))))
        view = session.view()

        assert index == 0
        assert view['mode'] == 'groups'
        assert view['phase'] == Phase.LEARN
        assert view['queue_size'] == 2
        assert view['group'] == {'index': 0, 'label': 'fruit'}
        labels = {n['label'] for n in view['graph_nodes']}
        assert {'apple', 'banana'} <= labels
        assert view['finished'] is False

    def test_completing_a_group_loads_the_next(self, session, deck, rating):
        asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple']), ('weather', ['rain']))))
        first_build = session.snapshot.build_id

        graduate(session, deck['apple'].id, 'apple')

        assert session.scheduler.active_index == 1
        assert session.controller.head.card.word == 'rain'
        assert session.snapshot.build_id > first_build
        assert rating.calls == [(deck['apple'].id, Rating.Good)]

        graduate(session, deck['rain'].id, 'rain')
        assert session.finished
        assert session.view()['progress']['finished'] is True

    def test_resume_skips_learned_group(self, session, deck, store):
        store.save_card(deck['apple'].copy(state=CardState.REVIEW))
        asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple']), ('weather', ['rain', 'storm']))))
        assert session.scheduler.active_index == 1

    def test_all_groups_learned_finishes_immediately(self, session, deck, store):
        store.save_card(deck['apple'].copy(state=CardState.REVIEW))
        asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple']))))
        assert session.finished
        assert session.view()['queue_head'] is None

    def test_mark_familiar_removes_item_and_persists(self, session, deck, store):
        asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple', 'banana']))))
        removed = asyncio.run(session.mark_familiar(deck['banana'].id))

        assert removed
        assert session.controller.find(deck['banana'].id) is None
        assert store.get_card(deck['banana'].id).is_familiar

    def test_mark_familiar_invalidates_cached_graph(self, session, deck):
        asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple', 'banana']))))
        key = session.snapshot.key
        assert session.cache.contains(key)

        asyncio.run(session.mark_familiar(deck['banana'].id))
        assert not session.cache.contains(key)

    def test_mark_familiar_unknown_card(self, session, deck):
        asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple']))))
        with pytest.raises(NotFoundError):
            asyncio.run(session.mark_familiar('nope'))

    def test_update_card_refreshes_queued_copy(self, session, deck, store):
        asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple']))))
        session.update_card(deck['apple'].copy(mnemonic='a for apple'))
        assert session.controller.head.card.mnemonic == 'a for apple'
        assert store.get_card(deck['apple'].id).mnemonic == 'a for apple'


class TestReviewMode:
    def test_each_card_gets_its_own_context_graph(self, session, deck, rating):
        asyncio.run(session.start_review([deck['apple'].id, deck['rain'].id]))
        assert session.snapshot.node(deck['apple'].id) is not None
        assert len(session.snapshot.nodes) == 7

        asyncio.run(session.review(deck['apple'].id, Rating.Easy))
        assert session.snapshot.nodes[0].id == deck['rain'].id
        assert session.controller.head.card.word == 'rain'

        asyncio.run(session.review(deck['rain'].id, Rating.Again))
        assert session.finished
        assert rating.calls == [(deck['apple'].id, Rating.Easy), (deck['rain'].id, Rating.Again)]
        assert session.view()['progress'] is None


class TestGraphRefresh:
    def test_stale_build_is_discarded(self, session, deck, monkeypatch):
        asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple', 'banana']))))
        accepted = session.snapshot
        real_build = session.builder.build_group_graph

        async def slow_build(*args, **kwargs):
            snapshot = await real_build(*args, **kwargs)
            # The learner moved on while this build was running.
            session.scheduler.generation += 1
            return snapshot

        monkeypatch.setattr(session.builder, "build_group_graph", slow_build)
        assert asyncio.run(session.refresh_graph()) is None
        assert session.snapshot is accepted

    def test_rebuild_regenerates(self, session, deck, generation, monkeypatch):
        asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple', 'banana']))))
        key = session.snapshot.key
        invalidated = []
        real_invalidate = session.cache.invalidate

        def invalidate(k):
            invalidated.append(k)
            real_invalidate(k)

        monkeypatch.setattr(session.cache, "invalidate", invalidate)
        calls = len(generation.label_calls)
        assert asyncio.run(session.rebuild_graph()) is not None
        assert len(generation.label_calls) == calls + 1
        assert invalidated == [key]
        assert session.cache.contains(key)

    def test_edge_example_for_unknown_node(self, session, deck):
        asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple']))))
        with pytest.raises(NotFoundError):
            asyncio.run(session.edge_example(deck['apple'].id, 'ghost'))


class TestPresentation:
    def test_choice_options_are_stable_while_in_choice(self, session, deck):
        asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple']))))
        asyncio.run(session.know(deck['apple'].id))

        first = session.view()['choice_options']
        second = session.view()['choice_options']
        assert first == second
        assert 2 <= len(first) <= 4
        assert deck['apple'].id in [o['card_id'] for o in first]

    def test_camera_frames_clicked_node_beside_overlay(self, session, deck):
        asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple', 'banana']))))
        session.overlay_moved(Rect(0, 0, 520, 600), (1200, 800))
        session.sync_layout({n.id: (10.0 * i, 0.0) for i, n in enumerate(session.snapshot.nodes)})

        card = session.node_clicked(deck['apple'].id)
        camera = session.view()['camera_target']

        assert card.word == 'apple'
        assert camera['zoom'] == pytest.approx(3.5)
        assert camera['x'] == pytest.approx(0.0 - 260 / 3.5)

    def test_tick_applies_gravity_to_reported_bodies(self, session, deck):
        asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple', 'banana']))))
        session.sync_layout({deck['apple'].id: (0.0, 0.0), deck['banana'].id: (900.0, 0.0)})
        velocities = session.tick(1.0)
        assert velocities[deck['apple'].id][0] > 0
        assert velocities[deck['banana'].id][0] < 0

    def test_pan_without_viewport(self, session, deck):
        asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple']))))
        assert session.pan_to_card(Rect(0, 0, 100, 100), 2.0) is None

    def test_rating_notice_shown_once(self, session, deck, rating):
        rating.fail = True
        asyncio.run(session.start_groups(groups_of(deck, ('fruit', ['apple', 'banana']))))
        graduate(session, deck['apple'].id, 'apple')

        assert session.view()['rating_notice']
        assert session.view()['rating_notice'] is None


class TestConstruction:
    def test_missing_collaborator_raises(self, store):
        with pytest.raises(ServiceUnavailableError):
            LearningSession(EngineServices(repository=store))

    def test_parse_viewport(self):
        assert parse_viewport({'width': 1200, 'height': '800'}) == (1200.0, 800.0)
        assert parse_viewport(None) is None
        with pytest.raises(ValidationError):
            parse_viewport({'width': 1})

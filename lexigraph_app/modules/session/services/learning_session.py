# File: lexigraph_app/modules/session/services/learning_session.py
"""
Learning Session
================
One learner's session: the queue controller, the group scheduler and the
semantic graph for the active group (or, in review mode, for the card at the
head of the queue), plus the presentation-facing camera state.

Everything is created per session and dropped with it; nothing here is a
process-wide singleton. Graph builds are awaited and only accepted when the
group (or head card) they were started for is still the active one.
"""

from __future__ import annotations

import logging
import random
import threading
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from lexigraph_app.core.error_handlers import NotFoundError, ValidationError
from lexigraph_app.core.extensions import EngineServices
from lexigraph_app.core.signals import SessionSignals
from lexigraph_app.models.card import Card
from lexigraph_app.modules.cache import CacheManager
from lexigraph_app.modules.graph.engine.layout_forces import SemanticGravityForce
from lexigraph_app.modules.graph.engine.viewport import ViewportFramer
from lexigraph_app.modules.graph.logics.distractors import DistractorSelector
from lexigraph_app.modules.graph.schemas import GraphSnapshot, PhysicsBody, Rect
from lexigraph_app.modules.graph.services.graph_builder import SemanticGraphBuilder

from ..engine.queue_controller import QueueController
from ..schemas import Phase, SessionMode, SessionItem
from .group_scheduler import GroupScheduler

logger = logging.getLogger(__name__)


class LearningSession:
    def __init__(self, services: EngineServices, session_id: Optional[str] = None, rng: Optional[random.Random] = None):
        self.id = session_id or uuid.uuid4().hex
        # Serialises state-changing requests for this session.
        self.lock = threading.RLock()
        self.settings = services.settings
        self.repository = services.require('repository')
        self.embeddings = services.require('embeddings')
        generation = services.require('generation')
        rating = services.require('rating')

        self.signals = SessionSignals()
        self.cache = CacheManager.from_settings(self.repository, self.settings)
        self.controller = QueueController(rating, self.signals, self.settings)
        self.scheduler = GroupScheduler(self.repository, self.embeddings, self.controller, self.signals, self.settings)
        self.builder = SemanticGraphBuilder(self.embeddings, generation, self.cache, self.settings)
        self.gravity = SemanticGravityForce(self.settings)
        self.framer = ViewportFramer(self.settings)

        self.mode = SessionMode.GROUPS
        self.snapshot = GraphSnapshot()
        self.bodies: Dict[str, PhysicsBody] = {}
        self.viewport: Optional[Tuple[float, float]] = None
        self.focus_node_id: Optional[str] = None
        self._rng = rng or random.Random()
        self._cards: Dict[str, Card] = {}
        self._choice_options: Dict[str, List[Card]] = {}
        self._graph_token = None

    # ── lifecycle ────────────────────────────────────────────────────

    async def start_groups(self, groups: Sequence) -> Optional[int]:
        """Group mode: resume at the first incomplete group and build its graph."""
        self.mode = SessionMode.GROUPS
        index = await self.scheduler.resume(groups)
        if index is None:
            self.scheduler.finished = True
            return None
        if self.controller.is_empty:
            await self.scheduler.advance()
        await self.refresh_graph()
        return self.scheduler.active_index

    async def start_review(self, card_ids: Sequence[str]) -> int:
        """Review mode: queue the cards in the given order, each rated once."""
        self.mode = SessionMode.REVIEW
        cards = self.repository.get_cards_by_ids(list(card_ids))
        items = self.controller.initialize(cards)
        await self.refresh_graph()
        return len(items)

    @property
    def finished(self) -> bool:
        if self.mode == SessionMode.REVIEW:
            return self.controller.is_empty
        return self.scheduler.finished

    # ── graph ────────────────────────────────────────────────────────

    def _current_token(self):
        if self.mode == SessionMode.REVIEW:
            head = self.controller.head
            return (self.mode, head.card.id if head else None)
        return (self.mode, self.scheduler.generation)

    async def refresh_graph(self, force_refresh: bool = False) -> Optional[GraphSnapshot]:
        """
        Build the graph for the active group (or review card).

        Returns the accepted snapshot, or None when the session moved on
        while the build was running.
        """
        token = self._current_token()
        self._graph_token = token
        corpus = self.repository.all_cards()

        if self.mode == SessionMode.REVIEW:
            head = self.controller.head
            if head is None:
                snapshot = GraphSnapshot()
            else:
                snapshot = await self.builder.build_context_graph(head.card, corpus, force_refresh)
        else:
            group = self.scheduler.active_group
            targets = group.items if group else []
            snapshot = await self.builder.build_group_graph(targets, corpus, force_refresh)

        vectors = await self.builder.node_vectors(snapshot)
        if token != self._current_token() or token != self._graph_token:
            logger.info("Discarding stale graph build %s", snapshot.build_id)
            return None

        self._cards = {c.id: c for c in corpus}
        self.snapshot = snapshot
        self._choice_options.clear()
        self.focus_node_id = None
        self.gravity.sync(snapshot, vectors)
        self.bodies = {nid: body for nid, body in self.bodies.items() if nid in self.gravity.node_ids}
        self.signals.graph_built.send(
            self, build_id=snapshot.build_id, nodes=len(snapshot.nodes), edges=len(snapshot.edges)
        )
        return snapshot

    async def rebuild_graph(self) -> Optional[GraphSnapshot]:
        if self.snapshot.key:
            self.cache.invalidate(self.snapshot.key)
        return await self.refresh_graph(force_refresh=True)

    async def edge_example(self, source_id: str, target_id: str) -> str:
        if self.snapshot.node(source_id) is None or self.snapshot.node(target_id) is None:
            raise NotFoundError('Edge not found in the current graph', resource='edge')
        return await self.builder.edge_example(self.snapshot, source_id, target_id)

    async def related_words(self, word: str) -> List[dict]:
        return await self.builder.related_words(word)

    # ── intents ──────────────────────────────────────────────────────

    async def know(self, card_id: str):
        return await self._after(self.controller.know(card_id))

    async def forgot(self, card_id: str):
        return await self._after(self.controller.forgot(card_id))

    async def choose_answer(self, card_id: str, selected):
        return await self._after(self.controller.choose_answer(card_id, selected))

    async def submit_spelling(self, card_id: str, text: str):
        return await self._after(self.controller.submit_spelling(card_id, text))

    async def review(self, card_id: str, grade: int):
        return await self._after(self.controller.review(card_id, grade))

    async def mark_familiar(self, card_id: str) -> bool:
        """Persist the familiar flag and drop the card from the queue at once."""
        card = self.repository.get_card(card_id)
        if card is None:
            raise NotFoundError(f"Card {card_id} not found", resource='card')
        self.repository.save_card(card.copy(is_familiar=True))
        if self.snapshot.key and self.snapshot.node(card_id) is not None:
            # The cached graph still shows the card as a candidate word.
            self.cache.invalidate(self.snapshot.key)
        self.scheduler.mark_completed(card_id)
        removed = self.controller.remove_card(card_id) is not None
        await self._after(None, removed=removed)
        return removed

    def update_card(self, card: Card) -> Card:
        """Enrichment write-back: save and refresh the queued copy if still present."""
        saved = self.repository.save_card(card)
        if isinstance(saved, Card):
            card = saved
        self.controller.replace_card(card)
        self._cards[card.id] = card
        return card

    async def _after(self, result, removed: bool = False):
        """Follow-up once an intent was applied: next group, next review card."""
        left_queue = removed or (result is not None and result.terminal)
        if not left_queue:
            return result

        if self.mode == SessionMode.REVIEW:
            if not self.controller.is_empty:
                await self.refresh_graph()
            return result

        if self.controller.is_empty:
            previous = self.scheduler.active_index
            index = await self.scheduler.advance()
            if index is not None and index != previous:
                await self.refresh_graph()
        return result

    # ── presentation ─────────────────────────────────────────────────

    def node_clicked(self, node_id: str) -> Optional[Card]:
        node = self.snapshot.node(node_id)
        if node is None:
            return None
        self.focus_node_id = node_id
        return self._cards.get(node.card_id or node.id)

    def overlay_moved(self, overlay: Optional[Rect], viewport: Optional[Tuple[float, float]] = None) -> None:
        self.framer.overlay_moved(overlay)
        if viewport:
            self.viewport = (float(viewport[0]), float(viewport[1]))

    def sync_layout(self, positions: Dict[str, Tuple[float, float]]) -> None:
        """Latest node positions reported by the presentation's simulation."""
        for node_id, (x, y) in positions.items():
            body = self.bodies.get(node_id)
            if body is None:
                self.bodies[node_id] = PhysicsBody(id=node_id, x=float(x), y=float(y))
            else:
                body.x, body.y = float(x), float(y)

    def tick(self, alpha: float) -> Dict[str, Tuple[float, float]]:
        """Apply one tick of semantic gravity; returns the velocity per body."""
        self.gravity.apply(self.bodies, alpha)
        return {nid: (b.vx, b.vy) for nid, b in self.bodies.items()}

    def focus_nodes(self) -> List[str]:
        if self.focus_node_id and self.snapshot.node(self.focus_node_id):
            return [self.focus_node_id]
        head = self.controller.head
        if head is None or self.snapshot.node(head.node_id) is None:
            return []
        return [head.node_id] + self.snapshot.neighbors(head.node_id)

    def camera_target(self):
        if self.viewport is None:
            return None
        ids = self.focus_nodes()
        positions = [(self.bodies[i].x, self.bodies[i].y) for i in ids if i in self.bodies]
        if not positions:
            return None
        return self.framer.frame(positions, self.viewport)

    def pan_to_card(self, overlay: Rect, zoom: float):
        """Card-drag pan: keep the head node beside the dragged card."""
        if self.viewport is None:
            return None
        self.framer.overlay_moved(overlay)
        head = self.controller.head
        body = self.bodies.get(head.node_id) if head else None
        anchor = (body.x, body.y) if body else (0.0, 0.0)
        return self.framer.pan_to_anchor(anchor, overlay, self.viewport, zoom)

    def choice_options(self, item: SessionItem) -> List[Card]:
        """Answer plus distractors from the current graph, stable while the item stays in Choice."""
        cached = self._choice_options.get(item.card.id)
        if cached is not None:
            return cached
        pool = [
            self._cards[n.card_id or n.id] for n in self.snapshot.nodes
            if (n.card_id or n.id) in self._cards
        ]
        options = DistractorSelector.options(item.card, pool, amount=3, rng=self._rng)
        self._choice_options[item.card.id] = options
        return options

    def view(self) -> Dict[str, Any]:
        head = self.controller.head
        in_choice = {i.card.id for i in self.controller.items if i.phase == Phase.CHOICE}
        for card_id in list(self._choice_options):
            if card_id not in in_choice:
                del self._choice_options[card_id]

        camera = self.camera_target()
        notice = self.controller.rating_notice
        self.controller.dismiss_rating_notice()
        group = self.scheduler.active_group

        payload = {
            'session_id': self.id,
            'mode': self.mode,
            'queue_head': head.to_dict() if head else None,
            'phase': head.phase if head else None,
            'queue_size': len(self.controller),
            'graph_nodes': [n.to_dict() for n in self.snapshot.nodes],
            'graph_edges': [e.to_dict() for e in self.snapshot.edges],
            'graph_build_id': self.snapshot.build_id,
            'camera_target': camera.to_dict() if camera else None,
            'group': {'index': self.scheduler.active_index, 'label': group.label} if group else None,
            'progress': self.scheduler.progress() if self.mode == SessionMode.GROUPS else None,
            'stats': self.controller.stats.to_dict(),
            'finished': self.finished,
            'rating_notice': notice,
        }
        if head is not None and head.phase == Phase.CHOICE:
            payload['choice_options'] = [
                {'card_id': c.id, 'word': c.word, 'meaning': c.meaning}
                for c in self.choice_options(head)
            ]
        return payload


def parse_viewport(data) -> Optional[Tuple[float, float]]:
    if not data:
        return None
    try:
        if isinstance(data, dict):
            return float(data['width']), float(data['height'])
        width, height = data
        return float(width), float(height)
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError('viewport must be {width, height}') from e

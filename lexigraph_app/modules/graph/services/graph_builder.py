# File: lexigraph_app/modules/graph/services/graph_builder.py
"""
Semantic Graph Builder
======================
Builds the node/edge snapshot that gives a study group its context.

* One Target node per card of the group.
* Up to ``context_word_limit`` unlearned corpus words as Context nodes,
  chosen by nearest-neighbour search against the target set.
* Pairwise similarity across all nodes, pruned to the strongest edges with a
  per-node capacity (Target and Context nodes have separate limits).
* Relation labels are resolved before the snapshot is returned: cached labels
  per source word first, generation only for edges still missing one. The
  cached graph holds structure only, so a label that failed to generate is
  retried on the next build.

Bridging examples for a single edge are generated lazily through
``edge_example`` and never delay a build.

Every external call degrades on failure: a graph that cannot be built falls
back to lone Target nodes, a missing label stays ``None``, a missing example
is an empty string.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from lexigraph_app.core.defaults import EngineSettings
from lexigraph_app.core.error_handlers import LexigraphError
from lexigraph_app.models.card import Card
from lexigraph_app.modules.cache.logics import keys

from ..logics.edge_pruning import prune_edges
from ..logics.similarity import similarity_matrix
from ..schemas import GraphEdge, GraphNode, GraphSnapshot, NodeKind

logger = logging.getLogger(__name__)


def _norm(word: str) -> str:
    return (word or '').strip().lower()


class SemanticGraphBuilder:
    def __init__(self, embeddings, generation, cache, settings: Optional[EngineSettings] = None):
        self.embeddings = embeddings
        self.generation = generation
        self.cache = cache
        self.settings = settings or EngineSettings()
        self._build_ids = itertools.count(1)

    # ── group graph ──────────────────────────────────────────────────

    async def build_group_graph(
        self,
        targets: Sequence[Card],
        corpus: Sequence[Card],
        force_refresh: bool = False,
    ) -> GraphSnapshot:
        targets = self._unique_cards(targets)
        if not targets:
            return GraphSnapshot(build_id=next(self._build_ids))

        key = keys.graph_key(c.word for c in targets)

        async def generate():
            return await self._compute_group_graph(targets, corpus)

        payload = await self.cache.get_or_generate(key, generate, force_refresh=force_refresh, default=None)
        if payload is None:
            logger.info("Graph build for %d targets degraded to lone nodes", len(targets))
            return self._lone_nodes(targets, key)

        snapshot = self._rehydrate(payload, targets, corpus, key)
        return await self._with_labels(snapshot, force_refresh)

    async def _compute_group_graph(self, targets: List[Card], corpus: Sequence[Card]) -> dict:
        s = self.settings
        target_words = {_norm(c.word) for c in targets}
        target_ids = {c.id for c in targets}

        pool: Dict[str, Card] = {}
        for card in corpus:
            word = _norm(card.word)
            if card.id in target_ids or word in target_words or word in pool:
                continue
            if card.is_unlearned:
                pool[word] = card

        context_words = await self.embeddings.nearest_neighbors(
            [c.word for c in targets],
            s.context_word_limit,
            [c.word for c in pool.values()],
        )
        context_cards = []
        for word in context_words:
            card = pool.get(_norm(word))
            if card is not None and card not in context_cards:
                context_cards.append(card)

        node_cards = list(targets) + context_cards
        kinds = {c.id: NodeKind.TARGET for c in targets}
        kinds.update({c.id: NodeKind.CONTEXT for c in context_cards})

        vectors = await self.embeddings.embed_many(c.word for c in node_cards)
        embedded = [c for c in node_cards if c.word in vectors]
        matrix = similarity_matrix([vectors[c.word] for c in embedded])

        candidates = []
        for i in range(len(embedded)):
            for j in range(i + 1, len(embedded)):
                candidates.append((embedded[i].id, embedded[j].id, float(matrix[i, j])))

        capacity = {
            cid: s.target_edge_limit if kind == NodeKind.TARGET else s.context_edge_limit
            for cid, kind in kinds.items()
        }
        kept = prune_edges(candidates, capacity, s.edge_similarity_threshold)

        weights = self._context_weights(targets, context_cards, vectors)
        nodes = [
            GraphNode(
                id=c.id,
                label=c.word,
                kind=kinds[c.id],
                weight=weights.get(c.id, 1.0),
                card_id=c.id,
            )
            for c in node_cards
        ]
        edges = [
            GraphEdge(source=a, target=b, similarity=sim)
            for a, b, sim in kept
        ]
        logger.info(
            "Built group graph: %d targets, %d context, %d edges",
            len(targets), len(context_cards), len(edges),
        )
        return GraphSnapshot(nodes=tuple(nodes), edges=tuple(edges)).to_payload()

    @staticmethod
    def _context_weights(targets, context_cards, vectors) -> Dict[str, float]:
        target_vectors = [vectors[c.word] for c in targets if c.word in vectors]
        if not target_vectors:
            return {}
        centroid = np.mean(np.stack(target_vectors), axis=0)
        norm_c = np.linalg.norm(centroid)
        weights = {}
        for card in context_cards:
            vec = vectors.get(card.word)
            if vec is None or norm_c == 0:
                continue
            norm_v = np.linalg.norm(vec)
            if norm_v:
                weights[card.id] = round(float(np.dot(vec, centroid) / (norm_v * norm_c)), 4)
        return weights

    # ── single-card context graph ────────────────────────────────────

    async def build_context_graph(self, card: Card, corpus: Sequence[Card], force_refresh: bool = False) -> GraphSnapshot:
        """The card as the only Target node, its nearest corpus words around it."""
        s = self.settings
        pool: Dict[str, Card] = {}
        for other in corpus:
            word = _norm(other.word)
            if other.id == card.id or word == _norm(card.word) or word in pool:
                continue
            pool[word] = other

        try:
            neighbor_words = await self.embeddings.nearest_neighbors(
                [card.word], s.context_neighbor_limit, [c.word for c in pool.values()]
            )
            neighbors = [pool[_norm(w)] for w in neighbor_words if _norm(w) in pool]
            vectors = await self.embeddings.embed_many([card.word] + [c.word for c in neighbors])
        except LexigraphError as e:
            logger.warning(f"Context graph for '{card.word}' degraded: {e.message}")
            return self._lone_nodes([card], keys.context_graph_key(card.word))

        center = vectors.get(card.word)
        kept = []
        for other in neighbors:
            sim = self.embeddings.similarity(center, vectors.get(other.word))
            kept.append((card.id, other.id, sim))

        labels = await self._resolve_labels([(card.word, other.word) for other in neighbors], force_refresh)
        nodes = [GraphNode(id=card.id, label=card.word, kind=NodeKind.TARGET, card_id=card.id)]
        nodes.extend(
            GraphNode(id=o.id, label=o.word, kind=NodeKind.CONTEXT, weight=round(sim, 4), card_id=o.id)
            for o, (_, _, sim) in zip(neighbors, kept)
        )
        edges = [
            GraphEdge(
                source=a,
                target=b,
                similarity=sim,
                relation_label=labels.get((_norm(card.word), _norm(other.word))),
            )
            for other, (a, b, sim) in zip(neighbors, kept)
        ]
        return GraphSnapshot(
            nodes=tuple(nodes),
            edges=tuple(edges),
            build_id=next(self._build_ids),
            key=keys.context_graph_key(card.word),
        )

    # ── labels, examples, related words ──────────────────────────────

    async def _with_labels(self, snapshot: GraphSnapshot, force_refresh: bool = False) -> GraphSnapshot:
        if not snapshot.edges:
            return snapshot
        words = {n.id: n.label for n in snapshot.nodes}
        labels = await self._resolve_labels(
            [(words[e.source], words[e.target]) for e in snapshot.edges], force_refresh
        )
        edges = tuple(
            replace(e, relation_label=labels.get((_norm(words[e.source]), _norm(words[e.target]))))
            for e in snapshot.edges
        )
        return replace(snapshot, edges=edges)

    async def _resolve_labels(self, pairs: Sequence[tuple], force_refresh: bool = False) -> Dict[tuple, str]:
        """
        Relation label per ``(source_word, target_word)`` (normalised).

        Cached labels are looked up under both words; only pairs still
        missing a label are sent for generation, and new labels are cached
        under their source word.
        """
        resolved: Dict[tuple, str] = {}
        cached: Dict[str, dict] = {}

        def labels_for(word):
            if word not in cached:
                stored = None if force_refresh else self.cache.get(keys.labels_key(word))
                cached[word] = dict(stored) if isinstance(stored, dict) else {}
            return cached[word]

        missing = []
        for source, target in pairs:
            a, b = _norm(source), _norm(target)
            label = labels_for(a).get(b) or labels_for(b).get(a)
            if label:
                resolved[(a, b)] = label
            else:
                missing.append((source, target))

        if not missing:
            return resolved

        try:
            generated = await self.generation.label_edges(missing)
        except LexigraphError as e:
            logger.warning(f"Edge labels unavailable for {len(missing)} pairs: {e.message}")
            return resolved

        changed = set()
        for item in generated:
            a, b, label = _norm(item.get('source')), _norm(item.get('target')), item.get('label')
            if not (a and b and label):
                continue
            resolved[(a, b)] = label
            labels_for(a)[b] = label
            changed.add(a)

        for word in changed:
            self.cache.populate(keys.labels_key(word), cached[word])
        return resolved

    async def edge_example(self, snapshot: GraphSnapshot, source_id: str, target_id: str, force_refresh: bool = False) -> str:
        """Bridging example sentence for one edge, generated on first request."""
        source = snapshot.node(source_id)
        target = snapshot.node(target_id)
        if source is None or target is None:
            return ''
        edge = snapshot.edge_between(source_id, target_id)
        relation = edge.relation_label if edge and edge.relation_label else ''

        async def generate():
            return await self.generation.example(source.label, target.label, relation)

        return await self.cache.get_or_generate(
            keys.example_key(source.label, target.label), generate, force_refresh=force_refresh, default=''
        )

    async def related_words(self, word: str, force_refresh: bool = False) -> List[dict]:
        async def generate():
            return await self.generation.related_words(word)

        return await self.cache.get_or_generate(
            keys.related_key(word), generate, force_refresh=force_refresh, default=[]
        )

    async def node_vectors(self, snapshot: GraphSnapshot) -> Dict[str, np.ndarray]:
        """Embedding per node id, for the layout force. Empty on failure."""
        try:
            vectors = await self.embeddings.embed_many(n.label for n in snapshot.nodes)
        except LexigraphError as e:
            logger.warning(f"Node vectors unavailable: {e.message}")
            return {}
        return {n.id: vectors[n.label] for n in snapshot.nodes if n.label in vectors}

    # ── helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _unique_cards(cards: Iterable[Card]) -> List[Card]:
        seen = set()
        result = []
        for card in cards:
            if card.id in seen:
                continue
            seen.add(card.id)
            result.append(card)
        return result

    def _lone_nodes(self, cards: Sequence[Card], key: str) -> GraphSnapshot:
        nodes = tuple(
            GraphNode(id=c.id, label=c.word, kind=NodeKind.TARGET, card_id=c.id) for c in cards
        )
        return GraphSnapshot(nodes=nodes, build_id=next(self._build_ids), key=key)

    def _rehydrate(self, payload: dict, targets: Sequence[Card], corpus: Sequence[Card], key: str) -> GraphSnapshot:
        """Restore a cached payload, dropping nodes whose cards no longer exist."""
        snapshot = GraphSnapshot.from_payload(payload)
        known = {c.id for c in targets} | {c.id for c in corpus}
        nodes = [n for n in snapshot.nodes if n.id in known]
        node_ids = {n.id for n in nodes}
        for card in targets:
            if card.id not in node_ids:
                nodes.append(GraphNode(id=card.id, label=card.word, kind=NodeKind.TARGET, card_id=card.id))
                node_ids.add(card.id)
        edges = [e for e in snapshot.edges if e.source in node_ids and e.target in node_ids]
        return GraphSnapshot(
            nodes=tuple(nodes),
            edges=tuple(edges),
            build_id=next(self._build_ids),
            key=key,
        )

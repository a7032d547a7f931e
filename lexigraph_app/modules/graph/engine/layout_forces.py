# File: lexigraph_app/modules/graph/engine/layout_forces.py
"""
Semantic gravity for an external force-directed layout.

Node pairs whose embeddings are similar above ``threshold`` become gravity
edges with a rest distance that shrinks as similarity grows. Each tick the
force pulls such pairs together while they are further apart than their rest
distance, scaled by the simulation's cooling factor ``alpha``. It never pushes.

The force only reads and nudges ``PhysicsBody`` records, joined to graph nodes
by id; ``GraphNode`` objects are never touched.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Mapping, Optional

import numpy as np

from lexigraph_app.core.defaults import EngineSettings

from ..logics.similarity import similarity_matrix
from ..schemas import GraphSnapshot, GravityEdge, PhysicsBody

logger = logging.getLogger(__name__)

FORCE_NAME = 'semantic-gravity'


class SemanticGravityForce:
    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or EngineSettings()
        self.edges: List[GravityEdge] = []
        self._node_ids: frozenset = frozenset()
        self._host = None

    @property
    def node_ids(self) -> frozenset:
        return self._node_ids

    def rest_distance(self, similarity: float) -> float:
        s = self.settings
        return s.gravity_base_distance + (1.0 - similarity) * s.gravity_distance_span

    def compute_edges(self, node_ids: Iterable[str], vectors: Mapping[str, np.ndarray]) -> List[GravityEdge]:
        """Gravity edges for every unordered pair of ``node_ids`` with vectors."""
        ids = [nid for nid in dict.fromkeys(node_ids) if nid in vectors]
        matrix = similarity_matrix([vectors[nid] for nid in ids])
        edges = []
        for i in range(len(ids)):
            for j in range(i + 1, len(ids)):
                similarity = float(matrix[i, j])
                if similarity > self.settings.gravity_threshold:
                    edges.append(GravityEdge(
                        source=ids[i],
                        target=ids[j],
                        similarity=similarity,
                        rest_distance=self.rest_distance(similarity),
                    ))
        return edges

    def sync(self, snapshot: GraphSnapshot, vectors: Mapping[str, np.ndarray]) -> bool:
        """
        Recompute gravity edges when the snapshot's node set changed.

        ``vectors`` maps node id to embedding. Returns True when the edge list
        was rebuilt (and the force re-registered with an attached host).
        """
        ids = frozenset(snapshot.node_ids())
        if ids == self._node_ids and self.edges:
            return False

        self._node_ids = ids
        self.edges = self.compute_edges(snapshot.node_ids(), vectors)
        logger.debug("Semantic gravity rebuilt: %d nodes, %d edges", len(ids), len(self.edges))
        if self._host is not None:
            self._register()
        return True

    def attach(self, host) -> None:
        """
        Register with a simulation host exposing ``register_force(name, fn)``
        and, optionally, ``reheat()``.
        """
        self._host = host
        self._register()

    def _register(self) -> None:
        self._host.register_force(FORCE_NAME, self.apply)
        reheat = getattr(self._host, 'reheat', None)
        if callable(reheat):
            reheat()

    def apply(self, bodies: Mapping[str, PhysicsBody], alpha: float) -> None:
        """One simulation tick: nudge body velocities in place."""
        k = alpha * self.settings.gravity_strength
        if k == 0:
            return

        for edge in self.edges:
            if edge.source not in self._node_ids or edge.target not in self._node_ids:
                continue
            source = bodies.get(edge.source)
            target = bodies.get(edge.target)
            if source is None or target is None:
                continue

            dx = target.x - source.x
            dy = target.y - source.y
            distance = math.hypot(dx, dy) or 0.001
            if distance <= edge.rest_distance:
                continue

            f = (distance - edge.rest_distance) * edge.similarity * k
            fx = dx / distance * f
            fy = dy / distance * f
            source.vx += fx
            source.vy += fy
            target.vx -= fx
            target.vy -= fy


def bodies_by_id(bodies: Iterable[PhysicsBody]) -> Dict[str, PhysicsBody]:
    return {body.id: body for body in bodies}

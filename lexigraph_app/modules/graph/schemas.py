# File: lexigraph_app/modules/graph/schemas.py
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Any


class NodeKind:
    TARGET = 'target'
    CONTEXT = 'context'


@dataclass(frozen=True)
class GraphNode:
    id: str
    label: str
    kind: str = NodeKind.TARGET
    weight: float = 1.0
    card_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'label': self.label,
            'kind': self.kind,
            'weight': self.weight,
            'card_id': self.card_id,
        }


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    similarity: float
    relation_label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'target': self.target,
            'similarity': round(self.similarity, 4),
            'relation_label': self.relation_label,
        }


@dataclass(frozen=True)
class GraphSnapshot:
    """
    Immutable result of one graph build. Rebuilds produce a new snapshot;
    nothing outside the builder patches an existing one.
    """
    nodes: Tuple[GraphNode, ...] = ()
    edges: Tuple[GraphEdge, ...] = ()
    build_id: int = 0
    key: str = ''

    def node(self, node_id: str) -> Optional[GraphNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def edge_between(self, a: str, b: str) -> Optional[GraphEdge]:
        for edge in self.edges:
            if {edge.source, edge.target} == {a, b}:
                return edge
        return None

    def degree(self, node_id: str) -> int:
        return sum(1 for e in self.edges if node_id in (e.source, e.target))

    def neighbors(self, node_id: str) -> List[str]:
        result = []
        for edge in self.edges:
            if edge.source == node_id:
                result.append(edge.target)
            elif edge.target == node_id:
                result.append(edge.source)
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            'build_id': self.build_id,
            'nodes': [n.to_dict() for n in self.nodes],
            'edges': [e.to_dict() for e in self.edges],
        }

    def to_payload(self) -> Dict[str, Any]:
        """Cacheable form; ``from_payload`` restores it under a new build id."""
        return {
            'nodes': [n.to_dict() for n in self.nodes],
            'edges': [e.to_dict() for e in self.edges],
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], build_id: int = 0, key: str = '') -> 'GraphSnapshot':
        nodes = tuple(GraphNode(**n) for n in payload.get('nodes', []))
        edges = tuple(GraphEdge(**e) for e in payload.get('edges', []))
        return cls(nodes=nodes, edges=edges, build_id=build_id, key=key)


@dataclass
class PhysicsBody:
    """Mutable position/velocity record owned by the layout simulation."""
    id: str
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0


@dataclass(frozen=True)
class GravityEdge:
    source: str
    target: str
    similarity: float
    rest_distance: float


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['Rect']:
        if not data:
            return None
        return cls(
            x=float(data.get('x', 0)),
            y=float(data.get('y', 0)),
            width=float(data.get('width', 0)),
            height=float(data.get('height', 0)),
        )


@dataclass(frozen=True)
class CameraTarget:
    x: float
    y: float
    zoom: float

    def to_dict(self) -> Dict[str, float]:
        return {'x': self.x, 'y': self.y, 'zoom': self.zoom}


@dataclass
class ClusterGroup:
    label: str
    words: List[str] = field(default_factory=list)

# File: lexigraph_app/modules/session/schemas.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from lexigraph_app.models.card import Card


class Phase:
    LEARN = 'learn'
    CHOICE = 'choice'
    TEST = 'test'

    ALL = (LEARN, CHOICE, TEST)


class SessionMode:
    GROUPS = 'groups'
    REVIEW = 'review'


@dataclass
class SessionItem:
    """One card's position in the rehearsal cycle."""
    card: Card
    phase: str = Phase.LEARN
    node_id: Optional[str] = None

    def __post_init__(self):
        if self.node_id is None:
            self.node_id = self.card.id

    @property
    def card_id(self) -> str:
        return self.card.id

    def to_dict(self) -> Dict[str, Any]:
        return {
            'card': self.card.to_dict(),
            'phase': self.phase,
            'node_id': self.node_id,
        }


@dataclass
class GroupDescriptor:
    label: str
    items: List[Card] = field(default_factory=list)

    @property
    def card_ids(self) -> List[str]:
        return [c.id for c in self.items]


@dataclass
class TransitionResult:
    """Feedback for one intent applied to the queue."""
    card_id: str
    from_phase: str
    to_phase: Optional[str]             # None when the item left the queue
    index: Optional[int] = None         # new queue index, None when removed
    is_correct: Optional[bool] = None
    grade: Optional[int] = None

    @property
    def terminal(self) -> bool:
        return self.to_phase is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'card_id': self.card_id,
            'from_phase': self.from_phase,
            'to_phase': self.to_phase,
            'index': self.index,
            'is_correct': self.is_correct,
            'grade': self.grade,
            'terminal': self.terminal,
        }


@dataclass
class SessionStats:
    correct: int = 0
    total: int = 0
    failed_attempts: Dict[str, int] = field(default_factory=dict)
    completed_ids: List[str] = field(default_factory=list)
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def record_attempt(self, card_id: str, is_correct: bool) -> None:
        self.total += 1
        if is_correct:
            self.correct += 1
        else:
            self.failed_attempts[card_id] = self.failed_attempts.get(card_id, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'correct': self.correct,
            'total': self.total,
            'accuracy': round(self.correct / self.total, 4) if self.total else None,
            'failed_attempts': dict(self.failed_attempts),
            'completed_ids': list(self.completed_ids),
            'started_at': self.started_at,
        }

# File: lexigraph_app/models/card.py
import datetime
from dataclasses import dataclass, field, asdict, replace
from typing import Optional, Dict, Any


# Standard FSRS Rating (1-4)
class Rating:
    Again = 1
    Hard = 2
    Good = 3
    Easy = 4

    ALL = (Again, Hard, Good, Easy)


# Card lifecycle state constants
class CardState:
    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3

    ALL = (NEW, LEARNING, REVIEW, RELEARNING)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass
class Card:
    """A vocabulary unit as stored by the persistence collaborator."""
    id: str
    word: str
    meaning: str = ''
    state: int = CardState.NEW
    due: Optional[datetime.datetime] = None
    is_familiar: bool = False
    # Enrichment
    part_of_speech: Optional[str] = None
    example: Optional[str] = None
    example_meaning: Optional[str] = None
    mnemonic: Optional[str] = None
    rank: Optional[int] = None
    updated_at: datetime.datetime = field(default_factory=_utcnow)

    @property
    def is_unlearned(self) -> bool:
        return self.state == CardState.NEW and not self.is_familiar

    def copy(self, **changes) -> 'Card':
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ('due', 'updated_at'):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Card':
        payload = dict(data)
        for key in ('due', 'updated_at'):
            value = payload.get(key)
            if isinstance(value, str):
                payload[key] = datetime.datetime.fromisoformat(value)
        if payload.get('updated_at') is None:
            payload.pop('updated_at', None)
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in payload.items() if k in known})


@dataclass
class CacheEntry:
    """Durable cache record keyed by word or word-set hash."""
    key: str
    payload: Any
    timestamp: float

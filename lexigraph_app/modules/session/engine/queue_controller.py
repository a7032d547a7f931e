# File: lexigraph_app/modules/session/engine/queue_controller.py
"""
Session Queue Controller
========================
The rehearsal state machine over one batch of items.

Per item::

    Learn  --know-->       Choice   reinserted at min(remaining, learn_promote_offset)
    Learn  --forgot-->     Learn    moved to the tail
    Choice --correct-->    Test     reinserted at min(remaining, reinsert_offset)
    Choice --incorrect-->  Learn    reinserted at min(remaining, reinsert_offset), failed attempt
    Test   --correct-->    done     removed, rating service called once with Rating.Good
    Test   --incorrect-->  Learn    reinserted at min(remaining, reinsert_offset), failed attempt

"remaining" is the queue length after the item was taken out. Intents name
an item (or its card id); an item that is no longer queued, or not in the
phase the intent expects, is ignored and the intent returns None.

The queue list is owned here; callers only ever see tuple snapshots.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Tuple, Union

from lexigraph_app.core.defaults import EngineSettings
from lexigraph_app.core.error_handlers import StateConsistencyError, ValidationError
from lexigraph_app.core.signals import SessionSignals
from lexigraph_app.models.card import Card, Rating

from ..schemas import Phase, SessionItem, SessionStats, TransitionResult

logger = logging.getLogger(__name__)

ItemRef = Union[SessionItem, str]

RATING_NOTICE = 'Progress was saved locally but could not be synced to the scheduler.'


class QueueController:
    def __init__(
        self,
        rating_service=None,
        signals: Optional[SessionSignals] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self.rating_service = rating_service
        self.signals = signals or SessionSignals()
        self.settings = settings or EngineSettings()
        self.stats = SessionStats()
        self.rating_notice: Optional[str] = None
        self._rating_notice_shown = False
        self._queue: List[SessionItem] = []
        self._transitioning = False

    # ── read access ──────────────────────────────────────────────────

    @property
    def items(self) -> Tuple[SessionItem, ...]:
        return tuple(self._queue)

    @property
    def head(self) -> Optional[SessionItem]:
        return self._queue[0] if self._queue else None

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def is_empty(self) -> bool:
        return not self._queue

    def index_of(self, card_id: str) -> Optional[int]:
        for i, item in enumerate(self._queue):
            if item.card.id == card_id:
                return i
        return None

    def find(self, card_id: str) -> Optional[SessionItem]:
        index = self.index_of(card_id)
        return self._queue[index] if index is not None else None

    # ── setup ────────────────────────────────────────────────────────

    def initialize(
        self,
        items: Iterable[Union[Card, SessionItem]],
        resolver: Optional[Callable[[str], Optional[Card]]] = None,
    ) -> Tuple[SessionItem, ...]:
        """
        Replace the queue with ``items`` in order, every item starting in Learn
        unless a ``SessionItem`` says otherwise.

        ``resolver`` maps a card id to its canonical card; items it cannot
        resolve are dropped. Duplicate card ids and familiar cards are
        filtered out.
        """
        queue: List[SessionItem] = []
        seen = set()
        for raw in items:
            item = raw if isinstance(raw, SessionItem) else SessionItem(card=raw)
            try:
                if resolver is not None:
                    card = resolver(item.card.id)
                    if card is None:
                        raise ValidationError(
                            f"Card {item.card.id} no longer exists",
                            errors={'card_id': item.card.id},
                        )
                    item = SessionItem(card=card, phase=item.phase, node_id=item.node_id)
                if item.card.id in seen:
                    raise StateConsistencyError(
                        f"Duplicate item for card {item.card.id}",
                        details={'card_id': item.card.id},
                    )
            except (ValidationError, StateConsistencyError) as e:
                logger.warning(f"Dropping queue item: {e.message}")
                continue

            if item.card.is_familiar:
                continue
            if item.phase not in Phase.ALL:
                item.phase = Phase.LEARN
            seen.add(item.card.id)
            queue.append(item)

        self._queue = queue
        logger.debug("Queue initialised with %d items", len(queue))
        return self.items

    # ── intents ──────────────────────────────────────────────────────

    def know(self, item: ItemRef) -> Optional[TransitionResult]:
        """Learn -> Choice."""
        return self._transition(item, Phase.LEARN, self._do_know)

    def forgot(self, item: ItemRef) -> Optional[TransitionResult]:
        """Learn -> Learn at the tail."""
        return self._transition(item, Phase.LEARN, self._do_forgot)

    def choose_answer(self, item: ItemRef, selected) -> Optional[TransitionResult]:
        """
        Choice -> Test when ``selected`` (a card, card id or word) matches the
        item's card, otherwise Choice -> Learn.
        """
        return self._transition(item, Phase.CHOICE, lambda i: self._do_choose(i, selected))

    def submit_spelling(self, item: ItemRef, text: str) -> Optional[TransitionResult]:
        """Test -> done on a trimmed, case-insensitive match, otherwise Test -> Learn.

        Blank text is ignored and returns None.
        """
        if not (text or '').strip():
            return None
        return self._transition(item, Phase.TEST, lambda i: self._do_spell(i, text))

    def review(self, item: ItemRef, grade: int) -> Optional[TransitionResult]:
        """Review mode: rate the card with ``grade`` and remove it, whatever its phase."""
        if grade not in Rating.ALL:
            raise ValidationError(f"Unknown grade {grade!r}", errors={'grade': grade})
        return self._transition(item, None, lambda i: self._do_review(i, grade))

    def remove_card(self, card_id: str) -> Optional[SessionItem]:
        """Drop the item for ``card_id`` without rating it (familiar or deleted card)."""
        index = self.index_of(card_id)
        if index is None:
            return None
        return self._queue.pop(index)

    def replace_card(self, card: Card) -> bool:
        """Swap in an updated card (e.g. enrichment) if its item is still queued."""
        index = self.index_of(card.id)
        if index is None:
            return False
        if card.is_familiar:
            self._queue.pop(index)
            return True
        self._queue[index].card = card
        return True

    def dismiss_rating_notice(self) -> None:
        self.rating_notice = None

    # ── transitions ──────────────────────────────────────────────────

    def _transition(self, ref: ItemRef, expected_phase: Optional[str], action) -> Optional[TransitionResult]:
        if self._transitioning:
            logger.warning("Ignoring re-entrant queue transition")
            return None

        card_id = ref.card.id if isinstance(ref, SessionItem) else ref
        index = self.index_of(card_id)
        if index is None:
            logger.debug("Ignoring intent for %s: not in queue", card_id)
            return None
        item = self._queue[index]
        if expected_phase is not None and item.phase != expected_phase:
            logger.debug("Ignoring intent for %s: phase is %s, expected %s", card_id, item.phase, expected_phase)
            return None

        self._transitioning = True
        try:
            self._queue.pop(index)
            return action(item)
        finally:
            self._transitioning = False

    def _reinsert(self, item: SessionItem, offset: int) -> int:
        index = min(len(self._queue), offset)
        self._queue.insert(index, item)
        return index

    def _do_know(self, item: SessionItem) -> TransitionResult:
        item.phase = Phase.CHOICE
        index = self._reinsert(item, self.settings.learn_promote_offset)
        return TransitionResult(item.card.id, Phase.LEARN, Phase.CHOICE, index)

    def _do_forgot(self, item: SessionItem) -> TransitionResult:
        self._queue.append(item)
        return TransitionResult(item.card.id, Phase.LEARN, Phase.LEARN, len(self._queue) - 1)

    def _do_choose(self, item: SessionItem, selected) -> TransitionResult:
        is_correct = self._matches(item.card, selected)
        self.stats.record_attempt(item.card.id, is_correct)
        if is_correct:
            item.phase = Phase.TEST
            index = self._reinsert(item, self.settings.reinsert_offset)
            return TransitionResult(item.card.id, Phase.CHOICE, Phase.TEST, index, is_correct=True)
        return self._demote(item, Phase.CHOICE)

    def _do_spell(self, item: SessionItem, text: str) -> TransitionResult:
        is_correct = (text or '').strip().lower() == item.card.word.strip().lower()
        self.stats.record_attempt(item.card.id, is_correct)
        if not is_correct:
            return self._demote(item, Phase.TEST)
        self._graduate(item, Rating.Good)
        return TransitionResult(item.card.id, Phase.TEST, None, is_correct=True, grade=Rating.Good)

    def _do_review(self, item: SessionItem, grade: int) -> TransitionResult:
        from_phase = item.phase
        self.stats.record_attempt(item.card.id, grade != Rating.Again)
        self._graduate(item, grade)
        return TransitionResult(item.card.id, from_phase, None, is_correct=grade != Rating.Again, grade=grade)

    def _demote(self, item: SessionItem, from_phase: str) -> TransitionResult:
        item.phase = Phase.LEARN
        index = self._reinsert(item, self.settings.reinsert_offset)
        self.signals.item_demoted.send(
            self, card_id=item.card.id, word=item.card.word, from_phase=from_phase, index=index
        )
        return TransitionResult(item.card.id, from_phase, Phase.LEARN, index, is_correct=False)

    def _graduate(self, item: SessionItem, grade: int) -> None:
        """Remove-first, then rate: a rating failure never puts the item back."""
        if item.card.id not in self.stats.completed_ids:
            self.stats.completed_ids.append(item.card.id)

        if self.rating_service is not None:
            try:
                updated = self.rating_service.rate(item.card, grade)
                if isinstance(updated, Card):
                    item.card = updated
            except Exception as e:
                logger.error(f"Rating failed for card {item.card.id}: {e}")
                self.signals.rating_failed.send(self, card_id=item.card.id, error=str(e))
                if not self._rating_notice_shown:
                    self._rating_notice_shown = True
                    self.rating_notice = RATING_NOTICE

        self.signals.item_graduated.send(self, card_id=item.card.id, word=item.card.word, grade=grade)

    @staticmethod
    def _matches(card: Card, selected) -> bool:
        if isinstance(selected, Card):
            return selected.id == card.id
        if isinstance(selected, SessionItem):
            return selected.card.id == card.id
        if selected is None:
            return False
        value = str(selected)
        return value == card.id or value.strip().lower() == card.word.strip().lower()

# File: lexigraph_app/modules/session/services/group_scheduler.py
"""
Group Scheduler
===============
Sequences study groups and decides where a session resumes.

* ``resume`` re-reads every card from the persistence collaborator and starts
  at the first group that still has a non-terminal card (index 0 when every
  group is complete).
* ``load_group`` orders a group as a semantic chain and queues its
  non-terminal cards.
* ``advance`` moves on once the queue is empty and reports session
  completion when no incomplete group remains.

A card is terminal when it is familiar, already in ``CardState.REVIEW``, or
graduated during this session.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Union

from lexigraph_app.core.defaults import EngineSettings
from lexigraph_app.core.error_handlers import LexigraphError, NotFoundError
from lexigraph_app.core.signals import SessionSignals
from lexigraph_app.models.card import Card, CardState
from lexigraph_app.modules.graph.logics.semantic_chain import sort_by_chain

from ..engine.queue_controller import QueueController
from ..schemas import GroupDescriptor

logger = logging.getLogger(__name__)

GroupInput = Union[GroupDescriptor, dict]


class GroupScheduler:
    def __init__(
        self,
        repository,
        embeddings,
        controller: QueueController,
        signals: Optional[SessionSignals] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self.repository = repository
        self.embeddings = embeddings
        self.controller = controller
        self.signals = signals or controller.signals
        self.settings = settings or controller.settings
        self.groups: List[GroupDescriptor] = []
        self.active_index: Optional[int] = None
        self.finished = False
        # Bumped on every load; async work started for an older load is stale.
        self.generation = 0
        self._completed: set = set()
        self.signals.item_graduated.connect(self._on_item_graduated)

    # ── state ────────────────────────────────────────────────────────

    @property
    def active_group(self) -> Optional[GroupDescriptor]:
        if self.active_index is None or not (0 <= self.active_index < len(self.groups)):
            return None
        return self.groups[self.active_index]

    def is_terminal(self, card: Card) -> bool:
        return card.is_familiar or card.state == CardState.REVIEW or card.id in self._completed

    def is_complete(self, group: GroupDescriptor) -> bool:
        return all(self.is_terminal(card) for card in group.items)

    def mark_completed(self, card_id: str) -> None:
        self._completed.add(card_id)

    def _on_item_graduated(self, sender, **kwargs):
        card_id = kwargs.get('card_id')
        if card_id:
            self.mark_completed(card_id)

    def progress(self) -> Dict[str, object]:
        groups = []
        for i, group in enumerate(self.groups):
            done = sum(1 for c in group.items if self.is_terminal(c))
            groups.append({
                'index': i,
                'label': group.label,
                'total': len(group.items),
                'completed': done,
                'is_complete': done == len(group.items),
            })
        return {
            'active_index': self.active_index,
            'finished': self.finished,
            'groups': groups,
        }

    # ── operations ───────────────────────────────────────────────────

    async def resume(self, groups: Sequence[GroupInput]) -> Optional[int]:
        """Refresh every group from storage and load the first incomplete one."""
        self.groups = [self._refresh(self._coerce(g)) for g in groups]
        self.finished = False
        self.active_index = None

        if not self.groups:
            logger.info("Resume called with no groups")
            return None

        start = next((i for i, g in enumerate(self.groups) if not self.is_complete(g)), 0)
        logger.info("Resuming at group %d of %d", start, len(self.groups))
        await self.load_group(start)
        return start

    async def load_group(self, index: int):
        """Chain-order group ``index`` and queue its non-terminal cards."""
        if not (0 <= index < len(self.groups)):
            raise NotFoundError(f"Group {index} does not exist", resource='group')

        group = self._refresh(self.groups[index])
        self.groups[index] = group

        vectors = {}
        try:
            vectors = await self.embeddings.embed_many(c.word for c in group.items)
        except LexigraphError as e:
            logger.warning(f"Chain ordering unavailable for group {index}: {e.message}")

        ordered = sort_by_chain(group.items, vectors, key=lambda c: c.word)
        pending = [c for c in ordered if not self.is_terminal(c)]

        self.active_index = index
        self.generation += 1
        items = self.controller.initialize(pending)
        self.signals.group_loaded.send(self, index=index, label=group.label, queue_size=len(items))
        return items

    async def advance(self) -> Optional[int]:
        """
        Load the next incomplete group once the queue is empty.

        Returns the loaded index, the current index when the queue still has
        items, or None when the session is finished.
        """
        if self.finished:
            return None
        if not self.controller.is_empty:
            return self.active_index

        start = 0 if self.active_index is None else self.active_index + 1
        for index in range(start, len(self.groups)):
            self.groups[index] = self._refresh(self.groups[index])
            if not self.is_complete(self.groups[index]):
                await self.load_group(index)
                return index

        self.finished = True
        stats = self.controller.stats
        logger.info("Session complete: %d groups, %d/%d correct", len(self.groups), stats.correct, stats.total)
        self.signals.session_completed.send(
            self, groups_total=len(self.groups), correct=stats.correct, total=stats.total
        )
        return None

    # ── helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _coerce(group: GroupInput) -> GroupDescriptor:
        if isinstance(group, GroupDescriptor):
            return group
        items = [c if isinstance(c, Card) else Card.from_dict(c) for c in group.get('items', [])]
        return GroupDescriptor(label=group.get('label', ''), items=items)

    def _refresh(self, group: GroupDescriptor) -> GroupDescriptor:
        """Canonical card state for ``group``; cards that no longer resolve are dropped."""
        ids = [c.id for c in group.items]
        try:
            fresh = {c.id: c for c in self.repository.get_cards_by_ids(ids)}
        except LexigraphError as e:
            logger.warning(f"Could not refresh group '{group.label}': {e.message}")
            return group

        dropped = [cid for cid in ids if cid not in fresh]
        if dropped:
            logger.warning("Dropping %d missing cards from group '%s'", len(dropped), group.label)
        return GroupDescriptor(label=group.label, items=[fresh[cid] for cid in ids if cid in fresh])

# File: lexigraph_app/modules/session/interface.py
"""
Session Interface
=================
Public API for other modules (and the HTTP layer) to create, look up and end
learning sessions. Sessions live in the app's ``SessionRegistry``.
"""

import asyncio
from typing import Iterable, List, Optional

from lexigraph_app.core.error_handlers import NotFoundError, ValidationError
from lexigraph_app.core.extensions import get_services, get_session_registry

from .schemas import GroupDescriptor
from .services.learning_session import LearningSession


class SessionInterface:
    """Public interface for session module operations."""

    @staticmethod
    def create_group_session(groups: Iterable[dict]) -> LearningSession:
        """
        Start a group-mode session.

        Args:
            groups: ``[{'label': str, 'card_ids': [str, ...]}, ...]`` in study order.
        """
        services = get_services()
        repository = services.require('repository')

        descriptors: List[GroupDescriptor] = []
        for i, group in enumerate(groups):
            if not isinstance(group, dict) or not isinstance(group.get('card_ids'), list):
                raise ValidationError(f"Group {i} needs a card_ids list", errors={'group': i})
            cards = repository.get_cards_by_ids([str(cid) for cid in group['card_ids']])
            descriptors.append(GroupDescriptor(label=str(group.get('label') or f"Group {i + 1}"), items=cards))

        if not descriptors:
            raise ValidationError('At least one group is required')

        session = LearningSession(services)
        asyncio.run(session.start_groups(descriptors))
        get_session_registry().add(session)
        return session

    @staticmethod
    def create_review_session(card_ids: Iterable[str]) -> LearningSession:
        """Start a review-mode session over ``card_ids`` in the given order."""
        card_ids = [str(cid) for cid in card_ids]
        if not card_ids:
            raise ValidationError('card_ids must not be empty')

        session = LearningSession(get_services())
        asyncio.run(session.start_review(card_ids))
        get_session_registry().add(session)
        return session

    @staticmethod
    def get_session(session_id: str) -> LearningSession:
        session = get_session_registry().get(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found", resource='session')
        return session

    @staticmethod
    def end_session(session_id: str) -> Optional[LearningSession]:
        session = get_session_registry().remove(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found", resource='session')
        return session

# File: lexigraph_app/modules/session/services/session_registry.py
"""
Session Registry
================
Per-app store of live ``LearningSession`` objects keyed by session id.
Stored in ``app.extensions``, so two apps never share sessions.
"""

from __future__ import annotations

import threading
from typing import Dict, Optional


class SessionRegistry:
    def __init__(self):
        self._lock = threading.RLock()
        self._sessions: Dict[str, object] = {}

    def add(self, session) -> None:
        with self._lock:
            self._sessions[session.id] = session

    def get(self, session_id: str) -> Optional[object]:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Optional[object]:
        with self._lock:
            return self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

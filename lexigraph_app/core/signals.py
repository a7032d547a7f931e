"""
Session-scoped Signal Registry.

Uses blinker namespaces for decoupled communication between the engine and
whatever presentation layer is listening. Every learning session owns its
own ``SessionSignals`` instance, so subscribers of one session never see the
events of another and nothing outlives the session.

Usage:
    # Publisher (inside the engine)
    signals.item_graduated.send(self, card_id='c1', word='apple')

    # Subscriber
    @session.signals.item_graduated.connect
    def on_graduated(sender, **kwargs):
        ...
"""
from blinker import Namespace


class SessionSignals:
    """Named blinker signals for one learning session."""

    def __init__(self):
        self._namespace = Namespace()

        # Fired when an item passes its spelling test (or is rated in review mode)
        # Payload: card_id, word, grade
        self.item_graduated = self._namespace.signal('item-graduated')

        # Fired when an item falls back to the Learn phase
        # Payload: card_id, word, from_phase, index
        self.item_demoted = self._namespace.signal('item-demoted')

        # Fired when the group scheduler loads a group into the queue
        # Payload: index, label, queue_size
        self.group_loaded = self._namespace.signal('group-loaded')

        # Fired once when no incomplete group remains
        # Payload: groups_total, correct, total
        self.session_completed = self._namespace.signal('session-completed')

        # Fired when the external rating service raised
        # Payload: card_id, error
        self.rating_failed = self._namespace.signal('rating-failed')

        # Fired when a graph snapshot is accepted into session state
        # Payload: build_id, nodes, edges
        self.graph_built = self._namespace.signal('graph-built')

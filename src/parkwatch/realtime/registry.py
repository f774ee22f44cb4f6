"""Topic-keyed subscription registry for real-time channels.

Topics are facility ids plus the wildcard :data:`ALL_TOPIC`.  A channel
must be connected before its subscriptions take effect; subscriptions
requested earlier are queued and replayed exactly once on connect.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict

_logger = logging.getLogger(__name__)

ALL_TOPIC = "*"
DEFAULT_MAX_PENDING_CHANNELS = 1024


class SubscriptionRegistry:
    """Track which connected channels are interested in which facility.

    Queues are kept for at most *max_pending_channels* unconnected channels;
    beyond that the oldest queue is dropped.  Hosts should still call
    :meth:`disconnect` for channels they abandon before connecting.
    """

    def __init__(self, *, max_pending_channels: int = DEFAULT_MAX_PENDING_CHANNELS) -> None:
        self._max_pending_channels = max_pending_channels
        self._lock = threading.Lock()
        self._connected: set[str] = set()
        self._topics: defaultdict[str, set[str]] = defaultdict(set)
        self._pending: dict[str, list[str]] = {}

    def is_connected(self, channel: str) -> bool:
        with self._lock:
            return channel in self._connected

    def connected_channels(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._connected)

    def connect(self, channel: str) -> list[str]:
        """Mark *channel* connected and replay its queued subscriptions.

        Returns the topics replayed.  The queue is drained, so a later
        reconnect does not replay them again.
        """
        with self._lock:
            self._connected.add(channel)
            replayed = self._pending.pop(channel, [])
            for topic in replayed:
                self._topics[topic].add(channel)
        _logger.debug("Channel connected channel=%s replayed=%s", channel, replayed)
        return replayed

    def disconnect(self, channel: str) -> None:
        """Forget *channel* and every subscription it holds."""
        with self._lock:
            self._connected.discard(channel)
            self._pending.pop(channel, None)
            for topic in list(self._topics):
                members = self._topics[topic]
                members.discard(channel)
                if not members:
                    del self._topics[topic]
        _logger.debug("Channel disconnected channel=%s", channel)

    def subscribe(self, channel: str, facility_id: str) -> bool:
        """Subscribe *channel* to *facility_id*.

        Returns ``True`` when applied immediately and ``False`` when queued
        until the channel connects.
        """
        with self._lock:
            if channel in self._connected:
                self._topics[facility_id].add(channel)
                return True
            queue = self._pending.get(channel)
            if queue is None:
                queue = self._pending[channel] = []
                dropped = self._evict_pending_locked()
            else:
                dropped = None
            if facility_id not in queue:
                queue.append(facility_id)
        if dropped is not None:
            _logger.warning("Dropped queued subscriptions of never-connected channel=%s", dropped)
        _logger.debug("Queued subscription channel=%s facility=%s until connect", channel, facility_id)
        return False

    def _evict_pending_locked(self) -> str | None:
        if len(self._pending) <= self._max_pending_channels:
            return None
        oldest = next(iter(self._pending))
        del self._pending[oldest]
        return oldest

    def unsubscribe(self, channel: str, facility_id: str) -> None:
        """Drop a subscription; a no-op for channels that are not connected."""
        with self._lock:
            if channel not in self._connected:
                return
            members = self._topics.get(facility_id)
            if members is None:
                return
            members.discard(channel)
            if not members:
                del self._topics[facility_id]

    def subscribers(self, facility_id: str | None = None) -> frozenset[str]:
        """Channels that should receive an event.

        ``None`` means full fan-out to every connected channel; otherwise
        the facility's subscribers plus wildcard subscribers.
        """
        with self._lock:
            if facility_id is None:
                return frozenset(self._connected)
            return frozenset(self._topics.get(facility_id, set()) | self._topics.get(ALL_TOPIC, set()))

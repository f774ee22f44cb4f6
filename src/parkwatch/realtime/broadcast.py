"""Broadcast primitive relaying named events to real-time channels."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from parkwatch.realtime.registry import SubscriptionRegistry

_logger = logging.getLogger(__name__)

Deliver = Callable[[str, str, dict[str, Any]], Awaitable[None]]


class Broadcaster(Protocol):
    """Deliver *event* to all channels, or to a facility-scoped subset."""

    async def broadcast(
        self,
        event: str,
        payload: dict[str, Any],
        *,
        facility_id: str | None = None,
    ) -> None:
        ...


class LocalBroadcaster:
    """In-process fan-out through a :class:`SubscriptionRegistry`.

    ``deliver(channel, event, payload)`` is supplied by the host (for
    example a websocket server).  A failing delivery is logged and does
    not prevent delivery to the remaining channels.
    """

    def __init__(self, registry: SubscriptionRegistry, deliver: Deliver) -> None:
        self._registry = registry
        self._deliver = deliver

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    async def broadcast(
        self,
        event: str,
        payload: dict[str, Any],
        *,
        facility_id: str | None = None,
    ) -> None:
        channels = sorted(self._registry.subscribers(facility_id))
        if not channels:
            return
        results = await asyncio.gather(
            *(self._deliver(channel, event, payload) for channel in channels),
            return_exceptions=True,
        )
        for channel, result in zip(channels, results, strict=True):
            if isinstance(result, BaseException):
                _logger.warning(
                    "Delivery of %s to channel=%s failed",
                    event,
                    channel,
                    exc_info=(type(result), result, result.__traceback__),
                )

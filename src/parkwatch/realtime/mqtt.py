"""MQTT broadcast transport.

Change events are published as JSON ``{"event": ..., "data": ...}`` to
``<prefix>/all`` for unscoped broadcasts and ``<prefix>/facility/<id>``
for facility-scoped ones.  Remote observers subscribe with ordinary MQTT
topic filters, e.g. ``parkwatch/facility/+`` or ``parkwatch/all``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, cast

import paho.mqtt.client as mqtt

from parkwatch.config import MqttSettings
from parkwatch.exceptions import ParkwatchError


def topic_for(prefix: str, facility_id: str | None) -> str:
    if facility_id is None:
        return f"{prefix}/all"
    return f"{prefix}/facility/{facility_id}"


def encode_message(event: str, payload: dict[str, Any]) -> bytes:
    return json.dumps({"event": event, "data": payload}, separators=(",", ":"), default=str).encode("utf-8")


class MqttBroadcaster:
    """Threaded paho-mqtt publisher implementing the broadcast primitive."""

    def __init__(
        self,
        settings: MqttSettings,
        *,
        on_connect: Callable[[], None] | None = None,
        on_disconnect: Callable[[], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings
        self._on_connect_cb = on_connect
        self._on_disconnect_cb = on_disconnect
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._connected = False

    @property
    def is_running(self) -> bool:
        """Whether the MQTT network loop is active."""
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._connected

    def start(self) -> None:
        """Connect to the broker and start the network loop."""
        self.stop()
        settings = self._settings
        self._logger.debug(
            "MQTT broadcaster start requested host=%s port=%s prefix=%s client_id=%s",
            settings.host,
            settings.port,
            settings.topic_prefix,
            settings.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=settings.client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if settings.use_tls:
            client.tls_set()

        def on_connect(
            _c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._connected = True
            self._logger.debug("MQTT connected successfully reason=%s", reason_code)
            if self._on_connect_cb is not None:
                self._on_connect_cb()

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            self._connected = False
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)
            if self._on_disconnect_cb is not None:
                self._on_disconnect_cb()

        client.on_connect = on_connect
        client.on_disconnect = on_disconnect

        client.connect(settings.host, settings.port, keepalive=settings.keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect the current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._connected = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    async def broadcast(
        self,
        event: str,
        payload: dict[str, Any],
        *,
        facility_id: str | None = None,
    ) -> None:
        client = self._client
        if client is None or not self._running:
            raise ParkwatchError("MQTT broadcaster is not running")
        topic = topic_for(self._settings.topic_prefix, facility_id)
        info = client.publish(topic, encode_message(event, payload), qos=0)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._logger.warning("MQTT publish to %s failed rc=%s", topic, info.rc)
            return
        self._logger.debug("Published %s to %s", event, topic)

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any

import paho.mqtt.client as paho
import pytest

from parkwatch.config import MqttSettings
from parkwatch.exceptions import ParkwatchError
from parkwatch.realtime import ALL_TOPIC, LocalBroadcaster, MqttBroadcaster, SubscriptionRegistry
from parkwatch.realtime.mqtt import encode_message, topic_for

# ----------------------------------------------------------------------
# Registry
# ----------------------------------------------------------------------


def test_subscription_before_connect_is_queued_then_replayed_once() -> None:
    registry = SubscriptionRegistry()

    assert registry.subscribe("c1", "lot-a") is False
    assert registry.subscribe("c1", "lot-a") is False
    assert registry.subscribers("lot-a") == frozenset()

    assert registry.connect("c1") == ["lot-a"]
    assert registry.subscribers("lot-a") == {"c1"}

    registry.disconnect("c1")
    assert registry.connect("c1") == []
    assert registry.subscribers("lot-a") == frozenset()


def test_subscribe_on_connected_channel_applies_immediately() -> None:
    registry = SubscriptionRegistry()
    registry.connect("c1")

    assert registry.subscribe("c1", "lot-a") is True
    assert registry.subscribers("lot-a") == {"c1"}


def test_unsubscribe_on_unconnected_channel_is_noop() -> None:
    registry = SubscriptionRegistry()
    registry.subscribe("c1", "lot-a")

    registry.unsubscribe("c1", "lot-a")

    assert registry.connect("c1") == ["lot-a"]
    assert registry.subscribers("lot-a") == {"c1"}


def test_unsubscribe_removes_connected_subscription() -> None:
    registry = SubscriptionRegistry()
    registry.connect("c1")
    registry.subscribe("c1", "lot-a")

    registry.unsubscribe("c1", "lot-a")
    registry.unsubscribe("c1", "never-subscribed")

    assert registry.subscribers("lot-a") == frozenset()


def test_scoped_subscribers_include_wildcard_channels() -> None:
    registry = SubscriptionRegistry()
    for channel in ("c1", "c2", "c3"):
        registry.connect(channel)
    registry.subscribe("c1", "lot-a")
    registry.subscribe("c2", ALL_TOPIC)

    assert registry.subscribers("lot-a") == {"c1", "c2"}
    assert registry.subscribers("lot-b") == {"c2"}
    assert registry.subscribers() == {"c1", "c2", "c3"}
    assert registry.connected_channels() == {"c1", "c2", "c3"}


# ----------------------------------------------------------------------
# Local broadcaster
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_local_broadcast_isolates_failing_channel(caplog: pytest.LogCaptureFixture) -> None:
    registry = SubscriptionRegistry()
    delivered: list[tuple[str, str, dict[str, Any]]] = []

    async def deliver(channel: str, event: str, payload: dict[str, Any]) -> None:
        if channel == "broken":
            raise ConnectionResetError("socket closed")
        delivered.append((channel, event, payload))

    for channel in ("a", "broken", "z"):
        registry.connect(channel)
    broadcaster = LocalBroadcaster(registry, deliver)

    with caplog.at_level("WARNING"):
        await broadcaster.broadcast("parking-update", {"facilityId": "lot-a", "available": 3})

    assert [c for c, _, _ in delivered] == ["a", "z"]
    assert "channel=broken" in caplog.text


@pytest.mark.asyncio
async def test_local_broadcast_scoped_reaches_only_subscribers() -> None:
    registry = SubscriptionRegistry()
    delivered: list[str] = []

    async def deliver(channel: str, _event: str, _payload: dict[str, Any]) -> None:
        delivered.append(channel)

    registry.connect("watcher")
    registry.connect("bystander")
    registry.subscribe("watcher", "lot-a")

    await LocalBroadcaster(registry, deliver).broadcast("parking-update", {}, facility_id="lot-a")

    assert delivered == ["watcher"]


# ----------------------------------------------------------------------
# MQTT broadcaster
# ----------------------------------------------------------------------


class _FakePahoClient:
    instances: list[_FakePahoClient] = []

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.published: list[tuple[str, bytes, int]] = []
        self.connected_to: tuple[str, int, int] | None = None
        self.loop_started = False
        self.loop_stopped = False
        self.disconnected = False
        self.tls = False
        self.rc = paho.MQTT_ERR_SUCCESS
        self.on_connect: Any = None
        self.on_disconnect: Any = None
        _FakePahoClient.instances.append(self)

    def enable_logger(self, _logger: Any) -> None:
        pass

    def tls_set(self) -> None:
        self.tls = True

    def connect(self, host: str, port: int, keepalive: int) -> None:
        self.connected_to = (host, port, keepalive)

    def loop_start(self) -> None:
        self.loop_started = True

    def loop_stop(self) -> None:
        self.loop_stopped = True

    def disconnect(self) -> None:
        self.disconnected = True

    def publish(self, topic: str, payload: bytes, qos: int) -> SimpleNamespace:
        self.published.append((topic, payload, qos))
        return SimpleNamespace(rc=self.rc)


@pytest.fixture
def fake_paho(monkeypatch: pytest.MonkeyPatch) -> type[_FakePahoClient]:
    _FakePahoClient.instances = []
    monkeypatch.setattr("parkwatch.realtime.mqtt.mqtt.Client", _FakePahoClient)
    return _FakePahoClient


def test_topic_layout() -> None:
    assert topic_for("parkwatch", None) == "parkwatch/all"
    assert topic_for("parkwatch", "osm-1") == "parkwatch/facility/osm-1"


def test_encode_message_envelope() -> None:
    decoded = json.loads(encode_message("parking-update", {"available": 4}))

    assert decoded == {"event": "parking-update", "data": {"available": 4}}


@pytest.mark.asyncio
async def test_mqtt_publishes_to_scoped_and_unscoped_topics(fake_paho: type[_FakePahoClient]) -> None:
    settings = MqttSettings(host="broker", port=1884, topic_prefix="pw", use_tls=True)
    broadcaster = MqttBroadcaster(settings)

    broadcaster.start()
    client = fake_paho.instances[-1]
    await broadcaster.broadcast("parking-update", {"available": 1})
    await broadcaster.broadcast("parking-update", {"available": 2}, facility_id="lot-a")

    assert broadcaster.is_running
    assert client.connected_to == ("broker", 1884, 60)
    assert client.loop_started
    assert client.tls
    assert client.kwargs["client_id"] == "parkwatch-broadcaster"
    assert [topic for topic, _, _ in client.published] == ["pw/all", "pw/facility/lot-a"]
    assert all(qos == 0 for _, _, qos in client.published)


def test_mqtt_connect_callbacks_track_state(fake_paho: type[_FakePahoClient]) -> None:
    events: list[str] = []
    broadcaster = MqttBroadcaster(
        MqttSettings(),
        on_connect=lambda: events.append("up"),
        on_disconnect=lambda: events.append("down"),
    )
    broadcaster.start()
    client = fake_paho.instances[-1]

    client.on_connect(client, None, None, SimpleNamespace(value=0), None)
    assert broadcaster.is_connected
    client.on_disconnect(client, None, None, SimpleNamespace(value=0), None)
    assert not broadcaster.is_connected
    client.on_connect(client, None, None, SimpleNamespace(value=135), None)

    assert events == ["up", "down"]
    assert not broadcaster.is_connected


def test_mqtt_stop_disconnects_and_stops_loop(fake_paho: type[_FakePahoClient]) -> None:
    broadcaster = MqttBroadcaster(MqttSettings())
    broadcaster.start()
    client = fake_paho.instances[-1]

    broadcaster.stop()
    broadcaster.stop()

    assert client.disconnected
    assert client.loop_stopped
    assert not broadcaster.is_running


@pytest.mark.asyncio
async def test_mqtt_broadcast_requires_running_client() -> None:
    with pytest.raises(ParkwatchError, match="not running"):
        await MqttBroadcaster(MqttSettings()).broadcast("parking-update", {})


@pytest.mark.asyncio
async def test_mqtt_publish_failure_is_logged(
    fake_paho: type[_FakePahoClient], caplog: pytest.LogCaptureFixture
) -> None:
    broadcaster = MqttBroadcaster(MqttSettings())
    broadcaster.start()
    fake_paho.instances[-1].rc = paho.MQTT_ERR_NO_CONN

    with caplog.at_level("WARNING"):
        await broadcaster.broadcast("parking-update", {})

    assert "publish to parkwatch/all failed" in caplog.text


def test_pending_queues_are_bounded(caplog: pytest.LogCaptureFixture) -> None:
    registry = SubscriptionRegistry(max_pending_channels=2)

    registry.subscribe("c1", "lot-a")
    registry.subscribe("c2", "lot-a")
    registry.subscribe("c2", "lot-b")
    with caplog.at_level("WARNING"):
        registry.subscribe("c3", "lot-a")

    assert "channel=c1" in caplog.text
    assert registry.connect("c1") == []
    assert registry.connect("c2") == ["lot-a", "lot-b"]
    assert registry.connect("c3") == ["lot-a"]


def test_disconnect_drops_queue_of_unconnected_channel() -> None:
    registry = SubscriptionRegistry()
    registry.subscribe("c1", "lot-a")

    registry.disconnect("c1")

    assert registry.connect("c1") == []

"""Real-time fan-out layer.

Subscribers register interest per facility in the registry; broadcasters
relay change events either in-process or through an MQTT broker.
"""

from parkwatch.realtime.broadcast import Broadcaster, LocalBroadcaster
from parkwatch.realtime.mqtt import MqttBroadcaster
from parkwatch.realtime.registry import ALL_TOPIC, SubscriptionRegistry

__all__ = ["ALL_TOPIC", "Broadcaster", "LocalBroadcaster", "MqttBroadcaster", "SubscriptionRegistry"]

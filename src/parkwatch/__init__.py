"""parkwatch - Async parking occupancy aggregation, forecasting and broadcast."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("parkwatch")
except PackageNotFoundError:
    __version__ = "0+local"
from parkwatch._cache import AreaKey, TieredCache
from parkwatch._transport import MirrorClient
from parkwatch.config import MqttSettings, ParkwatchConfig
from parkwatch.exceptions import (
    FacilityNotFoundError,
    FacilityValidationError,
    ParkwatchConfigError,
    ParkwatchError,
    ParkwatchTransportError,
    UpstreamUnavailableError,
)
from parkwatch.history import HistoryRecorder
from parkwatch.models import (
    AvailabilityUpdate,
    Facility,
    FacilityDraft,
    FacilityStats,
    HistoricalRecord,
    Location,
    Prediction,
    PredictionCacheEntry,
    Sensor,
)
from parkwatch.prediction import PredictionEngine
from parkwatch.realtime import ALL_TOPIC, LocalBroadcaster, MqttBroadcaster, SubscriptionRegistry
from parkwatch.scheduler import BroadcastScheduler
from parkwatch.service import ParkingService
from parkwatch.store import InMemoryRecordStore, RecordStore, seed_demo_facilities

__all__ = [
    "__version__",
    "ALL_TOPIC",
    "AreaKey",
    "AvailabilityUpdate",
    "BroadcastScheduler",
    "Facility",
    "FacilityDraft",
    "FacilityNotFoundError",
    "FacilityStats",
    "FacilityValidationError",
    "HistoricalRecord",
    "HistoryRecorder",
    "InMemoryRecordStore",
    "LocalBroadcaster",
    "Location",
    "MirrorClient",
    "MqttBroadcaster",
    "MqttSettings",
    "ParkingService",
    "ParkwatchConfig",
    "ParkwatchConfigError",
    "ParkwatchError",
    "ParkwatchTransportError",
    "Prediction",
    "PredictionCacheEntry",
    "PredictionEngine",
    "RecordStore",
    "Sensor",
    "SubscriptionRegistry",
    "TieredCache",
    "UpstreamUnavailableError",
    "seed_demo_facilities",
]

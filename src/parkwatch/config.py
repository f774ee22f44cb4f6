"""Service configuration for parkwatch."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable
from typing import Any

from parkwatch._constants import OVERPASS_MIRRORS
from parkwatch.exceptions import ParkwatchConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_cast(key: str, cast: Callable[[str], Any], value: str) -> Any:
    try:
        return cast(value)
    except ValueError as exc:
        raise ParkwatchConfigError(f"Invalid value for {key}: {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class MqttSettings:
    """Broker settings for the optional MQTT broadcast transport."""

    host: str = "localhost"
    port: int = 1883
    topic_prefix: str = "parkwatch"
    keepalive: int = 60
    client_id: str = "parkwatch-broadcaster"
    use_tls: bool = False


@dataclasses.dataclass(frozen=True)
class ParkwatchConfig:
    """Service configuration.

    Parameters
    ----------
    mirrors : tuple of str
        Equivalent Overpass endpoints, tried in round-robin order.
    attempts : int
        Maximum number of upstream attempts per query.
    attempt_timeout : float
        Seconds allowed for each individual attempt.
    backoff_base : float
        Base delay in seconds; attempt ``i`` is followed by
        ``backoff_base * 2**i`` before the next one.
    area_ttl : float
        Seconds an area snapshot stays fresh.
    entity_ttl : float
        Seconds a single-facility snapshot stays fresh.
    max_results : int
        Upper bound on facilities returned for one area query.
    default_lat, default_lng : float
        Search centre used when the caller supplies none.
    default_radius : int
        Search radius in metres used when the caller supplies none.
    prediction_minutes : int
        Default forecast horizon in minutes.
    prediction_cache_ttl : float
        Seconds a memoized forecast remains valid.
    broadcast_period : float
        Seconds between broadcast cycles.
    broadcast_delta : int
        Largest absolute change applied to a facility in one cycle.
    record_probability : float
        Chance that a cycle also captures a history record per facility.
    scoped_broadcast : bool
        Emit change events only to subscribers of the facility (plus the
        wildcard topic) instead of to every connected channel.
    synthesis_seed : int or None
        Seed for synthesized capacity/occupancy.  ``None`` draws one from
        the operating system at service start.
    time_zone : str
        IANA zone used for day-of-week and hour bucketing of history.
    mqtt_enabled : bool
        Publish change events through the MQTT broadcaster.
    mqtt : MqttSettings
        Broker settings.
    """

    mirrors: tuple[str, ...] = OVERPASS_MIRRORS
    attempts: int = 3
    attempt_timeout: float = 25.0
    backoff_base: float = 0.5
    area_ttl: float = 10 * 60
    entity_ttl: float = 60 * 60
    max_results: int = 50
    default_lat: float = 33.4242
    default_lng: float = -111.9281
    default_radius: int = 5000
    prediction_minutes: int = 30
    prediction_cache_ttl: float = 300.0
    broadcast_period: float = 30.0
    broadcast_delta: int = 3
    record_probability: float = 0.17
    scoped_broadcast: bool = False
    synthesis_seed: int | None = None
    time_zone: str = "America/Phoenix"
    mqtt_enabled: bool = False
    mqtt: MqttSettings = dataclasses.field(default_factory=MqttSettings)

    def __post_init__(self) -> None:
        if not self.mirrors:
            raise ParkwatchConfigError("At least one upstream mirror is required")
        if self.attempts < 1:
            raise ParkwatchConfigError(f"attempts must be >= 1, got {self.attempts}")
        if not 0.0 <= self.record_probability <= 1.0:
            raise ParkwatchConfigError(f"record_probability must be within [0, 1], got {self.record_probability}")
        if self.broadcast_period <= 0:
            raise ParkwatchConfigError(f"broadcast_period must be positive, got {self.broadcast_period}")

    @classmethod
    def from_env(cls, **overrides: Any) -> ParkwatchConfig:
        """Create configuration from environment variables.

        Reads optional ``PARKWATCH_*`` variables.  Explicit keyword
        arguments override environment values.
        """
        env = os.environ

        mqtt_kwargs: dict[str, Any] = {}
        _ENV_MQTT_MAP = {
            "PARKWATCH_MQTT_HOST": ("host", str),
            "PARKWATCH_MQTT_PORT": ("port", int),
            "PARKWATCH_MQTT_TOPIC_PREFIX": ("topic_prefix", str),
            "PARKWATCH_MQTT_KEEPALIVE": ("keepalive", int),
            "PARKWATCH_MQTT_CLIENT_ID": ("client_id", str),
        }
        for env_key, (field_name, cast) in _ENV_MQTT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                mqtt_kwargs[field_name] = _env_cast(env_key, cast, val)
        if "PARKWATCH_MQTT_TLS" in env:
            mqtt_kwargs["use_tls"] = _env_bool(env.get("PARKWATCH_MQTT_TLS"), False)

        mqtt_overrides = overrides.pop("mqtt", None)
        if isinstance(mqtt_overrides, dict):
            mqtt_kwargs.update(mqtt_overrides)
        elif isinstance(mqtt_overrides, MqttSettings):
            mqtt_kwargs = dataclasses.asdict(mqtt_overrides)

        config_kwargs: dict[str, Any] = {"mqtt": MqttSettings(**mqtt_kwargs)}

        mirrors_env = env.get("PARKWATCH_MIRRORS")
        if mirrors_env is not None:
            config_kwargs["mirrors"] = tuple(m.strip() for m in mirrors_env.split(",") if m.strip())

        _ENV_NUMERIC_MAP = {
            "PARKWATCH_ATTEMPTS": ("attempts", int),
            "PARKWATCH_ATTEMPT_TIMEOUT": ("attempt_timeout", float),
            "PARKWATCH_BACKOFF_BASE": ("backoff_base", float),
            "PARKWATCH_AREA_TTL": ("area_ttl", float),
            "PARKWATCH_ENTITY_TTL": ("entity_ttl", float),
            "PARKWATCH_DEFAULT_LAT": ("default_lat", float),
            "PARKWATCH_DEFAULT_LNG": ("default_lng", float),
            "PARKWATCH_MAX_RESULTS": ("max_results", int),
            "PARKWATCH_DEFAULT_RADIUS": ("default_radius", int),
            "PARKWATCH_PREDICTION_MINUTES": ("prediction_minutes", int),
            "PARKWATCH_PREDICTION_CACHE_TTL": ("prediction_cache_ttl", float),
            "PARKWATCH_BROADCAST_PERIOD": ("broadcast_period", float),
            "PARKWATCH_BROADCAST_DELTA": ("broadcast_delta", int),
            "PARKWATCH_RECORD_PROBABILITY": ("record_probability", float),
            "PARKWATCH_SYNTHESIS_SEED": ("synthesis_seed", int),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_cast(env_key, cast, val)

        tz_env = env.get("PARKWATCH_TIME_ZONE")
        if tz_env is not None:
            config_kwargs["time_zone"] = tz_env

        if "scoped_broadcast" not in overrides:
            config_kwargs["scoped_broadcast"] = _env_bool(env.get("PARKWATCH_SCOPED_BROADCAST"), False)
        if "mqtt_enabled" not in overrides:
            config_kwargs["mqtt_enabled"] = _env_bool(env.get("PARKWATCH_MQTT_ENABLED"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)

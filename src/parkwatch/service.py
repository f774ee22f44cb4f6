"""High-level async facade consumed by the HTTP layer."""

from __future__ import annotations

import asyncio
import logging
import random
import secrets
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import aiohttp
from pydantic import TypeAdapter, ValidationError

from parkwatch._api.overpass import fetch_area_elements, fetch_id_elements, is_osm_id, to_osm_id
from parkwatch._cache import AreaKey, TieredCache
from parkwatch._constants import FALLBACK_CONFIDENCE, FALLBACK_JITTER, PARKING_UPDATE_EVENT
from parkwatch._transport import MirrorClient, QueryTransport
from parkwatch.config import ParkwatchConfig
from parkwatch.exceptions import (
    FacilityNotFoundError,
    FacilityValidationError,
    ParkwatchConfigError,
    ParkwatchError,
    UpstreamUnavailableError,
)
from parkwatch.history import HistoryRecorder
from parkwatch.ingestion.transform import transform_elements
from parkwatch.models._base import utcnow
from parkwatch.models.facility import AvailabilityUpdate, Facility, FacilityDraft, FacilityStats, Sensor
from parkwatch.models.history import HistoricalRecord
from parkwatch.models.prediction import Prediction, PredictionCacheEntry
from parkwatch.prediction import PredictionEngine
from parkwatch.realtime.broadcast import Broadcaster
from parkwatch.realtime.mqtt import MqttBroadcaster
from parkwatch.scheduler import BroadcastScheduler
from parkwatch.store.base import RecordStore

_logger = logging.getLogger(__name__)

_SENSORS_ADAPTER = TypeAdapter(list[Sensor])

#: Memoized forecasts are reused while they still target at least this far ahead.
_PREDICTION_REUSE_HORIZON = timedelta(minutes=25)
_FALLBACK_LIMIT = 10


def _validation_messages(exc: ValidationError) -> list[str]:
    return [f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}" for err in exc.errors()]


class ParkingService:
    """Aggregate live facility data, forecasts and change broadcasts.

    Usage::

        async with ParkingService(config, store) as service:
            lots = await service.list_nearby(33.4242, -111.9281, 5000)
    """

    def __init__(
        self,
        config: ParkwatchConfig,
        store: RecordStore,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: QueryTransport | None = None,
        broadcaster: Broadcaster | None = None,
        cache: TieredCache | None = None,
        clock: Callable[[], datetime] = utcnow,
        rng: random.Random | None = None,
    ) -> None:
        try:
            self._tz = ZoneInfo(config.time_zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ParkwatchConfigError(f"Unknown time zone: {config.time_zone}") from exc

        self._config = config
        self._store = store
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._broadcaster = broadcaster
        self._owned_mqtt: MqttBroadcaster | None = None
        self._clock = clock
        self._rng = rng or random.Random()
        self._seed = config.synthesis_seed if config.synthesis_seed is not None else secrets.randbits(32)
        self._cache = cache or TieredCache(area_ttl=config.area_ttl, entity_ttl=config.entity_ttl)
        self._recorder = HistoryRecorder(store, self._tz, clock=clock)
        self._engine = PredictionEngine(store, self._tz, clock=clock, rng=self._rng)
        self._scheduler: BroadcastScheduler | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ParkingService:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = MirrorClient(
                self._http_session,
                self._config.mirrors,
                attempts=self._config.attempts,
                timeout=self._config.attempt_timeout,
                backoff_base=self._config.backoff_base,
            )
        if self._broadcaster is None and self._config.mqtt_enabled:
            mqtt_broadcaster = MqttBroadcaster(self._config.mqtt, logger=_logger)
            mqtt_broadcaster.start()
            self._owned_mqtt = mqtt_broadcaster
            self._broadcaster = mqtt_broadcaster
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop_broadcasting()
        if self._owned_mqtt is not None:
            self._owned_mqtt.stop()
            if self._broadcaster is self._owned_mqtt:
                self._broadcaster = None
            self._owned_mqtt = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def tz(self) -> ZoneInfo:
        return self._tz

    @property
    def cache(self) -> TieredCache:
        return self._cache

    @property
    def engine(self) -> PredictionEngine:
        return self._engine

    @property
    def recorder(self) -> HistoryRecorder:
        return self._recorder

    @property
    def scheduler(self) -> BroadcastScheduler | None:
        return self._scheduler

    def _require_transport(self) -> QueryTransport:
        if self._transport is None:
            raise ParkwatchError("Service not initialized. Use 'async with ParkingService(...) as service:'")
        return self._transport

    # ------------------------------------------------------------------
    # Upstream facilities
    # ------------------------------------------------------------------

    async def list_nearby(
        self,
        lat: float | None = None,
        lng: float | None = None,
        radius: int | None = None,
    ) -> list[Facility]:
        """Facilities within *radius* metres, served from cache when fresh.

        Falls back to locally stored facilities when every mirror fails.

        Raises
        ------
        UpstreamUnavailableError
            When the upstream and the local fallback both come up empty.
        """
        lat = self._config.default_lat if lat is None else lat
        lng = self._config.default_lng if lng is None else lng
        radius = self._config.default_radius if radius is None else radius
        key = AreaKey.from_query(lat, lng, radius)

        snapshot = self._cache.read_area(key)
        if snapshot is not None:
            return list(snapshot.facilities)

        transport = self._require_transport()
        try:
            elements = await fetch_area_elements(transport, lat, lng, radius)
        except UpstreamUnavailableError as exc:
            _logger.warning("Upstream unavailable; falling back to stored facilities: %s", exc)
            return await self._fallback_facilities(exc)

        facilities = transform_elements(
            elements,
            seed=self._seed,
            fallback_lat=lat,
            fallback_lng=lng,
            now=self._clock(),
            limit=self._config.max_results,
        )
        self._cache.write_area(key, facilities)
        return facilities

    async def _fallback_facilities(self, cause: UpstreamUnavailableError) -> list[Facility]:
        try:
            stored = await self._store.find_facilities(limit=_FALLBACK_LIMIT)
        except Exception:
            _logger.error("Local fallback failed", exc_info=True)
            stored = []
        if not stored:
            raise UpstreamUnavailableError(
                "Upstream unavailable and no local fallback",
                attempts=cause.attempts,
                last_error=cause.last_error,
            ) from cause
        return [
            facility.model_copy(
                update={
                    "predicted_availability": facility.clamp_spots(
                        facility.available_spots + self._rng.randint(-FALLBACK_JITTER, FALLBACK_JITTER - 1)
                    ),
                    "confidence": FALLBACK_CONFIDENCE,
                }
            )
            for facility in stored
        ]

    async def _get_upstream(self, facility_id: str) -> Facility:
        cached = self._cache.read_entity(facility_id)
        if cached is not None:
            return cached

        indexed = self._cache.find_in_area(facility_id)
        if indexed is not None:
            self._cache.write_entity(facility_id, indexed)
            return indexed

        elements = await fetch_id_elements(self._require_transport(), facility_id)
        facilities = transform_elements(
            elements,
            seed=self._seed,
            fallback_lat=self._config.default_lat,
            fallback_lng=self._config.default_lng,
            now=self._clock(),
            limit=1,
        )
        if not facilities:
            raise FacilityNotFoundError(facility_id)
        facility = facilities[0]
        self._cache.write_entity(facility_id, facility)
        return facility

    # ------------------------------------------------------------------
    # Single facility
    # ------------------------------------------------------------------

    async def get_by_id(self, facility_id: str) -> Facility:
        """Return one facility.

        Upstream ids (``osm-<n>`` or bare digits) go through the entity
        tier, then the area index, then an id-scoped upstream query.
        Stored facilities are returned with a fresh forecast attached.
        """
        if is_osm_id(facility_id):
            return await self._get_upstream(to_osm_id(facility_id))

        facility = await self._store.find_facility(facility_id)
        if facility is None:
            raise FacilityNotFoundError(facility_id)
        prediction = await self._engine.predict(facility_id, self._config.prediction_minutes)
        return facility.model_copy(
            update={
                "predicted_availability": prediction.predicted_spots,
                "confidence": prediction.confidence,
            }
        )

    async def create_facility(self, payload: FacilityDraft | Mapping[str, Any]) -> Facility:
        if isinstance(payload, FacilityDraft):
            draft = payload
        else:
            try:
                draft = FacilityDraft.model_validate(payload)
            except ValidationError as exc:
                raise FacilityValidationError("Invalid facility payload", errors=_validation_messages(exc)) from exc
        facility = await self._store.create_facility(draft, now=self._clock())
        _logger.debug("Created facility id=%s name=%s", facility.id, facility.name)
        return facility

    async def update_availability(
        self,
        facility_id: str,
        available: int,
        sensors: Sequence[Sensor | Mapping[str, Any]] | None = None,
    ) -> Facility:
        """Set the live availability, record history and broadcast the change."""
        facility = await self._store.find_facility(facility_id)
        if facility is None:
            raise FacilityNotFoundError(facility_id)
        if isinstance(available, bool) or not isinstance(available, int):
            raise FacilityValidationError(f"available must be an integer, got {available!r}")
        if not 0 <= available <= facility.total_spots:
            raise FacilityValidationError(
                f"available must be within [0, {facility.total_spots}], got {available}"
            )

        changes: dict[str, Any] = {"available_spots": available, "last_update": self._clock()}
        if sensors is not None:
            try:
                changes["sensors"] = _SENSORS_ADAPTER.validate_python(list(sensors))
            except ValidationError as exc:
                raise FacilityValidationError("Invalid sensors payload", errors=_validation_messages(exc)) from exc

        updated = await self._store.update_facility(facility_id, changes)
        if updated is None:
            raise FacilityNotFoundError(facility_id)

        # The write has landed; capture and broadcast failures only get logged.
        try:
            await self._recorder.record_current_state(facility_id)
        except Exception:
            _logger.warning("History capture failed for facility id=%s", facility_id, exc_info=True)
        if self._broadcaster is not None:
            update = AvailabilityUpdate(
                facility_id=updated.id,
                available=updated.available_spots,
                timestamp=updated.last_update,
            )
            try:
                await self._broadcaster.broadcast(
                    PARKING_UPDATE_EVENT,
                    update.to_wire(),
                    facility_id=updated.id if self._config.scoped_broadcast else None,
                )
            except Exception:
                _logger.warning("Broadcast of update failed for facility id=%s", updated.id, exc_info=True)
        return updated

    async def predict(self, facility_id: str, minutes_ahead: int | None = None) -> Prediction:
        minutes = self._config.prediction_minutes if minutes_ahead is None else minutes_ahead
        if minutes < 0:
            raise FacilityValidationError(f"minutes_ahead must be non-negative, got {minutes}")
        return await self._engine.predict(facility_id, minutes)

    async def history(self, facility_id: str, limit: int = 100) -> list[HistoricalRecord]:
        """Most recent history records, newest first."""
        if limit < 1:
            raise FacilityValidationError(f"limit must be positive, got {limit}")
        if await self._store.find_facility(facility_id) is None:
            raise FacilityNotFoundError(facility_id)
        return await self._store.find_history(facility_id, limit=limit)

    async def stats(self) -> FacilityStats:
        return FacilityStats.from_facilities(await self._store.find_facilities())

    # ------------------------------------------------------------------
    # Stored facilities with memoized forecasts
    # ------------------------------------------------------------------

    async def list_tracked(self) -> list[Facility]:
        """Every stored facility decorated with a memoized forecast."""
        facilities = await self._store.find_facilities()
        return list(await asyncio.gather(*(self._with_memoized_prediction(f) for f in facilities)))

    async def _with_memoized_prediction(self, facility: Facility) -> Facility:
        now = self._clock()
        entry = await self._store.find_unexpired_prediction(
            facility.id,
            predicted_for_after=now + _PREDICTION_REUSE_HORIZON,
            now=now,
        )
        if entry is None:
            prediction = await self._engine.predict(facility.id, self._config.prediction_minutes)
            entry = await self._store.create_prediction(
                PredictionCacheEntry(
                    facility_id=facility.id,
                    predicted_spots=prediction.predicted_spots,
                    confidence=prediction.confidence,
                    predicted_for=prediction.predicted_for,
                    created_at=now,
                    expires_at=now + timedelta(seconds=self._config.prediction_cache_ttl),
                )
            )
        return facility.model_copy(
            update={
                "predicted_availability": entry.predicted_spots,
                "confidence": entry.confidence,
            }
        )

    # ------------------------------------------------------------------
    # Broadcast lifecycle
    # ------------------------------------------------------------------

    def start_broadcasting(self, *, rng: random.Random | None = None) -> BroadcastScheduler:
        """Start the periodic broadcast job (idempotent)."""
        if self._broadcaster is None:
            raise ParkwatchConfigError("No broadcaster configured; pass one or enable MQTT")
        if self._scheduler is None:
            self._scheduler = BroadcastScheduler(
                self._store,
                self._broadcaster,
                self._recorder,
                period=self._config.broadcast_period,
                max_delta=self._config.broadcast_delta,
                record_probability=self._config.record_probability,
                scoped=self._config.scoped_broadcast,
                rng=rng or self._rng,
                clock=self._clock,
            )
        self._scheduler.start()
        return self._scheduler

    async def stop_broadcasting(self) -> None:
        if self._scheduler is not None:
            await self._scheduler.stop()

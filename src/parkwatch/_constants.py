"""Internal constants shared across the library."""

OVERPASS_MIRRORS: tuple[str, ...] = (
    "https://overpass-api.de/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
    "https://overpass.openstreetmap.ru/api/interpreter",
)
USER_AGENT = "parkwatch/0.1 (+aiohttp)"

#: Identifier prefix marking facilities that originate from OpenStreetMap.
OSM_PREFIX = "osm-"

#: Server-side query timeout embedded in every Overpass query (seconds).
OVERPASS_QUERY_TIMEOUT = 25

# Event name relayed to subscribers when a facility's availability changes.
PARKING_UPDATE_EVENT = "parking-update"

# ------------------------------------------------------------------
# Synthesis of missing capacity/occupancy for upstream facilities
# ------------------------------------------------------------------

SYNTH_CAPACITY_MIN = 50
SYNTH_CAPACITY_SPAN = 200
SYNTH_OCCUPANCY_BASE = 0.3
SYNTH_OCCUPANCY_SPAN = 0.5
SYNTH_PREDICTION_JITTER = 10
SYNTH_CONFIDENCE_BASE = 85
SYNTH_CONFIDENCE_SPAN = 10

# ------------------------------------------------------------------
# Prediction weights and confidence band
# ------------------------------------------------------------------

PATTERN_WEIGHT = 0.6
CURRENT_WEIGHT = 0.3
TREND_WEIGHT = 0.1
PATTERN_SAMPLE_LIMIT = 20
TREND_SAMPLE_LIMIT = 6
CONFIDENCE_FLOOR = 70
CONFIDENCE_CEILING = 95
NO_DATA_CONFIDENCE = 60
NO_DATA_JITTER = 5

#: Confidence reported for facilities served from the local fallback.
FALLBACK_CONFIDENCE = 90
FALLBACK_JITTER = 10

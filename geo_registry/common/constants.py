"""Application constants."""

USER_AGENT = "geo-registry/1.0 (+location-intelligence; contact: configured-email)"

# Meters per degree of arc at the equator. Every meters -> degrees conversion
# (radius prefilter, DBSCAN eps) goes through this one value.
METERS_PER_DEGREE = 111320.0

CONFIDENCE_FIELDS = (
    "house_number",
    "road",
    "city",
    "state",
    "postcode",
    "country",
)

DEFAULT_SOURCES = {
    "forward": "nominatim",
    "reverse": "nominatim_reverse",
    "batch": "nominatim_batch",
}

EXIT_SUCCESS = 0
EXIT_INVALID_INPUT = 2
EXIT_NOT_FOUND = 4
EXIT_PROVIDER_UNAVAILABLE = 5
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20

JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "component",
    "operation",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "items_in",
    "items_out",
    "error_code",
    "message",
)

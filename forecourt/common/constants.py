"""Application constants."""

USER_AGENT = "forecourt-prices/1.0 (+fuel price aggregation; contact: configured-email)"
STAGES = (
    "harvest",
    "reconcile",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "retailer",
    "source",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)

# Probed in order before falling back to the first list-valued key.
RECORD_LIST_KEYS = (
    "stations",
    "data",
    "results",
    "fuel_prices",
    "items",
    "sites",
    "locations",
    "stores",
    "forecourts",
)

# Compared against brand names after normalise_key().
SUPERMARKET_BRANDS = frozenset({"ASDA", "TESCO", "SAINSBURYS", "MORRISONS"})

EARTH_RADIUS_KM = 6371.0
KM_TO_MILES = 0.621371

PROXY_SUMMARY_KEY = "_summary"

RAW_DIRECTORY = "raw/directory.json"
RAW_FEEDS_DIR = "raw/feeds"

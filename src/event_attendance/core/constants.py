"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_CHECK_IN_OPENS_BEFORE_MINUTES = 120
DEFAULT_CHECK_IN_CLOSES_AFTER_MINUTES = 60
DEFAULT_BULK_CHECKIN_DELAY_SECONDS = 0.05

DEFAULT_CACHE_KEY_PREFIX = "sem:"
DEFAULT_CACHE_TTL_SECONDS = 3600
SUMMARY_CACHE_TTL_SECONDS = 300
REPORT_CACHE_TTL_SECONDS = 600
ANALYTICS_CACHE_TTL_SECONDS = 900
USER_HISTORY_CACHE_TTL_SECONDS = 300

DEFAULT_QR_MAX_AGE_SECONDS = 24 * 60 * 60
REALTIME_CHECKIN_LIMIT = 50
DEFAULT_HISTORY_PAGE_SIZE = 20
MAX_RECORDED_DURATION_MINUTES = 24 * 60

UNKNOWN_GROUP = "Other"

import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "event_attendance_test"),
}

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/15")
CACHE_KEY_PREFIX = "sem-test:"

CHECK_IN_OPENS_BEFORE_MINUTES = 120
CHECK_IN_CLOSES_AFTER_MINUTES = 60

BULK_CHECKIN_DELAY_SECONDS = 0.0
QR_MAX_AGE_SECONDS = 60 * 60

LOG_LEVEL = "WARNING"
LOG_FILE = ""

DEBUG = False
TESTING = True

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "event_attendance"),
}

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
CACHE_KEY_PREFIX = os.getenv("CACHE_KEY_PREFIX", "sem:")

# Check-in window around the event schedule
CHECK_IN_OPENS_BEFORE_MINUTES = int(os.getenv("CHECK_IN_OPENS_BEFORE_MINUTES", "120"))
CHECK_IN_CLOSES_AFTER_MINUTES = int(os.getenv("CHECK_IN_CLOSES_AFTER_MINUTES", "60"))

BULK_CHECKIN_DELAY_SECONDS = float(os.getenv("BULK_CHECKIN_DELAY_SECONDS", "0.05"))
QR_MAX_AGE_SECONDS = int(os.getenv("QR_MAX_AGE_SECONDS", str(24 * 60 * 60)))

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
LOG_FILE = os.getenv("LOG_FILE", "")

DEBUG = True

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Optional: also seed demo data on startup
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

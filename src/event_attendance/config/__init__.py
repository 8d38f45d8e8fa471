import os


def get_settings_module() -> str:
    # APP_ENV chooses the settings module, development by default
    env = os.getenv("APP_ENV", "development").lower()

    if env in {"prod", "production"}:
        return "event_attendance.config.production"

    if env in {"test", "testing"}:
        return "event_attendance.config.testing"

    return "event_attendance.config.development"

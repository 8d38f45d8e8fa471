"""Example: use the service layer directly (without Flask).

Controllers are a thin layer; the attendance rules live in the services.
"""

import importlib
import json
import sys

from event_attendance.config import get_settings_module
from event_attendance.container import build_container
from event_attendance.core.exceptions import DomainError


def main(registration_id: int) -> None:
    settings = importlib.import_module(get_settings_module())
    container = build_container(
        db_config=settings.DB_CONFIG,
        redis_url=settings.REDIS_URL,
        secret_key=settings.SECRET_KEY,
    )

    try:
        registration = container.attendance_service.check_in(registration_id)
    except DomainError as e:
        print(json.dumps({"error": e.to_dict()}))
        return

    print(json.dumps(registration.to_dict(), indent=2))
    print(json.dumps(container.report_service.get_attendance_summary(registration.event_id), indent=2))


if __name__ == "__main__":
    main(int(sys.argv[1]) if len(sys.argv) > 1 else 1)

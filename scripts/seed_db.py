from __future__ import annotations

import importlib
import logging
from pathlib import Path

from event_attendance.config import get_settings_module
from event_attendance.database.bootstrap import apply_seed_sql, ensure_demo_registrations

logger = logging.getLogger("seed_db")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)

    seed_path = Path(__file__).resolve().parents[1] / "database" / "seed.sql"
    apply_seed_sql(db_config, seed_path=seed_path)
    created = ensure_demo_registrations(db_config)

    logger.info(
        "Seeded database -> %s@%s:%s/%s (%d new registrations)",
        db_config.get("user"), db_config.get("host"), db_config.get("port", 3306), db_config.get("database"), created,
    )


if __name__ == "__main__":
    main()

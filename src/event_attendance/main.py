from __future__ import annotations

import importlib
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from types import ModuleType
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .attendance.controller import register as register_attendance
from .config import get_settings_module
from .container import Container, build_container
from .core.exceptions import DomainError
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_registrations, list_tables
from .reports.controller import register as register_reports

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    "not_found": 404,
    "validation": 400,
    "permission": 403,
    "internal": 500,
}

DATABASE_DIR = Path(__file__).resolve().parents[2] / "database"


def setup_logging(level: str = "INFO", log_file: str = "") -> None:
    """Console logging plus an optional rotating file."""

    log_format = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler) for h in root.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(log_format)
        root.addHandler(console_handler)

    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
        file_handler.setFormatter(log_format)
        file_handler.setLevel(logging.INFO)
        root.addHandler(file_handler)

    # Connector and Redis chatter is noise at DEBUG
    logging.getLogger("mysql.connector").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(e: DomainError):
        return jsonify({"success": False, "error": e.to_dict()}), STATUS_BY_KIND.get(e.kind, 500)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return jsonify({"success": False, "error": {"kind": "http", "message": e.description}}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.error("Unhandled exception: %s", e, exc_info=True)
        return jsonify({"success": False, "error": {"kind": "internal", "message": "internal error"}}), 500


def _bootstrap_database(settings: ModuleType, db_config: dict) -> None:
    if bool(getattr(settings, "AUTO_INIT_DB", False)):
        apply_schema(db_config, schema_path=DATABASE_DIR / "schema.sql")
        logger.info("Schema ready (tables=%d)", len(list_tables(db_config)))
    if bool(getattr(settings, "AUTO_SEED_DB", False)):
        apply_seed_sql(db_config, seed_path=DATABASE_DIR / "seed.sql")
        ensure_demo_registrations(db_config)
        logger.info("Demo seed ready")


def create_app(container: Optional[Container] = None, *, settings_module: Optional[str] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    setup_logging(getattr(settings, "LOG_LEVEL", "INFO"), getattr(settings, "LOG_FILE", ""))
    logger.info("Starting event attendance service with settings=%s", settings_module)

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        _bootstrap_database(settings, db_config)
        container = build_container(
            db_config=db_config,
            redis_url=getattr(settings, "REDIS_URL"),
            secret_key=app.secret_key,
            cache_key_prefix=getattr(settings, "CACHE_KEY_PREFIX", "sem:"),
            check_in_opens_before_minutes=getattr(settings, "CHECK_IN_OPENS_BEFORE_MINUTES", 120),
            check_in_closes_after_minutes=getattr(settings, "CHECK_IN_CLOSES_AFTER_MINUTES", 60),
            bulk_delay_seconds=getattr(settings, "BULK_CHECKIN_DELAY_SECONDS", 0.05),
            qr_max_age_seconds=getattr(settings, "QR_MAX_AGE_SECONDS", 24 * 60 * 60),
        )

    app.extensions["container"] = container
    register_error_handlers(app)
    register_attendance(app, container)
    register_reports(app, container)

    return app

"""WSGI entry point: ``gunicorn app:app`` or ``python app.py``."""

import os

from event_attendance.main import create_app

app = create_app()


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=app.config["DEBUG"])

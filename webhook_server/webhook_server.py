from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from functools import wraps
from pathlib import Path
from threading import Lock

from dotenv import load_dotenv
from flask import Flask, jsonify, request

logger = logging.getLogger(__name__)

# Load .env from EXE directory (so it stays editable in production)
EXE_DIR = Path(sys.executable).resolve().parent if getattr(sys, "frozen", False) else Path(__file__).resolve().parent
load_dotenv(EXE_DIR / ".env")

app = Flask(__name__)

EXPECTED_TOKEN = os.getenv("WEBHOOK_TOKEN", "dev-token")
MAX_EVENTS = 500

EVENTS: list[dict] = []
_EVENTS_LOCK = Lock()


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def require_bearer(fn):
    """Reject requests without ``Authorization: Bearer <WEBHOOK_TOKEN>``."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            token = auth.removeprefix("Bearer ").strip()
            if token == EXPECTED_TOKEN:
                return fn(*args, **kwargs)
            return jsonify({"error": "invalid token"}), 403

        return jsonify({"error": "unauthorized"}), 401
    return wrapper


@app.post("/notifications")
@require_bearer
def notifications():
    """Receive one detector notification and log it."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "expected a JSON object"}), 400

    entry = {
        "received_at": _now_iso(),
        "event_type": request.headers.get("X-Event-Type"),
        "key": request.headers.get("X-Detector-Key"),
        "body": data,
    }
    with _EVENTS_LOCK:
        EVENTS.append(entry)
        if len(EVENTS) > MAX_EVENTS:
            del EVENTS[:-MAX_EVENTS]

    action = data.get("action")
    if not isinstance(action, dict):
        action = {}
    logger.info(
        "Notification received: type=%s key=%s event=%s",
        entry["event_type"], entry["key"], action.get("eventName"),
    )
    logger.debug("Notification body: %s", data)

    return jsonify({"status": "ok"}), 200


@app.get("/api/notifications/recent")
@require_bearer
def api_recent():
    with _EVENTS_LOCK:
        recent = list(reversed(EVENTS[-200:]))
        count = len(EVENTS)
    return jsonify({"count": count, "events": recent}), 200


@app.get("/health")
def health():
    return jsonify({"status": "ok"}), 200


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    # IMPORTANT for EXE: do NOT use debug=True in production
    app.run(host="0.0.0.0", port=8000, debug=False)

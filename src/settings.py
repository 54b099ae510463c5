"""Static configuration for newsflash.

All user-editable settings (database, delivery pacing, schedule, notifications,
logging) live in a single JSON file for quick edits without touching Python.
Secrets (bot token, API credentials) stay in the environment / .env.
"""

import json
import os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# config.json sits at the project root; NEWSFLASH_CONFIG overrides the path.
CONFIG_PATH = os.getenv("NEWSFLASH_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Where to store the SQLite database.
_database = _CONFIG.get("database", {})
DB_PATH = _resolve_path(_database.get("path", "newsflash.db"))

# Delivery pacing: page size for users and queued items, and the pause
# between pages that keeps the store and the channel from being flooded.
_delivery = _CONFIG.get("delivery", {})
BATCH_SIZE = int(_delivery.get("batch_size", 1000))
BATCH_DELAY_SECONDS = int(_delivery.get("batch_delay_ms", 1000)) / 1000.0
# Base URL of the read server; cards link to <base>/<feed_id>/<article_id>/<user_id>.
READ_SERVER_BASE_URL = _delivery.get("read_server_base_url", "")

# How often the breaking news pass runs.
_schedule = _CONFIG.get("schedule", {})
RUN_EVERY_SECONDS = float(_schedule.get("run_every_seconds", 60))

# Notification method switches adapters without changing core logic.
_notifications = _CONFIG.get("notifications", {})
NOTIFICATION_METHOD = _notifications.get("notification_method", "bot")
ALERT_TEXT = _notifications.get("alert_text", "Breaking news!")
SEND_TIMEOUT_SECONDS = float(_notifications.get("timeout_seconds", 10))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})

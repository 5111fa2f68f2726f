"""Constants used across the print-relay package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "print-relay"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_DIR = Path.home() / f".{APP_NAME}"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILENAME

DEFAULT_LOG_PATH = DEFAULT_CONFIG_DIR / "logs" / f"{APP_NAME}.log"

DEFAULT_SERVER_URL = "ws://localhost:8080"
DEFAULT_SERVERS = {
    "production": "wss://relay.print-relay.io",
    "staging": "wss://staging.relay.print-relay.io",
    "local": DEFAULT_SERVER_URL,
}

REGISTER_PATH = "/api/printers/agents/register"
RELAY_WS_PATH = "/ws/print-agent"

DEFAULT_PAPER_WIDTH_MM = 80.0
DEFAULT_PAPER_HEIGHT_MM = 150.0

DEFAULT_HEARTBEAT_INTERVAL_SECONDS = 30.0
DEFAULT_RECONNECT_DELAY_SECONDS = 5.0

from __future__ import annotations

import logging
from datetime import datetime, timezone

import requests

logger = logging.getLogger(__name__)

TELEMETRY_TIMEOUT = 2  # seconds


def emit_event(config: dict, name: str, **fields) -> None:
    """Send one event to the configured telemetry endpoint.

    Best effort: does nothing without ``telemetry_url`` and never raises.
    """
    url = config.get("telemetry_url")
    if not url:
        return
    payload = {"event": name, "timestamp": datetime.now(timezone.utc).isoformat(), **fields}
    try:
        response = requests.post(url, json=payload, timeout=TELEMETRY_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.debug("Telemetry event %s not delivered: %s", name, e)

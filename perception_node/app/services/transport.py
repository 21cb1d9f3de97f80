"""Publishers delivering reports and previews to downstream consumers."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Protocol

import requests

from ..errors import PublishError

LOGGER = logging.getLogger(__name__)

REPORT_TOPIC = "detections"
PREVIEW_TOPIC = "image/compressed"


class Publisher(Protocol):
    def publish(self, topic: str, payload: bytes, metadata: Optional[Mapping[str, str]] = None) -> None:
        ...

    def close(self) -> None:
        ...


def preview_metadata(frame_id: int, timestamp: Optional[datetime] = None) -> Dict[str, str]:
    """Header fields attached to a compressed preview image."""

    stamp = timestamp or datetime.now(timezone.utc)
    return {
        "format": "jpeg",
        "timestamp": stamp.isoformat(timespec="milliseconds"),
        "frame_id": str(frame_id),
    }


class LogPublisher:
    """Writes publications to the log; used when no endpoint is configured."""

    def publish(self, topic: str, payload: bytes, metadata: Optional[Mapping[str, str]] = None) -> None:
        if topic == PREVIEW_TOPIC or (metadata and metadata.get("format") == "jpeg"):
            LOGGER.info("Publishing %s: <%d bytes> %s", topic, len(payload), dict(metadata or {}))
            return
        LOGGER.info("Publishing %s: '%s'", topic, payload.decode("utf-8", errors="replace"))

    def close(self) -> None:
        return None


class HttpPublisher:
    """POSTs each publication to ``{endpoint}/topics/{topic}`` of a report relay.

    A failed delivery is reported once; the node does not retry.
    """

    def __init__(self, endpoint: str, timeout: float = 5.0, session: Optional[requests.Session] = None) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def publish(self, topic: str, payload: bytes, metadata: Optional[Mapping[str, str]] = None) -> None:
        url = f"{self.endpoint}/topics/{topic}"
        headers = {f"X-{key.replace('_', '-').title()}": value for key, value in (metadata or {}).items()}
        headers["Content-Type"] = "image/jpeg" if (metadata or {}).get("format") == "jpeg" else "application/json"
        try:
            response = self._session.post(url, data=payload, headers=headers, timeout=self.timeout)
            if response.status_code >= 400:
                raise requests.HTTPError(f"Received status {response.status_code}")
        except requests.RequestException as exc:
            raise PublishError(f"Failed to publish to {url}: {exc}") from exc
        LOGGER.debug("Delivered %d bytes to %s", len(payload), url)

    def close(self) -> None:
        self._session.close()

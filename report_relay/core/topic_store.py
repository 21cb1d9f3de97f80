from collections import deque
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Any, Deque, Dict, List, Optional

from report_relay.core.models import TopicMessage, TopicSummary


@dataclass
class StoredMessage:
    meta: TopicMessage
    payload: bytes


class TopicStore:
    """Keep the most recent messages published on each topic."""

    def __init__(self, history_size: int = 50) -> None:
        self.history_size = max(history_size, 1)
        self._topics: Dict[str, Deque[StoredMessage]] = {}
        self._counts: Dict[str, int] = {}
        self._lock = Lock()

    def append(self, topic: str, payload: bytes, received_at: datetime, **fields: Any) -> TopicMessage:
        """Store a message and return its metadata with the assigned sequence number."""

        with self._lock:
            sequence = self._counts.get(topic, 0) + 1
            meta = TopicMessage(
                topic=topic,
                sequence=sequence,
                received_at=received_at,
                size=len(payload),
                **fields,
            )
            history = self._topics.setdefault(topic, deque(maxlen=self.history_size))
            history.append(StoredMessage(meta=meta, payload=payload))
            self._counts[topic] = sequence
        return meta

    def latest(self, topic: str) -> Optional[StoredMessage]:
        with self._lock:
            history = self._topics.get(topic)
            if not history:
                return None
            return history[-1]

    def history(self, topic: str, limit: Optional[int] = None) -> List[TopicMessage]:
        with self._lock:
            items = [item.meta for item in self._topics.get(topic, ())]
        if limit is not None:
            items = items[-limit:]
        return items

    def summaries(self) -> List[TopicSummary]:
        with self._lock:
            return [
                TopicSummary(
                    topic=topic,
                    messages=self._counts.get(topic, 0),
                    last_received_at=history[-1].meta.received_at if history else None,
                )
                for topic, history in sorted(self._topics.items())
            ]

    def reset(self) -> None:
        with self._lock:
            self._topics.clear()
            self._counts.clear()

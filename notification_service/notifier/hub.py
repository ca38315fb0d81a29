"""
In-memory store behind the notification service.

Notifications are kept in an outbox (SMS delivery itself is done by the
provider integration and is not part of this service). Real-time events are
appended to a bounded per-topic feed that UI clients poll with a cursor.

Everything is bounded: the outbox keeps the newest ``outbox_size`` messages
and at most ``max_topics`` feeds are kept, the least recently written one
is dropped first.
"""

import itertools
import logging
import threading
from collections import OrderedDict, deque
from typing import Any, Deque, Dict, List

from .messages import render_message

logger = logging.getLogger(__name__)


class EventHub:
    def __init__(
        self,
        feed_size: int = 500,
        deadline_days: int = 7,
        outbox_size: int = 1000,
        max_topics: int = 1000,
    ) -> None:
        self.feed_size = feed_size
        self.deadline_days = deadline_days
        self.max_topics = max_topics
        self._lock = threading.Lock()
        self._sequence = itertools.count(1)
        self._feeds: "OrderedDict[str, Deque[Dict[str, Any]]]" = OrderedDict()
        self.outbox: Deque[Dict[str, Any]] = deque(maxlen=outbox_size)

    def emit(self, topic: str, event: str, payload: Dict[str, Any]) -> int:
        with self._lock:
            seq = next(self._sequence)
            feed = self._feeds.get(topic)
            if feed is None:
                feed = self._feeds[topic] = deque(maxlen=self.feed_size)
            else:
                self._feeds.move_to_end(topic)
            feed.append({"seq": seq, "event": event, "payload": payload})

            while len(self._feeds) > self.max_topics:
                dropped, _ = self._feeds.popitem(last=False)
                logger.debug("Dropped feed %s", dropped)
        logger.debug("Emitted %s on %s (seq=%s)", event, topic, seq)
        return seq

    def events_since(self, topic: str, cursor: int = 0) -> List[Dict[str, Any]]:
        with self._lock:
            return [entry for entry in self._feeds.get(topic, ()) if entry["seq"] > cursor]

    @property
    def topics(self) -> List[str]:
        with self._lock:
            return list(self._feeds)

    def notify(self, kind: str, recipient_id: int, context: Dict[str, Any]) -> Dict[str, Any]:
        message = {
            "kind": kind,
            "recipient_id": recipient_id,
            "phone": context.get("recipient_phone", ""),
            "text": render_message(kind, context, deadline_days=self.deadline_days),
        }
        with self._lock:
            self.outbox.append(message)
        logger.info("Queued %s notification for member %s", kind, recipient_id)
        return message

"""
Outbound collaborators of the bidding core.

``Broadcaster`` pushes real-time events to everyone watching an auction
topic; ``Notifier`` sends a message to one member. Both are fire-and-forget
and are only ever called after a transaction has committed.
"""

from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings


class Broadcaster:
    def emit(self, topic: str, event: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class Notifier:
    def notify(self, kind: str, recipient_id: int, context: Dict[str, Any]) -> None:
        raise NotImplementedError


class MemoryChannel(Broadcaster, Notifier):
    """Keeps everything in lists. Used by tests and local runs without the notification service."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []
        self.notifications: List[Tuple[str, int, Dict[str, Any]]] = []

    def emit(self, topic: str, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((topic, event, payload))

    def notify(self, kind: str, recipient_id: int, context: Dict[str, Any]) -> None:
        self.notifications.append((kind, recipient_id, context))

    def events_named(self, event: str) -> List[Dict[str, Any]]:
        return [payload for _, name, payload in self.events if name == event]

    def notifications_of(self, kind: str) -> List[Tuple[int, Dict[str, Any]]]:
        return [(recipient, ctx) for name, recipient, ctx in self.notifications if name == kind]

    def clear(self) -> None:
        self.events.clear()
        self.notifications.clear()


_channel: Optional[Any] = None


def auction_topic(auction_id: int) -> str:
    return f"auction-{auction_id}"


def get_channel():
    global _channel
    if _channel is None:
        backend = getattr(settings, "BIDDING_CHANNEL_BACKEND", "rpyc")
        if backend == "memory":
            _channel = MemoryChannel()
        elif backend == "rpyc":
            from .notifier_client import NotificationClient

            _channel = NotificationClient(
                host=settings.NOTIFICATION_SERVICE_HOST,
                port=settings.NOTIFICATION_SERVICE_PORT,
            )
        else:
            raise ValueError(f"Unknown BIDDING_CHANNEL_BACKEND {backend!r}")
    return _channel


def reset_channel() -> None:
    global _channel
    _channel = None

import json
import logging
import os

import rpyc
from rpyc.utils.server import ThreadedServer

from notifier import EventHub

logger = logging.getLogger(__name__)


class NotificationService(rpyc.Service):
    """
    RPyC service receiving notifications and real-time events from the
    auction service. Payloads arrive as JSON text.
    Methods must be exposed_* to be callable remotely.
    """

    def __init__(self, hub: EventHub) -> None:
        super().__init__()
        self.hub = hub

    def exposed_emit(self, topic: str, event: str, payload_json: str) -> int:
        return self.hub.emit(str(topic), str(event), json.loads(payload_json))

    def exposed_notify(self, kind: str, recipient_id: int, context_json: str) -> str:
        message = self.hub.notify(str(kind), int(recipient_id), json.loads(context_json))
        return message["text"]

    def exposed_events_since(self, topic: str, cursor: int = 0) -> str:
        return json.dumps(self.hub.events_since(str(topic), int(cursor)))


def run_server(host: str = "localhost", port: int = 18861) -> None:
    hub = EventHub(
        deadline_days=int(os.environ.get("APPROVAL_DEADLINE_DAYS", "7")),
        outbox_size=int(os.environ.get("NOTIFICATION_OUTBOX_SIZE", "1000")),
        max_topics=int(os.environ.get("NOTIFICATION_MAX_TOPICS", "1000")),
    )
    server = ThreadedServer(NotificationService(hub), hostname=host, port=port)
    logger.info("RPyC NotificationService listening on %s:%s", host, port)
    server.start()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    run_server(
        host=os.environ.get("NOTIFICATION_SERVICE_HOST", "localhost"),
        port=int(os.environ.get("NOTIFICATION_SERVICE_PORT", "18861")),
    )

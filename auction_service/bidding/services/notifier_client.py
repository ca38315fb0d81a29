import json

import rpyc
from django.core.serializers.json import DjangoJSONEncoder

from .channels import Broadcaster, Notifier


class NotificationClient(Broadcaster, Notifier):
    """
    Thin RPyC client used by the bidding services to talk
    to the Notification Service.

    Payloads cross the wire as JSON text so the server never holds
    netrefs into this process.
    """

    def __init__(self, host: str = "localhost", port: int = 18861) -> None:
        self.host = host
        self.port = port
        self._conn = None

    def _get_connection(self):
        if self._conn is None or self._conn.closed:
            self._conn = rpyc.connect(self.host, self.port)
        return self._conn

    def emit(self, topic: str, event: str, payload: dict) -> None:
        conn = self._get_connection()
        conn.root.emit(topic, event, json.dumps(payload, cls=DjangoJSONEncoder))

    def notify(self, kind: str, recipient_id: int, context: dict) -> None:
        conn = self._get_connection()
        conn.root.notify(kind, recipient_id, json.dumps(context, cls=DjangoJSONEncoder))

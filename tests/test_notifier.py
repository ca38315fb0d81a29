import json

import pytest

from notifier import KINDS, EventHub, render_message
from rpyc_server.server import NotificationService


def test_every_kind_renders():
    context = {
        "recipient_name": "Alice",
        "vehicle": "Mahindra 575 DI",
        "bid_amount": "41,000",
        "auction_id": 3,
    }

    for kind in KINDS:
        text = render_message(kind, context)
        assert text.startswith("Dear Alice")


def test_auction_ended_mentions_winner_and_deadline():
    text = render_message(
        "auction_ended",
        {"recipient_name": "Sunil", "vehicle": "Swaraj 744", "winning_bid": "2,10,000", "winner_name": "Alice"},
        deadline_days=5,
    )

    assert "Winning bid: ₹2,10,000 by Alice" in text
    assert "within 5 days" in text


def test_rejection_reason_is_optional():
    base = {"recipient_name": "Alice", "vehicle": "Swaraj 744", "bid_amount": "50,000"}

    assert "Reason:" not in render_message("bid_rejected", base)
    assert "Reason: Price too low." in render_message("bid_rejected", {**base, "reason": "Price too low"})


def test_unknown_kind():
    with pytest.raises(ValueError):
        render_message("carrier_pigeon", {})


def test_feed_returns_events_after_cursor():
    hub = EventHub()
    first = hub.emit("auction-1", "new-bid", {"current_bid": 41000})
    hub.emit("auction-2", "new-bid", {"current_bid": 9000})
    hub.emit("auction-1", "auction-extended", {"extension_count": 1})

    events = hub.events_since("auction-1", cursor=first)

    assert [e["event"] for e in events] == ["auction-extended"]
    assert hub.events_since("auction-3") == []


def test_feed_is_bounded():
    hub = EventHub(feed_size=3)
    for i in range(5):
        hub.emit("auction-1", "bid-update", {"bid_count": i + 1})

    assert [e["payload"]["bid_count"] for e in hub.events_since("auction-1")] == [3, 4, 5]


def test_rpyc_service_decodes_json():
    hub = EventHub()
    service = NotificationService(hub)

    text = service.exposed_notify(
        "outbid",
        7,
        json.dumps({"recipient_name": "Alice", "vehicle": "Swaraj 744", "bid_amount": "52,000", "recipient_phone": "+91"}),
    )
    service.exposed_emit("auction-4", "bid-update", json.dumps({"bid_count": 2}))

    assert "outbid" in text
    assert hub.outbox[0]["recipient_id"] == 7
    assert hub.outbox[0]["phone"] == "+91"
    assert json.loads(service.exposed_events_since("auction-4", 0))[0]["payload"] == {"bid_count": 2}


def test_approval_reminder_texts():
    context = {"recipient_name": "Sunil", "vehicle": "Swaraj 744", "winning_bid": "2,10,000"}

    reminder = render_message("approval_reminder", {**context, "days_remaining": 2})
    warning = render_message("approval_warning", context)

    assert "₹2,10,000 for Swaraj 744. 2 day(s) remaining." in reminder
    assert warning.startswith("Dear Sunil, URGENT: Approval deadline for Swaraj 744")
    assert "expires in 24 hours" in warning


def test_outbox_keeps_only_the_newest_messages():
    hub = EventHub(outbox_size=2)
    for recipient in (1, 2, 3):
        hub.notify("bid_placed", recipient, {"recipient_name": "Alice"})

    assert [m["recipient_id"] for m in hub.outbox] == [2, 3]


def test_least_recently_written_topic_is_dropped():
    hub = EventHub(max_topics=2)
    hub.emit("auction-1", "new-bid", {})
    hub.emit("auction-2", "new-bid", {})
    hub.emit("auction-1", "auction-extended", {})
    hub.emit("auction-3", "new-bid", {})

    assert hub.topics == ["auction-1", "auction-3"]
    assert hub.events_since("auction-2") == []
    assert len(hub.events_since("auction-1")) == 2

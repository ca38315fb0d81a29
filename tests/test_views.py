import json
from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import OperationalError

from bidding.models import Auction, Bid, EarnestMoneyDeposit
from bidding.services import ledger
from bidding.services.ledger import submit_bid
from bidding.services.lifecycle import end_auction


def post_json(client, url, payload):
    return client.post(url, data=json.dumps(payload), content_type="application/json")


def test_place_bid(client, auction, buyer_a, channel, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        r = post_json(
            client, f"/api/auction/{auction.id}/bids/", {"bidder_id": buyer_a.id, "bid_amount": 41000}
        )

    assert r.status_code == 200
    data = r.json()
    assert data["message"] == "Bid placed successfully"
    assert data["bid"]["bid_amount"] == 41000.0
    assert data["current_bid"] == 41000.0
    assert data["extended"] is False
    assert channel.events_named("new-bid")


def test_low_bid_returns_minimum(client, auction, buyer_a):
    r = post_json(client, f"/api/auction/{auction.id}/bids/", {"bidder_id": buyer_a.id, "bid_amount": 40500})

    assert r.status_code == 400
    assert r.json()["minimum_bid"] == 41000.0
    assert r.json()["code"] == "bid_too_low"


def test_emd_hint_for_redirect(client, make_auction, buyer_a):
    auction = make_auction(emd_required=True, emd_amount=Decimal("10000"))

    r = post_json(client, f"/api/auction/{auction.id}/bids/", {"bidder_id": buyer_a.id, "bid_amount": 41000})

    assert r.status_code == 403
    assert r.json()["emd_required"] is True
    assert r.json()["emd_amount"] == 10000.0


@pytest.mark.parametrize(
    "body, message",
    [
        ("not json", "Invalid JSON body"),
        (json.dumps({"bid_amount": 41000}), "Missing required fields: bidder_id, bid_amount"),
        (json.dumps({"bidder_id": 1, "bid_amount": "lots"}), "Invalid bid amount"),
        (json.dumps({"bidder_id": 1, "bid_amount": -5}), "Invalid bid amount"),
        (json.dumps({"bidder_id": 1, "bid_amount": True}), "Invalid bid amount"),
    ],
)
def test_malformed_requests(client, auction, body, message):
    r = client.post(f"/api/auction/{auction.id}/bids/", data=body, content_type="application/json")

    assert r.status_code == 400
    assert r.json()["error"] == message


def test_unknown_bidder_and_auction(client, auction, buyer_a):
    r = post_json(client, f"/api/auction/{auction.id}/bids/", {"bidder_id": 424242, "bid_amount": 41000})
    assert r.status_code == 404

    r = post_json(client, "/api/auction/424242/bids/", {"bidder_id": buyer_a.id, "bid_amount": 41000})
    assert r.status_code == 404
    assert r.json()["error"] == "Auction not found"


def test_wrong_method(client, auction):
    assert client.delete(f"/api/auction/{auction.id}/bids/").status_code == 405


def test_sealed_bid_list_depends_on_viewer(client, make_auction, buyer_a, buyer_b, now):
    auction = make_auction(bidding_type=Auction.BiddingType.SEALED)
    submit_bid(auction.id, buyer_a, Decimal("50000"), now=now)
    submit_bid(auction.id, buyer_b, Decimal("55000"), now=now)

    url = f"/api/auction/{auction.id}/bids/"
    assert client.get(url).json()["bids"] == []

    mine = client.get(url, {"viewer_id": buyer_a.id}).json()["bids"]
    assert [b["bid_amount"] for b in mine] == [50000.0]

    state = client.get(f"/api/auction/{auction.id}/state/").json()["auction"]
    assert state["current_bid"] is None
    assert state["bid_count"] == 2


def test_my_bids_requires_viewer(client, auction, buyer_a, buyer_b, now):
    submit_bid(auction.id, buyer_a, Decimal("41000"), now=now)
    submit_bid(auction.id, buyer_b, Decimal("42000"), now=now)

    assert client.get(f"/api/auction/{auction.id}/bids/my/").status_code == 401

    mine = client.get(f"/api/auction/{auction.id}/bids/my/", {"viewer_id": buyer_b.id}).json()["bids"]
    assert [b["bidder"]["id"] for b in mine] == [buyer_b.id]


def test_auction_list_filters_by_status(client, make_auction, now):
    live = make_auction()
    make_auction(status=Auction.Status.ENDED, end_time=now - timedelta(minutes=1))

    data = client.get("/api/auctions/", {"status": "LIVE"}).json()["auctions"]

    assert [a["id"] for a in data] == [live.id]
    assert data[0]["vehicle"] == "Mahindra 575 DI"


def test_emd_status(client, make_auction, buyer_a, pay_emd):
    auction = make_auction(emd_required=True, emd_amount=Decimal("10000"))
    url = f"/api/auction/{auction.id}/emd/"

    assert client.get(url, {"viewer_id": buyer_a.id}).json()["emd_status"] == "NOT_PAID"
    pay_emd(auction, buyer_a)
    assert client.get(url, {"viewer_id": buyer_a.id}).json()["emd_status"] == "PAID"


def test_approval_flow_over_http(client, auction, seller, buyer_a, now):
    submit_bid(auction.id, buyer_a, Decimal("41000"), now=now)
    end_auction(auction.id, now=now)

    status = client.get(f"/api/auction/{auction.id}/approval/", {"viewer_id": seller.id}).json()
    assert status["seller_approval_status"] == "PENDING"
    assert status["remaining"]["is_overdue"] is False
    assert status["remaining"]["days"] == 6

    r = post_json(
        client,
        f"/api/auction/{auction.id}/approve/",
        {"actor_id": buyer_a.id, "approval_status": "APPROVED"},
    )
    assert r.status_code == 403

    r = post_json(
        client,
        f"/api/auction/{auction.id}/approve/",
        {"actor_id": seller.id, "approval_status": "APPROVED"},
    )
    assert r.status_code == 200
    assert r.json()["message"] == "Bid approved successfully"

    contact = client.get(f"/api/auction/{auction.id}/contact/", {"viewer_id": buyer_a.id}).json()
    assert contact["contact"]["phone_number"] == seller.phone_number


def test_end_auction_endpoint(client, auction, admin, buyer_a):
    r = post_json(client, f"/api/auction/{auction.id}/end/", {"actor_id": buyer_a.id})
    assert r.status_code == 403

    r = post_json(client, f"/api/auction/{auction.id}/end/", {"actor_id": admin.id})
    assert r.status_code == 200
    assert r.json()["status"] == "ENDED"

    r = post_json(client, f"/api/auction/{auction.id}/end/", {"actor_id": admin.id})
    assert r.status_code == 400


def test_status_sweep_requires_cron_secret(client, settings, make_auction):
    settings.CRON_SECRET = "s3cret"
    make_auction(status=Auction.Status.SCHEDULED)

    assert client.post("/api/auctions/refresh-status/").status_code == 401

    r = client.post("/api/auctions/refresh-status/", HTTP_AUTHORIZATION="Bearer s3cret")
    assert r.status_code == 200
    assert r.json()["results"]["started"] == 1
    assert not Bid.objects.exists()


def test_refund_endpoint(client, make_auction, admin, buyer_a, buyer_b, pay_emd, now):
    auction = make_auction(
        status=Auction.Status.ENDED,
        end_time=now,
        emd_required=True,
        emd_amount=Decimal("10000"),
        winner=buyer_a,
    )
    pay_emd(auction, buyer_a)
    pay_emd(auction, buyer_b)
    url = f"/api/auction/{auction.id}/emd/refund/"

    assert post_json(client, url, {"actor_id": buyer_b.id, "refund_all": True}).status_code == 403
    assert post_json(client, url, {"actor_id": admin.id}).status_code == 400
    assert post_json(client, url, {"actor_id": admin.id, "bidder_id": buyer_a.id}).status_code == 400

    r = post_json(client, url, {"actor_id": admin.id, "refund_all": True})
    assert r.status_code == 200
    assert r.json()["refunded_count"] == 1
    assert [(e["bidder_id"], e["amount"]) for e in r.json()["emds"]] == [(buyer_b.id, 10000.0)]
    assert EarnestMoneyDeposit.objects.get(bidder=buyer_a).status == EarnestMoneyDeposit.Status.PAID


def test_mark_failed_endpoint(client, auction, admin, seller):
    url = f"/api/auction/{auction.id}/mark-failed/"

    assert post_json(client, url, {"actor_id": seller.id}).status_code == 403

    r = post_json(client, url, {"actor_id": admin.id})
    assert r.status_code == 200
    assert r.json()["reason"] == "Reserve price not met"
    assert r.json()["refunded_count"] == 0

    auction.refresh_from_db()
    assert auction.status == Auction.Status.ENDED


def test_reminder_hook_requires_cron_secret(client, settings, make_auction, buyer_a, now):
    settings.CRON_SECRET = "s3cret"
    make_auction(
        status=Auction.Status.ENDED,
        end_time=now - timedelta(days=5),
        start_time=now - timedelta(days=5, hours=2),
        winner=buyer_a,
        seller_approval_status=Auction.ApprovalStatus.PENDING,
    )

    assert client.post("/api/auctions/approval-reminders/").status_code == 401

    r = client.post("/api/auctions/approval-reminders/", HTTP_AUTHORIZATION="Bearer s3cret")
    assert r.status_code == 200
    assert r.json()["results"]["total"] == 1
    assert r.json()["results"]["reminders_sent"] == 1


def test_locked_database_is_a_lost_race_not_a_server_error(client, auction, buyer_a, settings, monkeypatch):
    settings.BID_WRITE_ATTEMPTS = 2
    monkeypatch.setattr(ledger.time, "sleep", lambda seconds: None)

    def locked(*args, **kwargs):
        raise OperationalError("database is locked")

    monkeypatch.setattr(ledger, "record_bid", locked)

    r = post_json(client, f"/api/auction/{auction.id}/bids/", {"bidder_id": buyer_a.id, "bid_amount": 41000})

    assert r.status_code == 400
    assert r.json()["code"] == "bid_too_low"
    assert r.json()["minimum_bid"] == 41000.0

"""
Bid placement.

A bid goes through two phases:

1. ``check_eligibility`` against a plain read of the auction (no locks).
2. ``record_bid``, a single atomic read-modify-write on the auction row.
   It re-reads the row under ``select_for_update``, repeats the increment
   check against that fresh value, moves the winning flag, inserts the bid,
   applies auto-extension and writes the aggregate back with a
   compare-and-swap on ``current_bid``/``extension_count``.

SQLite has a single database-wide write lock and ignores
``select_for_update``; transactions are opened IMMEDIATE so writers queue
on that lock. A submission that still finds the database locked is
retried a bounded number of times; one that never gets in is answered
like any other lost race (``BidConflict``).

Broadcasts and notifications are queued with ``transaction.on_commit`` and
can never undo an accepted bid.
"""

import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from functools import partial
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import OperationalError, transaction
from django.db.models import Max
from django.utils import timezone

from ..models import Auction, Bid, Member
from .channels import Broadcaster, Notifier, auction_topic, get_channel
from .eligibility import Decision, check_eligibility, format_rupees, minimum_bid_denial
from .extension import AutoExtendConfig, evaluate_extension
from .visibility import bid_broadcast, extension_broadcast

logger = logging.getLogger(__name__)

# seconds; the sleep before retry n is drawn from [0, n * _RETRY_BACKOFF]
_RETRY_BACKOFF = 0.02


class BidRejected(Exception):
    """Raised when a bid is refused. ``decision`` carries the reason and hints."""

    def __init__(self, decision: Decision) -> None:
        super().__init__(decision.message)
        self.decision = decision


class BidConflict(BidRejected):
    """A concurrent bid committed first; resubmitting with a higher amount may succeed."""


@dataclass
class PlacedBid:
    bid: Bid
    auction: Auction
    previous_winner_id: Optional[int]
    extended: bool
    extended_by: int
    bid_count: int


def submit_bid(
    auction_id: int,
    bidder: Optional[Member],
    bid_amount: Decimal,
    now: Optional[datetime] = None,
    broadcaster: Optional[Broadcaster] = None,
    notifier: Optional[Notifier] = None,
) -> PlacedBid:
    now = now or timezone.now()

    if bid_amount is None or bid_amount <= 0:
        raise BidRejected(
            Decision(allowed=False, code="invalid_amount", message="Invalid bid amount", status=400)
        )

    attempts = max(1, settings.BID_WRITE_ATTEMPTS)
    auction = None
    for attempt in range(1, attempts + 1):
        try:
            auction = Auction.objects.select_related("vehicle").get(id=auction_id)

            decision = check_eligibility(auction, bidder, bid_amount, now=now)
            if not decision.allowed:
                logger.info(
                    "Bid of %s on auction %s by member %s denied: %s",
                    bid_amount, auction_id, getattr(bidder, "id", None), decision.code,
                )
                raise BidRejected(decision)

            placed = record_bid(auction_id, bidder, bid_amount, now=now)
            break
        except OperationalError:
            # SQLite reports a busy writer as "database is locked"
            if attempt < attempts:
                time.sleep(random.uniform(0, _RETRY_BACKOFF * attempt))
                continue
            if auction is None:
                raise
            logger.warning(
                "Bid of %s on auction %s gave up after %s locked attempts",
                bid_amount, auction_id, attempts,
            )
            raise BidConflict(minimum_bid_denial(_fresh_minimum(auction)))

    transaction.on_commit(partial(publish_bid, placed, broadcaster, notifier))
    return placed


def _fresh_minimum(auction: Auction) -> Decimal:
    try:
        return Auction.objects.get(id=auction.id).minimum_next_bid
    except OperationalError:
        return auction.minimum_next_bid


def record_bid(auction_id: int, bidder: Member, bid_amount: Decimal, now: datetime) -> PlacedBid:
    with transaction.atomic():
        auction = Auction.objects.select_for_update().get(id=auction_id)

        minimum = auction.minimum_next_bid
        if bid_amount < minimum:
            logger.info(
                "Bid of %s on auction %s lost the race (minimum is now %s)",
                bid_amount, auction_id, minimum,
            )
            raise BidConflict(minimum_bid_denial(minimum))

        if now > auction.end_time:
            raise BidRejected(
                Decision(allowed=False, code="auction_ended", message="Auction has ended", status=400)
            )

        previous = (
            Bid.objects.filter(auction=auction, is_winning_bid=True)
            .order_by("-bid_time", "-id")
            .first()
        )
        previous_winner_id = previous.bidder_id if previous else None

        Bid.objects.filter(auction=auction, is_winning_bid=True).update(is_winning_bid=False)

        # bid_time never goes backwards within an auction
        latest = Bid.objects.filter(auction=auction).aggregate(latest=Max("bid_time"))["latest"]
        bid_time = max(now, latest) if latest else now

        bid = Bid.objects.create(
            auction=auction,
            bidder=bidder,
            bid_amount=bid_amount,
            bid_time=bid_time,
            is_winning_bid=True,
            placed_by_admin=bidder.is_admin and now < auction.start_time,
        )

        config = AutoExtendConfig.for_auction(auction)
        extension = evaluate_extension(now, auction.end_time, auction.extension_count, config)

        updated = Auction.objects.filter(
            id=auction.id,
            current_bid=auction.current_bid,
            extension_count=auction.extension_count,
        ).update(
            current_bid=bid_amount,
            end_time=extension.end_time,
            extension_count=extension.extension_count,
        )
        if updated != 1:
            fresh = Auction.objects.get(id=auction.id)
            raise BidConflict(minimum_bid_denial(fresh.minimum_next_bid))

        auction.current_bid = bid_amount
        auction.end_time = extension.end_time
        auction.extension_count = extension.extension_count

        bid_count = Bid.objects.filter(auction=auction).count()

    if bid.placed_by_admin:
        logger.warning(
            "Admin test bid %s of %s placed by member %s on auction %s before it started",
            bid.id, bid_amount, bidder.id, auction_id,
        )
    logger.info(
        "Accepted bid %s of %s on auction %s by member %s (extended=%s, extensions=%s)",
        bid.id, bid_amount, auction_id, bidder.id, extension.extended, auction.extension_count,
    )
    if extension.extended:
        logger.info("Auction %s extended to %s", auction_id, auction.end_time.isoformat())

    return PlacedBid(
        bid=bid,
        auction=auction,
        previous_winner_id=previous_winner_id,
        extended=extension.extended,
        extended_by=config.minutes if extension.extended else 0,
        bid_count=bid_count,
    )


# --- Post-commit, best effort -------------------------------------------

def _member_context(member: Member) -> Dict[str, Any]:
    return {"recipient_name": member.display_name, "recipient_phone": member.phone_number}


def _safe_notify(notifier: Notifier, kind: str, member: Member, context: Dict[str, Any]) -> None:
    try:
        notifier.notify(kind, member.id, {**context, **_member_context(member)})
    except Exception:
        logger.exception("Failed to send %s notification to member %s", kind, member.id)


def publish_bid(
    placed: PlacedBid,
    broadcaster: Optional[Broadcaster] = None,
    notifier: Optional[Notifier] = None,
) -> None:
    auction = placed.auction
    bid = placed.bid
    topic = auction_topic(auction.id)

    try:
        broadcaster = broadcaster or get_channel()
        event, payload = bid_broadcast(auction, bid, placed.bid_count, placed.extended)
        broadcaster.emit(topic, event, payload)
        if placed.extended:
            event, payload = extension_broadcast(auction, placed.extended_by)
            broadcaster.emit(topic, event, payload)
    except Exception:
        logger.exception("Failed to broadcast bid %s on auction %s", bid.id, auction.id)

    try:
        notifier = notifier or get_channel()
        context = {
            "auction_id": auction.id,
            "vehicle": auction.vehicle.title,
            "bid_amount": format_rupees(bid.bid_amount),
        }

        _safe_notify(notifier, "bid_placed", bid.bidder, context)

        if placed.previous_winner_id and placed.previous_winner_id != bid.bidder_id:
            previous = Member.objects.filter(id=placed.previous_winner_id).first()
            if previous is not None:
                _safe_notify(notifier, "outbid", previous, context)

        if placed.extended:
            extension_context = {
                **context,
                "new_end_time": auction.end_time.isoformat(),
                "extended_by": placed.extended_by,
            }
            participant_ids = Bid.objects.filter(auction=auction).values_list("bidder_id", flat=True)
            for participant in Member.objects.filter(id__in=set(participant_ids)):
                _safe_notify(notifier, "auction_extended", participant, extension_context)
    except Exception:
        logger.exception("Failed to send notifications for bid %s on auction %s", bid.id, auction.id)

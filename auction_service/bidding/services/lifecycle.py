import logging
from datetime import datetime
from functools import partial
from typing import Dict, List, Optional, Tuple

from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.db import DatabaseError, transaction
from django.utils import timezone

from ..models import Auction, Bid, EarnestMoneyDeposit, Member, Vehicle
from .channels import Broadcaster, Notifier, auction_topic, get_channel
from .deposits import mark_refunded, require_admin
from .eligibility import format_rupees

logger = logging.getLogger(__name__)


class LifecycleViolation(Exception):
    """Raised when an auction status change breaks SCHEDULED -> LIVE -> ENDED."""
    pass


# SCHEDULED -> ENDED covers auctions whose whole window passed before the sweep ran
_TRANSITIONS = {
    Auction.Status.SCHEDULED: {Auction.Status.LIVE, Auction.Status.ENDED},
    Auction.Status.LIVE: {Auction.Status.ENDED},
    Auction.Status.ENDED: set(),
}


def advance_status(auction: Auction, new_status: str) -> None:
    if new_status not in _TRANSITIONS[auction.status]:
        raise LifecycleViolation(
            f"Unexpected transition {auction.status} -> {new_status} for auction {auction.id}"
        )
    auction.status = new_status


def time_remaining_seconds(auction: Auction, now: Optional[datetime] = None) -> int:
    """
    For UI clarity:
    - SCHEDULED: seconds until START
    - LIVE: seconds until END
    - ENDED: 0
    """
    now = now or timezone.now()

    if auction.status == Auction.Status.ENDED:
        return 0

    if now < auction.start_time:
        return max(0, int((auction.start_time - now).total_seconds()))

    return max(0, int((auction.end_time - now).total_seconds()))


def start_auction(auction_id: int) -> Auction:
    with transaction.atomic():
        auction = Auction.objects.select_for_update().get(id=auction_id)
        advance_status(auction, Auction.Status.LIVE)
        auction.save(update_fields=["status"])

    logger.info("Auction %s is now LIVE", auction.id)
    return auction


def end_auction(
    auction_id: int,
    now: Optional[datetime] = None,
    actor: Optional[Member] = None,
    broadcaster: Optional[Broadcaster] = None,
    notifier: Optional[Notifier] = None,
) -> Auction:
    """
    End an auction and fix its winner.

    ``actor`` is set when a person (always an admin) ends the auction by
    hand; the sweep passes None. Ending early clamps ``end_time`` to ``now``
    so the bidding window closes together with the status.
    """
    now = now or timezone.now()

    if actor is not None and not actor.is_admin:
        raise PermissionDenied("Access denied. Admin only.")

    with transaction.atomic():
        auction = Auction.objects.select_for_update().get(id=auction_id)
        if auction.status == Auction.Status.ENDED:
            raise LifecycleViolation("Auction has already ended")

        advance_status(auction, Auction.Status.ENDED)
        if auction.end_time > now:
            auction.end_time = now

        winning = (
            Bid.objects.select_related("bidder")
            .filter(auction=auction, is_winning_bid=True)
            .first()
        )
        auction.winner = winning.bidder if winning else None
        auction.seller_approval_status = Auction.ApprovalStatus.PENDING if winning else None
        auction.save(update_fields=["status", "end_time", "winner", "seller_approval_status"])

    logger.info(
        "Ended auction %s%s",
        auction.id,
        f" with winner {auction.winner_id} at {auction.current_bid}" if winning else " (no bids)",
    )
    transaction.on_commit(partial(publish_auction_ended, auction, winning, broadcaster, notifier))
    return auction


def publish_auction_ended(
    auction: Auction,
    winning: Optional[Bid],
    broadcaster: Optional[Broadcaster] = None,
    notifier: Optional[Notifier] = None,
) -> None:
    try:
        broadcaster = broadcaster or get_channel()
        broadcaster.emit(
            auction_topic(auction.id),
            "auction-ended",
            {
                "status": auction.status,
                "end_time": auction.end_time.isoformat(),
                "has_winner": winning is not None,
            },
        )
    except Exception:
        logger.exception("Failed to broadcast end of auction %s", auction.id)

    if winning is None:
        return

    try:
        notifier = notifier or get_channel()
        seller = auction.vehicle.seller
        notifier.notify(
            "auction_ended",
            seller.id,
            {
                "auction_id": auction.id,
                "vehicle": auction.vehicle.title,
                "winning_bid": format_rupees(winning.bid_amount),
                "winner_name": winning.bidder.display_name,
                "deadline_days": settings.APPROVAL_DEADLINE_DAYS,
                "recipient_name": seller.display_name,
                "recipient_phone": seller.phone_number,
            },
        )
    except Exception:
        logger.exception("Failed to notify seller about end of auction %s", auction.id)


def refresh_auction_statuses(now: Optional[datetime] = None) -> Dict[str, List]:
    """
    Periodic sweep: start auctions whose window opened, end those whose
    window closed. Each auction is handled on its own so one failure does
    not stop the rest.
    """
    now = now or timezone.now()
    results: Dict[str, List] = {"started": [], "ended": [], "errors": []}

    to_start = Auction.objects.filter(
        status=Auction.Status.SCHEDULED, start_time__lte=now, end_time__gt=now
    ).values_list("id", flat=True)
    for auction_id in list(to_start):
        try:
            start_auction(auction_id)
            results["started"].append(auction_id)
        except (LifecycleViolation, DatabaseError) as exc:
            logger.exception("Failed to start auction %s", auction_id)
            results["errors"].append(f"Failed to start auction {auction_id}: {exc}")

    to_end = Auction.objects.filter(
        status__in=[Auction.Status.SCHEDULED, Auction.Status.LIVE], end_time__lte=now
    ).values_list("id", flat=True)
    for auction_id in list(to_end):
        try:
            end_auction(auction_id, now=now)
            results["ended"].append(auction_id)
        except (LifecycleViolation, DatabaseError) as exc:
            logger.exception("Failed to end auction %s", auction_id)
            results["errors"].append(f"Failed to end auction {auction_id}: {exc}")

    logger.info(
        "Status sweep: %s started, %s ended, %s errors",
        len(results["started"]), len(results["ended"]), len(results["errors"]),
    )
    return results


def mark_auction_failed(
    auction_id: int,
    actor: Optional[Member],
    reason: str = "",
    now: Optional[datetime] = None,
    broadcaster: Optional[Broadcaster] = None,
) -> Tuple[Auction, List[EarnestMoneyDeposit]]:
    """
    Admin closes an auction without a sale (reserve not met or similar).

    The vehicle goes back to APPROVED so it can be auctioned again and every
    PAID deposit, the winner's included, is refunded. A winner still waiting
    for the seller's decision is dropped; a sale that was already approved
    cannot be undone here.
    """
    now = now or timezone.now()
    require_admin(actor)
    reason = (reason or "").strip() or "Reserve price not met"

    with transaction.atomic():
        auction = Auction.objects.select_for_update().get(id=auction_id)
        if auction.seller_approval_status == Auction.ApprovalStatus.APPROVED:
            raise LifecycleViolation("Auction has already been sold")

        if auction.status != Auction.Status.ENDED:
            advance_status(auction, Auction.Status.ENDED)
        if auction.end_time > now:
            auction.end_time = now
        if auction.seller_approval_status == Auction.ApprovalStatus.PENDING:
            auction.winner = None
            auction.seller_approval_status = None
        auction.save(update_fields=["status", "end_time", "winner", "seller_approval_status"])

        Vehicle.objects.filter(id=auction.vehicle_id).update(status=Vehicle.Status.APPROVED)
        refunded = mark_refunded(
            EarnestMoneyDeposit.objects.select_for_update()
            .filter(auction=auction, status=EarnestMoneyDeposit.Status.PAID)
            .order_by("id"),
            now,
        )

    logger.info(
        "Auction %s marked as failed (%s); %s EMD(s) refunded", auction.id, reason, len(refunded)
    )
    transaction.on_commit(partial(publish_auction_ended, auction, None, broadcaster))
    return auction, refunded

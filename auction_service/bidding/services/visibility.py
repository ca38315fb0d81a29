"""
Who may see which bids.

Sealed auctions hide other bidders' offers until the auction is over:
anonymous viewers see nothing, a bidder sees only their own bids and admins
see everything. Once the auction has ended, or for open auctions, everyone
sees the full list, highest amount first. This is evaluated per request and
never cached across the live/ended boundary.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from django.utils import timezone

from ..models import Auction, Bid, Member


def is_sealed_live(auction: Auction, now: datetime) -> bool:
    return (
        auction.is_sealed
        and auction.status != Auction.Status.ENDED
        and now < auction.end_time
    )


def _bid_queryset(auction: Auction):
    return Bid.objects.select_related("bidder").filter(auction=auction)


def own_bids(auction: Auction, viewer: Member) -> List[Bid]:
    return list(_bid_queryset(auction).filter(bidder=viewer).order_by("-bid_time", "-id"))


def visible_bids(
    auction: Auction,
    viewer: Optional[Member],
    now: Optional[datetime] = None,
) -> List[Bid]:
    now = now or timezone.now()

    if is_sealed_live(auction, now):
        if viewer is None:
            return []
        if not viewer.is_admin:
            return own_bids(auction, viewer)

    return list(_bid_queryset(auction).order_by("-bid_amount", "-bid_time", "-id"))


def serialize_bid(bid: Bid) -> Dict[str, Any]:
    return {
        "id": bid.id,
        "auction_id": bid.auction_id,
        "bidder": {
            "id": bid.bidder_id,
            "full_name": bid.bidder.display_name,
            "phone_number": bid.bidder.phone_number,
        },
        "bid_amount": float(bid.bid_amount),
        "bid_time": bid.bid_time.isoformat(),
        "is_winning_bid": bid.is_winning_bid,
    }


# --- Real-time channel payloads ----------------------------------------

def bid_broadcast(auction: Auction, bid: Bid, bid_count: int, extended: bool) -> Tuple[str, Dict[str, Any]]:
    """
    Sealed auctions only ever broadcast the bid count and timing; the amount
    and the bidder stay private until the auction ends.
    """
    timing = {
        "end_time": auction.end_time.isoformat(),
        "extended": extended,
        "extension_count": auction.extension_count,
    }
    if auction.is_sealed:
        return "bid-update", {"bid_count": bid_count, **timing}

    return "new-bid", {
        "bid": serialize_bid(bid),
        "current_bid": float(auction.current_bid),
        **timing,
    }


def extension_broadcast(auction: Auction, extended_by: int) -> Tuple[str, Dict[str, Any]]:
    return "auction-extended", {
        "new_end_time": auction.end_time.isoformat(),
        "extension_count": auction.extension_count,
        "extended_by": extended_by,
        "message": f"Auction extended by {extended_by} minutes!",
    }

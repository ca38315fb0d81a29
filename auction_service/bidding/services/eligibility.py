"""
Read-only checks that decide whether a member may bid on an auction.

The checks run in a fixed order and the first failing one wins. Nothing
here writes to the database; the increment check is repeated against a
locked row inside the ledger transaction.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from django.utils import timezone

from ..models import Auction, EarnestMoneyDeposit, Member, Membership


@dataclass(frozen=True)
class Decision:
    allowed: bool
    code: str = "ok"
    message: str = ""
    status: int = 200
    minimum_bid: Optional[Decimal] = None
    emd_required: bool = False
    emd_amount: Optional[Decimal] = None

    def as_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.minimum_bid is not None:
            payload["minimum_bid"] = float(self.minimum_bid)
        if self.emd_required:
            payload["emd_required"] = True
            payload["emd_amount"] = float(self.emd_amount or 0)
        return payload


ALLOW = Decision(allowed=True)


def format_rupees(amount) -> str:
    """Format an amount with Indian digit grouping, e.g. 1,25,000."""
    value = Decimal(amount).quantize(Decimal("0.01"))
    whole, _, fraction = f"{abs(value):.2f}".partition(".")
    if len(whole) > 3:
        head = re.sub(r"(\d)(?=(\d{2})+$)", r"\1,", whole[:-3])
        whole = f"{head},{whole[-3:]}"
    sign = "-" if value < 0 else ""
    if fraction == "00":
        return f"{sign}{whole}"
    return f"{sign}{whole}.{fraction}"


def minimum_bid_denial(minimum: Decimal) -> Decision:
    return Decision(
        allowed=False,
        code="bid_too_low",
        message=f"Bid must be at least ₹{format_rupees(minimum)} (current bid + minimum increment)",
        status=400,
        minimum_bid=minimum,
    )


def has_active_membership(member: Member, now: datetime) -> bool:
    return Membership.objects.filter(
        member=member,
        status=Membership.Status.ACTIVE,
        end_date__gte=now,
    ).exists()


def emd_is_paid(auction: Auction, member: Member) -> bool:
    return EarnestMoneyDeposit.objects.filter(
        auction=auction,
        bidder=member,
        status=EarnestMoneyDeposit.Status.PAID,
    ).exists()


def is_actionable(auction: Auction, member: Member, now: datetime) -> bool:
    """
    LIVE status is not the only signal: a SCHEDULED auction whose window has
    opened is biddable before the status sweep catches up, and admins may
    bid on a SCHEDULED auction for operational testing.
    """
    if auction.status == Auction.Status.LIVE:
        return True
    if auction.start_time <= now <= auction.end_time:
        return True
    return member.is_admin and auction.status == Auction.Status.SCHEDULED


def check_eligibility(
    auction: Auction,
    member: Optional[Member],
    bid_amount: Decimal,
    now: Optional[datetime] = None,
) -> Decision:
    now = now or timezone.now()

    if member is None:
        return Decision(allowed=False, code="user_not_found", message="User not found", status=404)

    is_admin = member.is_admin

    if not is_admin and not member.is_eligible_for_bid:
        return Decision(
            allowed=False,
            code="not_eligible",
            message="You are not eligible to place bids. Please contact admin for more information.",
            status=403,
        )

    if now > auction.end_time:
        return Decision(allowed=False, code="auction_ended", message="Auction has ended", status=400)

    if now < auction.start_time and not is_admin:
        return Decision(
            allowed=False, code="auction_not_started", message="Auction has not started yet", status=400
        )

    if not is_actionable(auction, member, now):
        return Decision(allowed=False, code="auction_not_live", message="Auction is not live", status=400)

    if auction.vehicle.seller_id == member.id:
        return Decision(
            allowed=False, code="own_vehicle", message="You cannot bid on your own vehicle", status=400
        )

    minimum = auction.minimum_next_bid
    if bid_amount < minimum:
        return minimum_bid_denial(minimum)

    if is_admin:
        return ALLOW

    if not has_active_membership(member, now):
        return Decision(
            allowed=False,
            code="membership_required",
            message="You need an active membership to place bids",
            status=403,
        )

    if auction.emd_required and auction.emd_amount and not emd_is_paid(auction, member):
        return Decision(
            allowed=False,
            code="emd_required",
            message=(
                f"Earnest Money Deposit (EMD) of ₹{format_rupees(auction.emd_amount)} is required "
                "to place bids. Please pay EMD first."
            ),
            status=403,
            emd_required=True,
            emd_amount=auction.emd_amount,
        )

    return ALLOW

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from functools import partial
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from ..models import Auction, EarnestMoneyDeposit, Member, Purchase, Vehicle
from .channels import Notifier, get_channel
from .eligibility import format_rupees

logger = logging.getLogger(__name__)

MAX_REJECTION_REASON = 500


class ApprovalViolation(Exception):
    """Raised when the approval rules are violated. Nothing is changed."""

    def __init__(self, message: str, status: int = 400) -> None:
        super().__init__(message)
        self.status = status


# ======================================================================
#  Seller approval state machine
# ======================================================================
class SellerApprovalMonitor:
    """
    Runtime checker for the seller's decision on a winning bid.

    States:
        None       – auction still running, or ended without bids
        PENDING    – ended with a winner, waiting for seller or admin
        APPROVED   – sale confirmed (terminal)
        REJECTED   – sale refused (terminal)
    """

    def __init__(self, auction: Auction) -> None:
        self.auction = auction

    @property
    def state(self) -> Optional[str]:
        return self.auction.seller_approval_status

    def check_actor(self, actor: Optional[Member]) -> None:
        if actor is None or not (actor.is_admin or actor.id == self.auction.vehicle.seller_id):
            raise ApprovalViolation("Only the seller or admin can approve/reject bids", status=403)

    def _require_pending(self, decision: str) -> None:
        if self.auction.status != Auction.Status.ENDED:
            raise ApprovalViolation("Auction must be ended before approval")
        if self.state != Auction.ApprovalStatus.PENDING:
            raise ApprovalViolation(f"Unexpected {decision} in state {self.state}", status=409)

    def approve(self, now: datetime) -> None:
        self._require_pending("APPROVED")
        self.auction.seller_approval_status = Auction.ApprovalStatus.APPROVED
        self.auction.approval_decided_at = now

    def reject(self, reason: str, now: datetime) -> None:
        self._require_pending("REJECTED")
        self.auction.seller_approval_status = Auction.ApprovalStatus.REJECTED
        self.auction.rejection_reason = reason
        self.auction.approval_decided_at = now


# ======================================================================
#  Deadline
# ======================================================================
@dataclass(frozen=True)
class DeadlineRemaining:
    days: int
    hours: int
    minutes: int
    is_overdue: bool

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def approval_deadline(end_time: datetime, days: Optional[int] = None) -> datetime:
    if days is None:
        days = settings.APPROVAL_DEADLINE_DAYS
    return end_time + timedelta(days=days)


def deadline_remaining(
    end_time: datetime,
    now: Optional[datetime] = None,
    days: Optional[int] = None,
) -> DeadlineRemaining:
    """
    Time left for the seller to decide. Reaching the deadline only flips
    ``is_overdue``; the approval state itself is never changed here.
    """
    now = now or timezone.now()
    left = int((approval_deadline(end_time, days) - now).total_seconds())

    if left <= 0:
        return DeadlineRemaining(days=0, hours=0, minutes=0, is_overdue=True)

    return DeadlineRemaining(
        days=left // 86400,
        hours=(left % 86400) // 3600,
        minutes=(left % 3600) // 60,
        is_overdue=False,
    )


# ======================================================================
#  Decision
# ======================================================================
def transaction_fee(amount: Decimal) -> Decimal:
    rate = Decimal(settings.TRANSACTION_FEE_RATE)
    return (Decimal(amount) * rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _record_purchase(auction: Auction, now: datetime) -> Purchase:
    price = auction.current_bid
    fee = transaction_fee(price)
    balance = price
    emd_amount = None

    emd = (
        EarnestMoneyDeposit.objects.select_for_update()
        .filter(
            auction=auction,
            bidder_id=auction.winner_id,
            status=EarnestMoneyDeposit.Status.PAID,
            applied_to_balance=False,
        )
        .first()
    )
    if emd is not None:
        emd_amount = emd.amount
        balance = max(Decimal("0"), price - emd.amount)
        emd.status = EarnestMoneyDeposit.Status.APPLIED
        emd.applied_to_balance = True
        emd.save(update_fields=["status", "applied_to_balance"])

    return Purchase.objects.create(
        vehicle_id=auction.vehicle_id,
        buyer_id=auction.winner_id,
        purchase_price=price,
        emd_amount=emd_amount,
        balance_amount=balance if balance > 0 else None,
        transaction_fee=fee,
        status=(
            Purchase.Status.PAYMENT_PENDING if balance > 0 or fee > 0 else Purchase.Status.PENDING
        ),
        created_at=now,
    )


def decide_winning_bid(
    auction_id: int,
    actor: Optional[Member],
    decision: str,
    reason: str = "",
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None,
) -> Auction:
    now = now or timezone.now()
    decision = (decision or "").upper()
    reason = (reason or "").strip()

    if decision not in (Auction.ApprovalStatus.APPROVED, Auction.ApprovalStatus.REJECTED):
        raise ApprovalViolation("Invalid approval status. Must be APPROVED or REJECTED")
    if decision == Auction.ApprovalStatus.REJECTED and len(reason) > MAX_REJECTION_REASON:
        raise ApprovalViolation(f"Rejection reason must be at most {MAX_REJECTION_REASON} characters")

    with transaction.atomic():
        auction = Auction.objects.select_for_update().select_related("vehicle").get(id=auction_id)
        monitor = SellerApprovalMonitor(auction)
        monitor.check_actor(actor)

        if decision == Auction.ApprovalStatus.APPROVED:
            monitor.approve(now)
            auction.save(update_fields=["seller_approval_status", "approval_decided_at"])
            Vehicle.objects.filter(id=auction.vehicle_id).update(status=Vehicle.Status.SOLD)
            purchase = _record_purchase(auction, now)
            logger.info(
                "Seller approved auction %s; purchase %s created for member %s",
                auction.id, purchase.id, auction.winner_id,
            )
        else:
            monitor.reject(reason, now)
            auction.save(
                update_fields=["seller_approval_status", "rejection_reason", "approval_decided_at"]
            )
            logger.info("Seller rejected auction %s", auction.id)

    transaction.on_commit(partial(publish_decision, auction, notifier))
    return auction


def publish_decision(auction: Auction, notifier: Optional[Notifier] = None) -> None:
    winner = auction.winner
    if winner is None:
        return

    seller = auction.vehicle.seller
    context = {
        "auction_id": auction.id,
        "vehicle": auction.vehicle.title,
        "bid_amount": format_rupees(auction.current_bid),
        "recipient_name": winner.display_name,
        "recipient_phone": winner.phone_number,
    }
    if auction.seller_approval_status == Auction.ApprovalStatus.APPROVED:
        kind = "bid_approved"
        context.update(seller_name=seller.display_name, seller_phone=seller.phone_number)
    else:
        kind = "bid_rejected"
        context.update(reason=auction.rejection_reason)

    try:
        (notifier or get_channel()).notify(kind, winner.id, context)
    except Exception:
        logger.exception("Failed to send %s notification for auction %s", kind, auction.id)


def contact_details_for(auction: Auction, viewer: Optional[Member]) -> Optional[Dict[str, str]]:
    """After approval the winner sees the seller's contact and vice versa; nobody else does."""
    if viewer is None or auction.seller_approval_status != Auction.ApprovalStatus.APPROVED:
        return None

    if viewer.id == auction.winner_id:
        counterpart = auction.vehicle.seller
        role = "seller"
    elif viewer.id == auction.vehicle.seller_id and auction.winner is not None:
        counterpart = auction.winner
        role = "buyer"
    else:
        return None

    return {
        "role": role,
        "full_name": counterpart.display_name,
        "phone_number": counterpart.phone_number,
    }


# ======================================================================
#  Reminders
# ======================================================================
REMINDER_WINDOW_DAYS = 3


def send_approval_reminders(
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None,
) -> Dict[str, Any]:
    """
    Nudge sellers who have not decided yet.

    A reminder goes out while 1 to 3 whole days remain and an urgent warning
    in the last day. Overdue auctions are left alone; the approval view
    already reports them as overdue.
    """
    now = now or timezone.now()
    pending = list(
        Auction.objects.select_related("vehicle__seller")
        .filter(
            status=Auction.Status.ENDED,
            seller_approval_status=Auction.ApprovalStatus.PENDING,
            winner__isnull=False,
        )
        .order_by("end_time")
    )
    results: Dict[str, Any] = {
        "total": len(pending),
        "reminders_sent": 0,
        "warnings_sent": 0,
        "errors": [],
    }

    for auction in pending:
        remaining = deadline_remaining(auction.end_time, now=now)
        if remaining.is_overdue:
            continue
        if remaining.days == 0:
            kind, counter = "approval_warning", "warnings_sent"
        elif remaining.days <= REMINDER_WINDOW_DAYS:
            kind, counter = "approval_reminder", "reminders_sent"
        else:
            continue

        seller = auction.vehicle.seller
        try:
            (notifier or get_channel()).notify(
                kind,
                seller.id,
                {
                    "auction_id": auction.id,
                    "vehicle": auction.vehicle.title,
                    "winning_bid": format_rupees(auction.current_bid),
                    "days_remaining": remaining.days,
                    "recipient_name": seller.display_name,
                    "recipient_phone": seller.phone_number,
                },
            )
        except Exception as exc:
            logger.exception("Failed to send %s for auction %s", kind, auction.id)
            results["errors"].append(f"Auction {auction.id}: {exc}")
            continue
        results[counter] += 1

    logger.info(
        "Approval reminders: %s pending, %s reminders, %s warnings, %s errors",
        results["total"], results["reminders_sent"], results["warnings_sent"], len(results["errors"]),
    )
    return results

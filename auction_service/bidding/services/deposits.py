"""
Returning earnest money to bidders who did not win.

Only the status changes here; moving the money back is the payment
provider's job. The winner's deposit is never refunded, it is applied to
the balance when the seller approves (see ``approval._record_purchase``).
"""

import logging
from datetime import datetime
from typing import List, Optional

from django.core.exceptions import PermissionDenied
from django.db import transaction
from django.utils import timezone

from ..models import Auction, EarnestMoneyDeposit, Member

logger = logging.getLogger(__name__)


class DepositViolation(Exception):
    """Raised when a refund request cannot be honoured. Nothing is changed."""

    def __init__(self, message: str, status: int = 400) -> None:
        super().__init__(message)
        self.status = status


def require_admin(actor: Optional[Member]) -> None:
    if actor is None or not actor.is_admin:
        raise PermissionDenied("Forbidden. Admin access required.")


def mark_refunded(deposits, now: datetime) -> List[EarnestMoneyDeposit]:
    refunded = []
    for emd in deposits:
        emd.status = EarnestMoneyDeposit.Status.REFUNDED
        emd.refunded_at = now
        emd.save(update_fields=["status", "refunded_at"])
        refunded.append(emd)
    return refunded


def refund_deposits(
    auction_id: int,
    actor: Optional[Member],
    bidder_id: Optional[int] = None,
    refund_all: bool = False,
    now: Optional[datetime] = None,
) -> List[EarnestMoneyDeposit]:
    """
    Refund every PAID deposit except the winner's (``refund_all``), or the
    deposit of one bidder. Returns the deposits that were refunded.
    """
    now = now or timezone.now()
    require_admin(actor)

    if not refund_all and bidder_id is None:
        raise DepositViolation("Either bidder_id or refund_all must be provided")

    with transaction.atomic():
        auction = Auction.objects.select_for_update().get(id=auction_id)
        paid = EarnestMoneyDeposit.objects.select_for_update().filter(
            auction=auction, status=EarnestMoneyDeposit.Status.PAID
        )

        if refund_all:
            if auction.winner_id is not None:
                paid = paid.exclude(bidder_id=auction.winner_id)
            refunded = mark_refunded(paid.order_by("id"), now)
        else:
            emd = EarnestMoneyDeposit.objects.filter(auction=auction, bidder_id=bidder_id).first()
            if emd is None:
                raise DepositViolation("EMD not found for this bidder", status=404)
            if emd.status != EarnestMoneyDeposit.Status.PAID:
                raise DepositViolation(f"EMD status is {emd.status}, cannot refund")
            if auction.winner_id == emd.bidder_id:
                raise DepositViolation(
                    "Cannot refund winner's EMD. It should be applied to balance payment."
                )
            refunded = mark_refunded([emd], now)

    logger.info(
        "Refunded %s EMD(s) on auction %s: %s",
        len(refunded), auction_id, [emd.bidder_id for emd in refunded],
    )
    return refunded

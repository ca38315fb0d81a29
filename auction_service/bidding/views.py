import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.db import DatabaseError
from django.http import HttpRequest, JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt

from .models import Auction, Bid, EarnestMoneyDeposit, Member
from .services.approval import (
    ApprovalViolation,
    approval_deadline,
    contact_details_for,
    decide_winning_bid,
    deadline_remaining,
    send_approval_reminders,
)
from .services.deposits import DepositViolation, refund_deposits
from .services.ledger import BidRejected, submit_bid
from .services.lifecycle import (
    LifecycleViolation,
    end_auction,
    mark_auction_failed,
    refresh_auction_statuses,
    time_remaining_seconds,
)
from .services.visibility import is_sealed_live, own_bids, serialize_bid, visible_bids

logger = logging.getLogger(__name__)


def _load_json(request: HttpRequest) -> Optional[Dict[str, Any]]:
    try:
        payload = json.loads(request.body.decode("utf-8") or "{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def _get_member(member_id: Any) -> Optional[Member]:
    if member_id in (None, ""):
        return None
    try:
        return Member.objects.get(id=int(member_id))
    except (Member.DoesNotExist, TypeError, ValueError):
        return None


def _viewer(request: HttpRequest) -> Optional[Member]:
    return _get_member(request.GET.get("viewer_id"))


def _parse_amount(raw: Any) -> Optional[Decimal]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        amount = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def _auction_not_found() -> JsonResponse:
    return JsonResponse({"error": "Auction not found"}, status=404)


def _cron_authorized(request: HttpRequest) -> bool:
    secret = getattr(settings, "CRON_SECRET", "")
    return not secret or request.headers.get("Authorization") == f"Bearer {secret}"


def _serialize_auction(auction: Auction, viewer: Optional[Member], now) -> Dict[str, Any]:
    hide_amounts = is_sealed_live(auction, now) and not (viewer and viewer.is_admin)
    return {
        "id": auction.id,
        "vehicle": auction.vehicle.title,
        "seller_id": auction.vehicle.seller_id,
        "status": auction.status,
        "bidding_type": auction.bidding_type,
        "bid_visibility": auction.bid_visibility,
        "start_time": auction.start_time.isoformat(),
        "end_time": auction.end_time.isoformat(),
        "current_bid": None if hide_amounts else float(auction.current_bid),
        "minimum_increment": float(auction.minimum_increment),
        "reserve_met": None if hide_amounts else auction.current_bid >= auction.reserve_price,
        "emd_required": auction.emd_required,
        "emd_amount": float(auction.emd_amount) if auction.emd_amount is not None else None,
        "extension_count": auction.extension_count,
        "seller_approval_status": auction.seller_approval_status,
        "time_remaining_seconds": time_remaining_seconds(auction, now),
    }


# --- Bids ---------------------------------------------------------------

@csrf_exempt
def auction_bids(request: HttpRequest, auction_id: int):
    """
    GET  -> bid list filtered by who is asking (``?viewer_id=``).
    POST -> place a bid.

    POST JSON:
    {
      "bidder_id": 7,
      "bid_amount": 125000
    }
    """
    if request.method == "GET":
        return _list_bids(request, auction_id)
    if request.method == "POST":
        return _place_bid(request, auction_id)
    return JsonResponse({"error": "Use GET or POST"}, status=405)


def _list_bids(request: HttpRequest, auction_id: int):
    try:
        auction = Auction.objects.get(id=auction_id)
    except Auction.DoesNotExist:
        return _auction_not_found()

    bids = visible_bids(auction, _viewer(request), now=timezone.now())
    return JsonResponse({"auction_id": auction.id, "bids": [serialize_bid(b) for b in bids]})


def _place_bid(request: HttpRequest, auction_id: int):
    payload = _load_json(request)
    if payload is None:
        return JsonResponse({"error": "Invalid JSON body"}, status=400)

    if payload.get("bidder_id") is None or payload.get("bid_amount") is None:
        return JsonResponse({"error": "Missing required fields: bidder_id, bid_amount"}, status=400)

    bid_amount = _parse_amount(payload.get("bid_amount"))
    if bid_amount is None:
        return JsonResponse({"error": "Invalid bid amount"}, status=400)

    bidder = _get_member(payload.get("bidder_id"))

    try:
        placed = submit_bid(auction_id, bidder, bid_amount)
    except Auction.DoesNotExist:
        return _auction_not_found()
    except BidRejected as ex:
        return JsonResponse(ex.decision.as_payload(), status=ex.decision.status)
    except DatabaseError:
        logger.exception("Storage failure while placing bid on auction %s", auction_id)
        return JsonResponse({"error": "Internal server error"}, status=500)

    auction = placed.auction
    return JsonResponse(
        {
            "message": "Bid placed successfully",
            "bid": serialize_bid(placed.bid),
            "current_bid": float(auction.current_bid),
            "end_time": auction.end_time.isoformat(),
            "extended": placed.extended,
            "extension_count": auction.extension_count,
        }
    )


def my_bids(request: HttpRequest, auction_id: int):
    viewer = _viewer(request)
    if viewer is None:
        return JsonResponse({"error": "Unauthorized"}, status=401)

    try:
        auction = Auction.objects.get(id=auction_id)
    except Auction.DoesNotExist:
        return _auction_not_found()

    return JsonResponse(
        {"auction_id": auction.id, "bids": [serialize_bid(b) for b in own_bids(auction, viewer)]}
    )


# --- Auctions -----------------------------------------------------------

def api_auctions(request: HttpRequest):
    status_filter = request.GET.get("status")  # SCHEDULED / LIVE / ENDED or None
    viewer = _viewer(request)
    now = timezone.now()

    qs = Auction.objects.select_related("vehicle").order_by("-id")
    if status_filter:
        qs = qs.filter(status=status_filter)

    return JsonResponse({"auctions": [_serialize_auction(a, viewer, now) for a in qs]})


def api_auction_state(request: HttpRequest, auction_id: int):
    try:
        auction = Auction.objects.select_related("vehicle").get(id=auction_id)
    except Auction.DoesNotExist:
        return _auction_not_found()

    data = _serialize_auction(auction, _viewer(request), timezone.now())
    data["bid_count"] = Bid.objects.filter(auction=auction).count()
    return JsonResponse({"auction": data})


def auction_emd_status(request: HttpRequest, auction_id: int):
    viewer = _viewer(request)
    if viewer is None:
        return JsonResponse({"error": "Unauthorized"}, status=401)

    try:
        auction = Auction.objects.get(id=auction_id)
    except Auction.DoesNotExist:
        return _auction_not_found()

    if not auction.emd_required or not auction.emd_amount:
        return JsonResponse({"emd_required": False, "message": "EMD not required for this auction"})

    emd = EarnestMoneyDeposit.objects.filter(auction=auction, bidder=viewer).first()
    return JsonResponse(
        {
            "emd_required": True,
            "emd_amount": float(auction.emd_amount),
            "emd_status": emd.status if emd else "NOT_PAID",
            "applied_to_balance": emd.applied_to_balance if emd else False,
        }
    )


@csrf_exempt
def end_auction_view(request: HttpRequest, auction_id: int):
    """
    Admin ends an auction by hand.

    POST JSON: { "actor_id": 1 }
    """
    if request.method != "POST":
        return JsonResponse({"error": "Use POST"}, status=405)

    payload = _load_json(request)
    if payload is None:
        return JsonResponse({"error": "Invalid JSON body"}, status=400)

    actor = _get_member(payload.get("actor_id"))
    if actor is None:
        return JsonResponse({"error": "Unauthorized"}, status=401)

    try:
        auction = end_auction(auction_id, actor=actor)
    except Auction.DoesNotExist:
        return _auction_not_found()
    except PermissionDenied as ex:
        return JsonResponse({"error": str(ex)}, status=403)
    except LifecycleViolation as ex:
        return JsonResponse({"error": str(ex)}, status=400)

    return JsonResponse(
        {
            "message": "Auction ended successfully",
            "auction_id": auction.id,
            "status": auction.status,
            "winner_id": auction.winner_id,
            "seller_approval_status": auction.seller_approval_status,
        }
    )


@csrf_exempt
def refresh_statuses(request: HttpRequest):
    """Cron hook. When CRON_SECRET is set the caller must send ``Authorization: Bearer <secret>``."""
    if request.method not in ("GET", "POST"):
        return JsonResponse({"error": "Use GET or POST"}, status=405)

    if not _cron_authorized(request):
        return JsonResponse({"error": "Unauthorized"}, status=401)

    results = refresh_auction_statuses()
    return JsonResponse(
        {
            "success": True,
            "results": {key: len(value) for key, value in results.items()},
            "details": results,
        }
    )


@csrf_exempt
def mark_failed_view(request: HttpRequest, auction_id: int):
    """
    Admin closes an auction without a sale and refunds all deposits.

    POST JSON: { "actor_id": 1, "reason": "optional" }
    """
    if request.method != "POST":
        return JsonResponse({"error": "Use POST"}, status=405)

    payload = _load_json(request)
    if payload is None:
        return JsonResponse({"error": "Invalid JSON body"}, status=400)

    actor = _get_member(payload.get("actor_id"))
    if actor is None:
        return JsonResponse({"error": "Unauthorized"}, status=401)

    reason = str(payload.get("reason") or "").strip() or "Reserve price not met"
    try:
        auction, refunded = mark_auction_failed(auction_id, actor, reason=reason)
    except Auction.DoesNotExist:
        return _auction_not_found()
    except PermissionDenied as ex:
        return JsonResponse({"error": str(ex)}, status=403)
    except LifecycleViolation as ex:
        return JsonResponse({"error": str(ex)}, status=400)

    return JsonResponse(
        {
            "message": "Auction marked as failed",
            "auction_id": auction.id,
            "reason": reason,
            "refunded_count": len(refunded),
        }
    )


@csrf_exempt
def refund_emd(request: HttpRequest, auction_id: int):
    """
    Admin refunds deposits of bidders who did not win.

    POST JSON:
    {
      "actor_id": 1,
      "refund_all": true        # or
      "bidder_id": 7
    }
    """
    if request.method != "POST":
        return JsonResponse({"error": "Use POST"}, status=405)

    payload = _load_json(request)
    if payload is None:
        return JsonResponse({"error": "Invalid JSON body"}, status=400)

    actor = _get_member(payload.get("actor_id"))
    if actor is None:
        return JsonResponse({"error": "Unauthorized"}, status=401)

    bidder_id = payload.get("bidder_id")
    if bidder_id is not None:
        try:
            bidder_id = int(bidder_id)
        except (TypeError, ValueError):
            return JsonResponse({"error": "Invalid bidder_id"}, status=400)

    try:
        refunded = refund_deposits(
            auction_id, actor, bidder_id=bidder_id, refund_all=payload.get("refund_all") is True
        )
    except Auction.DoesNotExist:
        return _auction_not_found()
    except PermissionDenied as ex:
        return JsonResponse({"error": str(ex)}, status=403)
    except DepositViolation as ex:
        return JsonResponse({"error": str(ex)}, status=ex.status)

    return JsonResponse(
        {
            "message": f"Refunded {len(refunded)} EMD(s)",
            "refunded_count": len(refunded),
            "emds": [
                {"id": emd.id, "bidder_id": emd.bidder_id, "amount": float(emd.amount)}
                for emd in refunded
            ],
        }
    )


# --- Seller approval ----------------------------------------------------

@csrf_exempt
def approval_reminders(request: HttpRequest):
    """Cron hook for seller deadline reminders. Same ``CRON_SECRET`` rule as the status sweep."""
    if request.method not in ("GET", "POST"):
        return JsonResponse({"error": "Use GET or POST"}, status=405)

    if not _cron_authorized(request):
        return JsonResponse({"error": "Unauthorized"}, status=401)

    return JsonResponse(
        {"message": "Reminder notifications processed", "results": send_approval_reminders()}
    )


@csrf_exempt
def approve_auction(request: HttpRequest, auction_id: int):
    """
    Seller (or admin) decision on the winning bid.

    POST JSON:
    {
      "actor_id": 3,
      "approval_status": "APPROVED" | "REJECTED",
      "rejection_reason": "optional, at most 500 characters"
    }
    """
    if request.method != "POST":
        return JsonResponse({"error": "Use POST"}, status=405)

    payload = _load_json(request)
    if payload is None:
        return JsonResponse({"error": "Invalid JSON body"}, status=400)

    actor = _get_member(payload.get("actor_id"))
    if actor is None:
        return JsonResponse({"error": "Unauthorized"}, status=401)

    try:
        auction = decide_winning_bid(
            auction_id,
            actor,
            str(payload.get("approval_status", "")),
            reason=str(payload.get("rejection_reason") or ""),
        )
    except Auction.DoesNotExist:
        return _auction_not_found()
    except ApprovalViolation as ex:
        return JsonResponse({"error": str(ex)}, status=ex.status)

    return JsonResponse(
        {
            "message": f"Bid {auction.seller_approval_status.lower()} successfully",
            "auction_id": auction.id,
            "seller_approval_status": auction.seller_approval_status,
        }
    )


def approval_status(request: HttpRequest, auction_id: int):
    viewer = _viewer(request)
    if viewer is None:
        return JsonResponse({"error": "Unauthorized"}, status=401)

    try:
        auction = Auction.objects.select_related("vehicle").get(id=auction_id)
    except Auction.DoesNotExist:
        return _auction_not_found()

    if not (viewer.is_admin or viewer.id == auction.vehicle.seller_id):
        return JsonResponse({"error": "Only the seller or admin can view approval status"}, status=403)

    data: Dict[str, Any] = {
        "auction_id": auction.id,
        "status": auction.status,
        "seller_approval_status": auction.seller_approval_status,
        "winning_bid": float(auction.current_bid) if auction.winner_id else None,
    }
    if auction.status == Auction.Status.ENDED:
        data["approval_deadline"] = approval_deadline(auction.end_time).isoformat()
        data["remaining"] = deadline_remaining(auction.end_time).as_dict()
    return JsonResponse(data)


def auction_contact(request: HttpRequest, auction_id: int):
    try:
        auction = Auction.objects.select_related("vehicle__seller", "winner").get(id=auction_id)
    except Auction.DoesNotExist:
        return _auction_not_found()

    contact = contact_details_for(auction, _viewer(request))
    if contact is None:
        return JsonResponse({"error": "Contact details are not available"}, status=403)
    return JsonResponse({"auction_id": auction.id, "contact": contact})

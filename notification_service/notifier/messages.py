"""
Message texts sent to members for auction events.

Amounts arrive already formatted (Indian digit grouping) from the auction
service.
"""

from typing import Any, Dict

SITE = "www.tractorauction.in"

_TEMPLATES = {
    "bid_placed": (
        "Dear {recipient_name}, your bid of ₹{bid_amount} for {vehicle} has been placed. "
        "Login: {site}/auctions/{auction_id}/live"
    ),
    "outbid": (
        "Dear {recipient_name}, you have been outbid on {vehicle}. Current bid: ₹{bid_amount}. "
        "Login: {site}/auctions/{auction_id}/live"
    ),
    "auction_extended": (
        "Dear {recipient_name}, the auction for {vehicle} has been extended by {extended_by} minutes. "
        "Login: {site}/auctions/{auction_id}/live"
    ),
    "auction_ended": (
        "Dear {recipient_name}, Your auction for {vehicle} has ended. Winning bid: ₹{winning_bid} "
        "by {winner_name}. Please approve or reject within {deadline_days} days. "
        "Login: {site}/my-account/auctions"
    ),
    "approval_reminder": (
        "Dear {recipient_name}, Reminder: Please approve/reject the winning bid of ₹{winning_bid} "
        "for {vehicle}. {days_remaining} day(s) remaining. Login: {site}/my-account/auctions"
    ),
    "approval_warning": (
        "Dear {recipient_name}, URGENT: Approval deadline for {vehicle} (Winning bid: ₹{winning_bid}) "
        "expires in 24 hours. Please take action. Login: {site}/my-account/auctions"
    ),
    "bid_approved": (
        "Dear {recipient_name}, Congratulations! Your bid of ₹{bid_amount} for {vehicle} has been "
        "approved by seller {seller_name}. Contact: {seller_phone}. Login: {site}/my-account"
    ),
    "bid_rejected": (
        "Dear {recipient_name}, Your bid of ₹{bid_amount} for {vehicle} has been rejected by the "
        "seller.{reason_suffix} Login: {site}/my-account"
    ),
}

KINDS = tuple(_TEMPLATES)


class _Defaults(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render_message(kind: str, context: Dict[str, Any], deadline_days: int = 7) -> str:
    if kind not in _TEMPLATES:
        raise ValueError(f"Unknown notification kind {kind!r}")

    values = _Defaults(context)
    values.setdefault("site", SITE)
    values.setdefault("deadline_days", deadline_days)
    reason = str(context.get("reason") or "").strip()
    values["reason_suffix"] = f" Reason: {reason}." if reason else ""
    return _TEMPLATES[kind].format_map(values)

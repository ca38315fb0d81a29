from django.urls import path

from .views import (
    api_auction_state,
    api_auctions,
    approval_reminders,
    approval_status,
    approve_auction,
    auction_bids,
    auction_contact,
    auction_emd_status,
    end_auction_view,
    mark_failed_view,
    my_bids,
    refresh_statuses,
    refund_emd,
)

urlpatterns = [
    # Auctions
    path("api/auctions/", api_auctions, name="api_auctions"),
    path("api/auctions/refresh-status/", refresh_statuses, name="refresh_statuses"),
    path("api/auctions/approval-reminders/", approval_reminders, name="approval_reminders"),
    path("api/auction/<int:auction_id>/state/", api_auction_state, name="api_auction_state"),
    path("api/auction/<int:auction_id>/end/", end_auction_view, name="end_auction"),
    path("api/auction/<int:auction_id>/emd/", auction_emd_status, name="auction_emd_status"),
    path("api/auction/<int:auction_id>/emd/refund/", refund_emd, name="refund_emd"),
    path("api/auction/<int:auction_id>/mark-failed/", mark_failed_view, name="mark_failed"),

    # Bidding
    path("api/auction/<int:auction_id>/bids/", auction_bids, name="auction_bids"),
    path("api/auction/<int:auction_id>/bids/my/", my_bids, name="my_bids"),

    # Seller approval
    path("api/auction/<int:auction_id>/approve/", approve_auction, name="approve_auction"),
    path("api/auction/<int:auction_id>/approval/", approval_status, name="approval_status"),
    path("api/auction/<int:auction_id>/contact/", auction_contact, name="auction_contact"),
]

from decimal import Decimal

import pytest
from django.core.exceptions import PermissionDenied

from bidding.models import Auction, EarnestMoneyDeposit
from bidding.services.deposits import DepositViolation, refund_deposits


@pytest.fixture
def emd_auction(make_auction, buyer_a, now):
    return make_auction(
        status=Auction.Status.ENDED,
        end_time=now,
        emd_required=True,
        emd_amount=Decimal("10000"),
        winner=buyer_a,
        seller_approval_status=Auction.ApprovalStatus.PENDING,
    )


def status_of(emd):
    emd.refresh_from_db()
    return emd.status


def test_refund_all_skips_the_winner(emd_auction, make_member, buyer_a, buyer_b, admin, pay_emd, now):
    winner_emd = pay_emd(emd_auction, buyer_a)
    loser_emd = pay_emd(emd_auction, buyer_b)
    unpaid = pay_emd(emd_auction, make_member("chetan"), status=EarnestMoneyDeposit.Status.PENDING)

    refunded = refund_deposits(emd_auction.id, admin, refund_all=True, now=now)

    assert [emd.bidder_id for emd in refunded] == [buyer_b.id]
    assert status_of(loser_emd) == EarnestMoneyDeposit.Status.REFUNDED
    assert status_of(winner_emd) == EarnestMoneyDeposit.Status.PAID
    assert status_of(unpaid) == EarnestMoneyDeposit.Status.PENDING
    loser_emd.refresh_from_db()
    assert loser_emd.refunded_at == now


def test_refund_single_bidder(emd_auction, buyer_b, admin, pay_emd):
    emd = pay_emd(emd_auction, buyer_b)

    (refunded,) = refund_deposits(emd_auction.id, admin, bidder_id=buyer_b.id)

    assert refunded.id == emd.id
    assert status_of(emd) == EarnestMoneyDeposit.Status.REFUNDED


def test_winner_deposit_cannot_be_refunded(emd_auction, buyer_a, admin, pay_emd):
    emd = pay_emd(emd_auction, buyer_a)

    with pytest.raises(DepositViolation, match="applied to balance"):
        refund_deposits(emd_auction.id, admin, bidder_id=buyer_a.id)

    assert status_of(emd) == EarnestMoneyDeposit.Status.PAID


def test_refund_needs_a_paid_deposit(emd_auction, buyer_b, admin, pay_emd):
    with pytest.raises(DepositViolation) as excinfo:
        refund_deposits(emd_auction.id, admin, bidder_id=buyer_b.id)
    assert excinfo.value.status == 404

    pay_emd(emd_auction, buyer_b, status=EarnestMoneyDeposit.Status.REFUNDED)
    with pytest.raises(DepositViolation, match="EMD status is REFUNDED"):
        refund_deposits(emd_auction.id, admin, bidder_id=buyer_b.id)


def test_refund_request_must_name_a_target(emd_auction, admin):
    with pytest.raises(DepositViolation, match="Either bidder_id or refund_all"):
        refund_deposits(emd_auction.id, admin)


def test_only_admin_refunds(emd_auction, seller, buyer_b, pay_emd):
    emd = pay_emd(emd_auction, buyer_b)

    with pytest.raises(PermissionDenied):
        refund_deposits(emd_auction.id, seller, refund_all=True)

    assert status_of(emd) == EarnestMoneyDeposit.Status.PAID

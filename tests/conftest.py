from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from bidding.models import Auction, EarnestMoneyDeposit, Member, Membership, Vehicle
from bidding.services import channels


@pytest.fixture(autouse=True)
def channel(settings):
    settings.BIDDING_CHANNEL_BACKEND = "memory"
    channels.reset_channel()
    yield channels.get_channel()
    channels.reset_channel()


@pytest.fixture
def now():
    return timezone.now().replace(microsecond=0)


@pytest.fixture
def make_member(db, now):
    def _make(username, role=Member.Role.BUYER, active_membership=True, **fields):
        member = Member.objects.create(
            username=username,
            full_name=username.title(),
            phone_number=f"+9198{abs(hash(username)) % 10 ** 8:08d}",
            role=role,
            **fields,
        )
        if active_membership:
            Membership.objects.create(
                member=member,
                start_date=now - timedelta(days=30),
                end_date=now + timedelta(days=30),
            )
        return member

    return _make


@pytest.fixture
def seller(make_member):
    return make_member("seller", role=Member.Role.SELLER, active_membership=False)


@pytest.fixture
def admin(make_member):
    return make_member("admin", role=Member.Role.ADMIN, active_membership=False)


@pytest.fixture
def buyer_a(make_member):
    return make_member("alice")


@pytest.fixture
def buyer_b(make_member):
    return make_member("bharat")


@pytest.fixture
def make_auction(db, seller, now):
    def _make(**overrides):
        vehicle = Vehicle.objects.create(seller=seller, brand="Mahindra", model="575 DI")
        fields = {
            "start_time": now - timedelta(hours=1),
            "end_time": now + timedelta(hours=1),
            "status": Auction.Status.LIVE,
            "current_bid": Decimal("40000"),
            "minimum_increment": Decimal("1000"),
        }
        fields.update(overrides)
        return Auction.objects.create(vehicle=vehicle, **fields)

    return _make


@pytest.fixture
def auction(make_auction):
    return make_auction()


@pytest.fixture
def pay_emd(db, now):
    def _pay(auction, member, status=EarnestMoneyDeposit.Status.PAID):
        return EarnestMoneyDeposit.objects.create(
            auction=auction,
            bidder=member,
            amount=auction.emd_amount or Decimal("5000"),
            status=status,
            paid_at=now,
        )

    return _pay

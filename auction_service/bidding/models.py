from django.db import models
from django.utils import timezone


class Member(models.Model):
    class Role(models.TextChoices):
        BUYER = "BUYER", "Buyer"
        SELLER = "SELLER", "Seller"
        DEALER = "DEALER", "Dealer"
        ADMIN = "ADMIN", "Admin"

    username = models.CharField(max_length=50, unique=True)
    full_name = models.CharField(max_length=120, blank=True)
    phone_number = models.CharField(max_length=20, blank=True)
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.BUYER)

    # Admin can switch bidding off for a member without touching memberships
    is_eligible_for_bid = models.BooleanField(default=True)

    @property
    def is_admin(self) -> bool:
        return self.role == self.Role.ADMIN

    @property
    def display_name(self) -> str:
        return self.full_name or self.username

    def __str__(self) -> str:
        return f"Member({self.username})"


class Membership(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        EXPIRED = "expired", "Expired"
        CANCELLED = "cancelled", "Cancelled"

    member = models.ForeignKey(Member, on_delete=models.CASCADE, related_name="memberships")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    start_date = models.DateTimeField(default=timezone.now)
    end_date = models.DateTimeField()

    def __str__(self) -> str:
        return f"Membership(member={self.member_id}, status={self.status}, until={self.end_date})"


class Vehicle(models.Model):
    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending review"
        APPROVED = "APPROVED", "Approved"
        AUCTION = "AUCTION", "In auction"
        SOLD = "SOLD", "Sold"

    seller = models.ForeignKey(Member, on_delete=models.CASCADE, related_name="vehicles")
    brand = models.CharField(max_length=60)
    model = models.CharField(max_length=60, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.AUCTION)

    @property
    def title(self) -> str:
        return f"{self.brand} {self.model}".strip()

    def __str__(self) -> str:
        return f"Vehicle({self.title})"


class Auction(models.Model):
    class Status(models.TextChoices):
        SCHEDULED = "SCHEDULED", "Scheduled"
        LIVE = "LIVE", "Live"
        ENDED = "ENDED", "Ended"

    class BiddingType(models.TextChoices):
        OPEN = "OPEN", "Open"
        SEALED = "SEALED", "Sealed"

    class BidVisibility(models.TextChoices):
        VISIBLE = "VISIBLE", "Visible"
        HIDDEN = "HIDDEN", "Hidden"

    class ApprovalStatus(models.TextChoices):
        PENDING = "PENDING", "Pending"
        APPROVED = "APPROVED", "Approved"
        REJECTED = "REJECTED", "Rejected"

    vehicle = models.OneToOneField(Vehicle, on_delete=models.CASCADE, related_name="auction")

    # Timing (end_time moves forward on auto-extension)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.SCHEDULED)

    bidding_type = models.CharField(max_length=10, choices=BiddingType.choices, default=BiddingType.OPEN)
    # Display hint for clients only. Who may see which bids is decided by
    # bidding_type (see services.visibility); no server rule reads this.
    bid_visibility = models.CharField(
        max_length=10, choices=BidVisibility.choices, default=BidVisibility.VISIBLE
    )

    # Pricing
    current_bid = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    reserve_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    minimum_increment = models.DecimalField(max_digits=12, decimal_places=2, default=1000)

    emd_required = models.BooleanField(default=False)
    emd_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    # Anti-snipe knobs; NULL falls back to AUCTION_AUTO_EXTEND_DEFAULTS
    auto_extend_enabled = models.BooleanField(null=True, blank=True)
    auto_extend_minutes = models.PositiveIntegerField(null=True, blank=True)
    auto_extend_threshold = models.PositiveIntegerField(null=True, blank=True)
    max_extensions = models.PositiveIntegerField(null=True, blank=True)
    extension_count = models.PositiveIntegerField(default=0)

    # Outcome (set when the auction ends)
    winner = models.ForeignKey(
        Member, null=True, blank=True, on_delete=models.SET_NULL, related_name="won_auctions"
    )
    seller_approval_status = models.CharField(
        max_length=10, choices=ApprovalStatus.choices, null=True, blank=True
    )
    rejection_reason = models.CharField(max_length=500, blank=True)
    approval_decided_at = models.DateTimeField(null=True, blank=True)

    @property
    def is_sealed(self) -> bool:
        return self.bidding_type == self.BiddingType.SEALED

    @property
    def minimum_next_bid(self):
        return self.current_bid + self.minimum_increment

    def __str__(self) -> str:
        return f"Auction({self.vehicle_id}, status={self.status})"


class Bid(models.Model):
    auction = models.ForeignKey(Auction, on_delete=models.CASCADE, related_name="bids")
    bidder = models.ForeignKey(Member, on_delete=models.CASCADE, related_name="bids")

    bid_amount = models.DecimalField(max_digits=12, decimal_places=2)
    bid_time = models.DateTimeField(default=timezone.now)
    is_winning_bid = models.BooleanField(default=False)

    # Admins may bid on a SCHEDULED auction for operational testing
    placed_by_admin = models.BooleanField(default=False)

    class Meta:
        indexes = [
            models.Index(fields=["auction", "is_winning_bid"], name="bid_auction_winning_idx"),
            models.Index(fields=["auction", "bid_time"], name="bid_auction_time_idx"),
        ]

    def __str__(self) -> str:
        return f"Bid(bidder={self.bidder_id}, auction={self.auction_id}, amount={self.bid_amount})"


class EarnestMoneyDeposit(models.Model):
    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        PAID = "PAID", "Paid"
        APPLIED = "APPLIED", "Applied to balance"
        REFUNDED = "REFUNDED", "Refunded"

    auction = models.ForeignKey(Auction, on_delete=models.CASCADE, related_name="deposits")
    bidder = models.ForeignKey(Member, on_delete=models.CASCADE, related_name="deposits")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    paid_at = models.DateTimeField(null=True, blank=True)
    applied_to_balance = models.BooleanField(default=False)
    refunded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["auction", "bidder"], name="unique_emd_per_bidder"),
        ]

    def __str__(self) -> str:
        return f"EMD(auction={self.auction_id}, bidder={self.bidder_id}, status={self.status})"


class Purchase(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PAYMENT_PENDING = "payment_pending", "Payment pending"

    vehicle = models.ForeignKey(Vehicle, on_delete=models.CASCADE, related_name="purchases")
    buyer = models.ForeignKey(Member, on_delete=models.CASCADE, related_name="purchases")
    purchase_price = models.DecimalField(max_digits=12, decimal_places=2)
    emd_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    balance_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    transaction_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    created_at = models.DateTimeField(default=timezone.now)

    @property
    def emd_applied(self) -> bool:
        return self.emd_amount is not None

    def __str__(self) -> str:
        return f"Purchase(vehicle={self.vehicle_id}, buyer={self.buyer_id}, price={self.purchase_price})"

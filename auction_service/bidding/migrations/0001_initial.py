import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Member",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("username", models.CharField(max_length=50, unique=True)),
                ("full_name", models.CharField(blank=True, max_length=120)),
                ("phone_number", models.CharField(blank=True, max_length=20)),
                (
                    "role",
                    models.CharField(
                        choices=[("BUYER", "Buyer"), ("SELLER", "Seller"), ("DEALER", "Dealer"), ("ADMIN", "Admin")],
                        default="BUYER",
                        max_length=10,
                    ),
                ),
                ("is_eligible_for_bid", models.BooleanField(default=True)),
            ],
        ),
        migrations.CreateModel(
            name="Membership",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("expired", "Expired"), ("cancelled", "Cancelled")],
                        default="active",
                        max_length=20,
                    ),
                ),
                ("start_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("end_date", models.DateTimeField()),
                (
                    "member",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="memberships",
                        to="bidding.member",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="Vehicle",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("brand", models.CharField(max_length=60)),
                ("model", models.CharField(blank=True, max_length=60)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending review"),
                            ("APPROVED", "Approved"),
                            ("AUCTION", "In auction"),
                            ("SOLD", "Sold"),
                        ],
                        default="AUCTION",
                        max_length=20,
                    ),
                ),
                (
                    "seller",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="vehicles",
                        to="bidding.member",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="Auction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("start_time", models.DateTimeField()),
                ("end_time", models.DateTimeField()),
                (
                    "status",
                    models.CharField(
                        choices=[("SCHEDULED", "Scheduled"), ("LIVE", "Live"), ("ENDED", "Ended")],
                        default="SCHEDULED",
                        max_length=20,
                    ),
                ),
                (
                    "bidding_type",
                    models.CharField(choices=[("OPEN", "Open"), ("SEALED", "Sealed")], default="OPEN", max_length=10),
                ),
                (
                    "bid_visibility",
                    models.CharField(
                        choices=[("VISIBLE", "Visible"), ("HIDDEN", "Hidden")], default="VISIBLE", max_length=10
                    ),
                ),
                ("current_bid", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("reserve_price", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("minimum_increment", models.DecimalField(decimal_places=2, default=1000, max_digits=12)),
                ("emd_required", models.BooleanField(default=False)),
                ("emd_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("auto_extend_enabled", models.BooleanField(blank=True, null=True)),
                ("auto_extend_minutes", models.PositiveIntegerField(blank=True, null=True)),
                ("auto_extend_threshold", models.PositiveIntegerField(blank=True, null=True)),
                ("max_extensions", models.PositiveIntegerField(blank=True, null=True)),
                ("extension_count", models.PositiveIntegerField(default=0)),
                (
                    "seller_approval_status",
                    models.CharField(
                        blank=True,
                        choices=[("PENDING", "Pending"), ("APPROVED", "Approved"), ("REJECTED", "Rejected")],
                        max_length=10,
                        null=True,
                    ),
                ),
                ("rejection_reason", models.CharField(blank=True, max_length=500)),
                ("approval_decided_at", models.DateTimeField(blank=True, null=True)),
                (
                    "vehicle",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="auction",
                        to="bidding.vehicle",
                    ),
                ),
                (
                    "winner",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="won_auctions",
                        to="bidding.member",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="Bid",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("bid_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("bid_time", models.DateTimeField(default=django.utils.timezone.now)),
                ("is_winning_bid", models.BooleanField(default=False)),
                ("placed_by_admin", models.BooleanField(default=False)),
                (
                    "auction",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bids",
                        to="bidding.auction",
                    ),
                ),
                (
                    "bidder",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bids",
                        to="bidding.member",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["auction", "is_winning_bid"], name="bid_auction_winning_idx"),
                    models.Index(fields=["auction", "bid_time"], name="bid_auction_time_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="EarnestMoneyDeposit",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("PAID", "Paid"),
                            ("APPLIED", "Applied to balance"),
                            ("REFUNDED", "Refunded"),
                        ],
                        default="PENDING",
                        max_length=10,
                    ),
                ),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("applied_to_balance", models.BooleanField(default=False)),
                (
                    "auction",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="deposits",
                        to="bidding.auction",
                    ),
                ),
                (
                    "bidder",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="deposits",
                        to="bidding.member",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("auction", "bidder"), name="unique_emd_per_bidder"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Purchase",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("purchase_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("emd_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("balance_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("transaction_fee", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("payment_pending", "Payment pending")],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "buyer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="purchases",
                        to="bidding.member",
                    ),
                ),
                (
                    "vehicle",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="purchases",
                        to="bidding.vehicle",
                    ),
                ),
            ],
        ),
    ]

import logging

from django.apps import AppConfig
from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


class BiddingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "bidding"

    def ready(self):
        # Import inside ready() to avoid circular imports
        from bidding.models import Auction

        # Audit trail for every status / approval change that reaches the database
        @receiver(post_save, sender=Auction, dispatch_uid="bidding_auction_audit")
        def audit_auction_change(sender, instance, created, update_fields=None, **kwargs):
            if created:
                logger.info(
                    "Auction %s created for vehicle %s (%s, %s -> %s)",
                    instance.id, instance.vehicle_id, instance.bidding_type,
                    instance.start_time, instance.end_time,
                )
                return

            watched = {"status", "seller_approval_status"}
            if update_fields is not None and not watched.intersection(update_fields):
                return

            logger.info(
                "Auction %s saved: status=%s approval=%s winner=%s",
                instance.id, instance.status, instance.seller_approval_status, instance.winner_id,
            )

from django.core.management.base import BaseCommand

from bidding.services.lifecycle import refresh_auction_statuses


class Command(BaseCommand):
    help = "Start auctions whose window has opened and end those whose window has closed."

    def handle(self, *args, **options):
        results = refresh_auction_statuses()
        self.stdout.write(
            f"started={len(results['started'])} ended={len(results['ended'])} errors={len(results['errors'])}"
        )
        for error in results["errors"]:
            self.stderr.write(error)

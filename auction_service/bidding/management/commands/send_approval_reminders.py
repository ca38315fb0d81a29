from django.core.management.base import BaseCommand

from bidding.services.approval import send_approval_reminders


class Command(BaseCommand):
    help = "Remind sellers whose approval deadline is close."

    def handle(self, *args, **options):
        results = send_approval_reminders()
        self.stdout.write(
            f"pending={results['total']} reminders={results['reminders_sent']} "
            f"warnings={results['warnings_sent']} errors={len(results['errors'])}"
        )
        for error in results["errors"]:
            self.stderr.write(error)
